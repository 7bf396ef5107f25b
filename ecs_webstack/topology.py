#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Builds the DeploymentGraph of a web stack: the shared load balancing and ECS resources, then
for each service its target group, routing rule, task definition, service and autoscaling.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.common.settings import WebStackSettings
    from ecs_webstack.compose.service_spec import ServiceSpec
    from ecs_webstack.vpc.vpc_aws import NetworkContext

from troposphere import GetAtt, Output, Ref

from ecs_webstack.acm.acm_certificate import define_certificate
from ecs_webstack.common.logging import LOG
from ecs_webstack.dynamodb.dynamodb_table import define_table, table_access_statement
from ecs_webstack.ecs.ecs_cluster import define_cluster, define_log_group
from ecs_webstack.ecs.ecs_iam import define_execution_role, define_task_role
from ecs_webstack.ecs.ecs_service import define_service
from ecs_webstack.ecs.ecs_task import define_task_definition
from ecs_webstack.ecs.service_scaling import (
    define_scalable_target,
    define_scale_in_policy,
)
from ecs_webstack.elbv2.elbv2_params import HTTP_PORT, HTTPS_PORT, LB_DNS_NAME
from ecs_webstack.elbv2.elbv2_stack import (
    define_listener_rule,
    define_load_balancer,
    define_plain_listener,
    define_public_ingresses,
    define_secure_listener,
    define_security_group,
    define_service_port_ingress,
)
from ecs_webstack.elbv2.routing import define_routing_rules
from ecs_webstack.elbv2.target_groups import define_service_target_group
from ecs_webstack.graph import DeploymentGraph, NodeKind
from ecs_webstack.route53.route53_records import define_alias_record


class SharedInfrastructure:
    """
    The resources all the services use. Built once per graph.
    """

    def __init__(
        self,
        security_group,
        public_ingresses: list,
        load_balancer,
        plain_listener,
        certificate,
        cluster,
        log_group,
        execution_role,
        dns_alias,
    ):
        self.security_group = security_group
        self.public_ingresses = public_ingresses
        self.load_balancer = load_balancer
        self.plain_listener = plain_listener
        self.certificate = certificate
        self.cluster = cluster
        self.log_group = log_group
        self.execution_role = execution_role
        self.dns_alias = dns_alias
        self.secure_listener = None

    @property
    def listeners(self) -> list:
        return [self.plain_listener, self.secure_listener]


class TopologyBuilder:
    """
    :ivar WebStackSettings settings:
    :ivar NetworkContext network:
    :ivar str hosted_zone_id: zone of the domain name, for the validation and alias records
    """

    def __init__(
        self,
        settings: WebStackSettings,
        network: NetworkContext,
        hosted_zone_id: str,
    ):
        self.settings = settings
        self.network = network
        self.hosted_zone_id = hosted_zone_id
        self.shared = None
        self.target_groups = {}
        self.tables = {}
        self.port_ingresses = {}

    def build(self) -> DeploymentGraph:
        """
        :return: the sealed graph
        :raises ConfigurationError: if the routing is ambiguous or the graph invalid. Nothing is created.
        """
        primary, rules = define_routing_rules(self.settings.services)
        graph = DeploymentGraph(self.settings.name)
        self.shared = self.add_shared_infrastructure(graph)
        for service in self.settings.services:
            self.target_groups[service.name] = graph.add(
                define_service_target_group(service, self.network.vpc_id),
                NodeKind.TARGET_GROUP,
                service=service.name,
            )
        self.shared.secure_listener = graph.add(
            define_secure_listener(
                self.shared.load_balancer,
                self.shared.certificate,
                self.target_groups[primary.name],
                self.settings.ssl_policy,
            ),
            NodeKind.SECURE_LISTENER,
            depends_on=[
                self.shared.load_balancer,
                self.shared.certificate,
                self.target_groups[primary.name],
            ],
        )
        for table in self.settings.tables:
            self.tables[table.name] = graph.add(define_table(table), NodeKind.TABLE)
        service_rules = {rule.service.name: rule for rule in rules}
        for service in self.settings.services:
            self.add_service(graph, service, service_rules.get(service.name))
        LOG.info(
            f"{self.settings.name} - {len(graph)} resources for {len(self.settings.services)} services"
        )
        return graph.seal()

    def add_shared_infrastructure(self, graph: DeploymentGraph) -> SharedInfrastructure:
        security_group = graph.add(
            define_security_group(self.settings.name, self.network.vpc_id),
            NodeKind.SECURITY_GROUP,
        )
        public_ingresses = [
            graph.add(ingress, NodeKind.INGRESS_RULE, depends_on=[security_group])
            for ingress in define_public_ingresses(security_group)
        ]
        load_balancer = graph.add(
            define_load_balancer(security_group, self.network.subnet_ids),
            NodeKind.LOAD_BALANCER,
            depends_on=[security_group] + public_ingresses,
        )
        plain_listener = graph.add(
            define_plain_listener(load_balancer),
            NodeKind.PLAIN_LISTENER,
            depends_on=[load_balancer],
        )
        certificate = graph.add(
            define_certificate(
                self.settings.domain_name,
                self.settings.alternative_names,
                self.hosted_zone_id,
            ),
            NodeKind.CERTIFICATE,
        )
        dns_alias = graph.add(
            define_alias_record(
                self.settings.domain_name, self.hosted_zone_id, load_balancer
            ),
            NodeKind.DNS_ALIAS,
            depends_on=[load_balancer],
        )
        return SharedInfrastructure(
            security_group=security_group,
            public_ingresses=public_ingresses,
            load_balancer=load_balancer,
            plain_listener=plain_listener,
            certificate=certificate,
            cluster=graph.add(
                define_cluster(self.settings.cluster_name), NodeKind.CLUSTER
            ),
            log_group=graph.add(
                define_log_group(self.settings.name, self.settings.log_retention),
                NodeKind.LOG_GROUP,
            ),
            execution_role=graph.add(
                define_execution_role(), NodeKind.EXECUTION_ROLE
            ),
            dns_alias=dns_alias,
        )

    def add_port_ingress(self, graph: DeploymentGraph, port: int):
        """
        Ingress from the load balancer to the tasks, once per port. None for the public ports.
        """
        if port in [HTTP_PORT, HTTPS_PORT]:
            return None
        if port not in self.port_ingresses:
            self.port_ingresses[port] = graph.add(
                define_service_port_ingress(self.shared.security_group, port),
                NodeKind.INGRESS_RULE,
                depends_on=[self.shared.security_group],
            )
        return self.port_ingresses[port]

    def add_service(self, graph: DeploymentGraph, service: ServiceSpec, rule=None):
        target_group = self.target_groups[service.name]
        service_deps = [
            self.shared.cluster,
            self.shared.security_group,
            target_group,
        ] + self.shared.listeners

        if rule:
            service_deps.append(
                graph.add(
                    define_listener_rule(
                        rule, self.shared.secure_listener, target_group
                    ),
                    NodeKind.ROUTING_RULE,
                    depends_on=[self.shared.secure_listener, target_group],
                    service=service.name,
                )
            )
        port_ingress = self.add_port_ingress(graph, service.port)
        if port_ingress:
            service_deps.append(port_ingress)

        environment = dict(service.environment)
        statements = []
        service_tables = []
        for table_spec in self.settings.tables:
            access = table_spec.access_for(service.name)
            if not access:
                continue
            table = self.tables[table_spec.name]
            service_tables.append(table)
            statements.append(table_access_statement(table, access))
            environment[access.env_var] = Ref(table)
        task_role = None
        if statements:
            task_role = graph.add(
                define_task_role(service.logical_name, statements),
                NodeKind.TASK_ROLE,
                depends_on=service_tables,
                service=service.name,
            )

        task_definition = graph.add(
            define_task_definition(
                self.settings.name,
                service,
                self.shared.log_group,
                self.shared.execution_role,
                task_role,
                environment,
                self.settings.cpu_architecture,
            ),
            NodeKind.TASK_DEFINITION,
            depends_on=[self.shared.log_group, self.shared.execution_role]
            + ([task_role] if task_role else [])
            + service_tables,
            service=service.name,
        )
        service_deps.append(task_definition)
        ecs_service = graph.add(
            define_service(
                service,
                self.shared.cluster,
                task_definition,
                target_group,
                self.shared.security_group,
                self.network.subnet_ids,
            ),
            NodeKind.SERVICE,
            depends_on=service_deps,
            service=service.name,
        )
        scalable_target = graph.add(
            define_scalable_target(service, self.shared.cluster, ecs_service),
            NodeKind.SCALING_TARGET,
            depends_on=[ecs_service, self.shared.cluster],
            service=service.name,
        )
        graph.add(
            define_scale_in_policy(service, self.shared.cluster, ecs_service),
            NodeKind.SCALING_POLICY,
            depends_on=[scalable_target],
            service=service.name,
        )

    def urls(self) -> dict:
        """
        The public URL and the URL of each service.
        """
        base_url = f"https://{self.settings.domain_name}"
        urls = {"PublicUrl": base_url}
        for service in self.settings.services:
            urls[service.name] = f"{base_url}{service.url_path}"
        return urls

    def outputs(self) -> list:
        outputs = [
            Output(
                "LoadBalancerDnsName",
                Value=GetAtt(self.shared.load_balancer, LB_DNS_NAME),
            ),
            Output("PublicUrl", Value=self.urls()["PublicUrl"]),
        ]
        for service in self.settings.services:
            if service.url_path:
                outputs.append(
                    Output(
                        f"{service.logical_name}Url",
                        Value=self.urls()[service.name],
                    )
                )
        return outputs
