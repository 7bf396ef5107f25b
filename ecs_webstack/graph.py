#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
The DeploymentGraph: troposphere resources as typed nodes, edges meaning "must exist before".
"""

from __future__ import annotations

import networkx as nx
from troposphere import AWSObject, Output, Template

from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import ConfigurationError


class NodeKind:
    SECURITY_GROUP = "security_group"
    INGRESS_RULE = "ingress_rule"
    LOAD_BALANCER = "load_balancer"
    PLAIN_LISTENER = "plain_listener"
    SECURE_LISTENER = "secure_listener"
    CERTIFICATE = "certificate"
    DNS_ALIAS = "dns_alias"
    TARGET_GROUP = "target_group"
    ROUTING_RULE = "routing_rule"
    CLUSTER = "cluster"
    LOG_GROUP = "log_group"
    EXECUTION_ROLE = "execution_role"
    TASK_ROLE = "task_role"
    TABLE = "table"
    TASK_DEFINITION = "task_definition"
    SERVICE = "service"
    SCALING_TARGET = "scaling_target"
    SCALING_POLICY = "scaling_policy"


def find_references(value) -> set:
    """
    Walks a rendered resource and returns the logical names of the resources it points to
    with Ref or Fn::GetAtt. Pseudo parameters (AWS::*) are not resources.

    :param value: the output of a troposphere to_dict()
    :rtype: set
    """
    references = set()
    if isinstance(value, dict):
        for key, sub_value in value.items():
            if key == "Ref" and isinstance(sub_value, str):
                if not sub_value.startswith("AWS::"):
                    references.add(sub_value)
            elif key == "Fn::GetAtt" and isinstance(sub_value, list):
                references.add(sub_value[0])
            else:
                references.update(find_references(sub_value))
    elif isinstance(value, list):
        for item in value:
            references.update(find_references(item))
    return references


class DeploymentGraph:
    """
    Built once per run by the TopologyBuilder then sealed. Rendering and provisioning only read it.

    :ivar str name: the deployment name
    :ivar bool sealed:
    """

    def __init__(self, name: str):
        self.name = name
        self.sealed = False
        self._graph = nx.DiGraph(name=name)

    def __repr__(self):
        return f"DeploymentGraph({self.name}, {len(self)} nodes)"

    def __len__(self):
        return self._graph.number_of_nodes()

    def __contains__(self, title):
        return title in self._graph

    def __iter__(self):
        return iter(self.ordered())

    def add(
        self,
        resource: AWSObject,
        kind: str,
        depends_on: list = None,
        service: str = None,
    ) -> AWSObject:
        """
        Adds the resource as a node, with an edge from each of the resources it depends on.

        :param troposphere.AWSObject resource:
        :param str kind: one of NodeKind
        :param list depends_on: the resources or logical names which must exist before
        :param str service: the service the resource belongs to, if any
        :return: the resource
        """
        if self.sealed:
            raise RuntimeError(f"{self.name} - graph is sealed. Cannot add {resource.title}")
        if resource.title in self._graph:
            raise ConfigurationError(
                f"{self.name} - {resource.title} is already defined in the deployment"
            )
        self._graph.add_node(
            resource.title, resource=resource, kind=kind, service=service
        )
        for upstream in depends_on or []:
            upstream_title = upstream if isinstance(upstream, str) else upstream.title
            if upstream_title not in self._graph:
                raise ConfigurationError(
                    f"{self.name} - {resource.title} depends on {upstream_title} which is not defined"
                )
            self._graph.add_edge(upstream_title, resource.title)
        return resource

    def validate(self) -> None:
        """
        The graph must be acyclic and every Ref / Fn::GetAtt must point to an ancestor,
        so that its value is known when the resource gets created.

        :raises ConfigurationError:
        """
        if not nx.is_directed_acyclic_graph(self._graph):
            cycle = nx.find_cycle(self._graph)
            raise ConfigurationError(
                f"{self.name} - dependency cycle detected",
                [edge[0] for edge in cycle],
            )
        for title in self._graph.nodes:
            references = find_references(self.resource(title).to_dict())
            dangling = references - nx.ancestors(self._graph, title)
            if dangling:
                raise ConfigurationError(
                    f"{self.name} - {title} references resources which do not come before it",
                    sorted(dangling),
                )

    def seal(self) -> DeploymentGraph:
        self.validate()
        self._graph = nx.freeze(self._graph)
        self.sealed = True
        LOG.debug(f"{self.name} - graph sealed with {len(self)} resources")
        return self

    def resource(self, title: str) -> AWSObject:
        return self._graph.nodes[title]["resource"]

    def kind(self, title: str) -> str:
        return self._graph.nodes[title]["kind"]

    def service_of(self, title: str) -> str | None:
        return self._graph.nodes[title]["service"]

    def predecessors(self, title: str) -> list:
        return sorted(self._graph.predecessors(title))

    def successors(self, title: str) -> list:
        return sorted(self._graph.successors(title))

    def ancestors(self, title: str) -> set:
        return nx.ancestors(self._graph, title)

    def descendants(self, title: str) -> set:
        return nx.descendants(self._graph, title)

    def nodes_of_kind(self, kind: str) -> list:
        return [title for title in self.ordered() if self.kind(title) == kind]

    def has_edge(self, upstream: str, downstream: str) -> bool:
        return self._graph.has_edge(upstream, downstream)

    def waves(self) -> list[list[str]]:
        """
        Groups of resources which can be created concurrently, in order.
        """
        return [sorted(wave) for wave in nx.topological_generations(self._graph)]

    def ordered(self) -> list[str]:
        """
        Deterministic topological order.
        """
        return list(nx.lexicographical_topological_sort(self._graph))

    def to_template(self, description: str = None, outputs: list = None) -> Template:
        template = Template()
        template.set_description(description or f"{self.name} deployment")
        for title in self.ordered():
            template.add_resource(self.resource(title))
        for output in outputs or []:
            if isinstance(output, Output):
                template.add_output(output)
        return template

    def to_dict(self, description: str = None, outputs: list = None) -> dict:
        """
        Renders the CFN template, with DependsOn set from the graph edges.
        The resources themselves are left untouched.
        """
        content = self.to_template(description, outputs).to_dict()
        for title, definition in content["Resources"].items():
            upstream = self.predecessors(title)
            if upstream:
                definition["DependsOn"] = upstream
        return content
