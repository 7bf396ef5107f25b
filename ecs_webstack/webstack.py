#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Entry points of the commands: resolve the environment, build the graph, then render, plan or
provision it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.common.settings import WebStackSettings
    from ecs_webstack.providers import (
        CertificateAuthority,
        DnsProvider,
        NetworkProvider,
        ResourceProvider,
    )

from ecs_webstack.acm.acm_aws import AcmCertificateAuthority
from ecs_webstack.common.cloudcontrol import CloudControlProvider
from ecs_webstack.common.files import FileArtifact
from ecs_webstack.common.logging import LOG
from ecs_webstack.common.state import StateStore
from ecs_webstack.graph import DeploymentGraph
from ecs_webstack.provisioner import Provisioner, ProvisioningReport, define_plan
from ecs_webstack.route53.route53_aws import (
    Route53DnsProvider,
    find_hosted_zone,
    lookup_hosted_zone,
)
from ecs_webstack.topology import TopologyBuilder
from ecs_webstack.vpc.vpc_aws import resolve_network


def resolve_hosted_zone_id(settings: WebStackSettings) -> str:
    if settings.hosted_zone_id:
        return settings.hosted_zone_id
    if settings.hosted_zone_name:
        return lookup_hosted_zone(settings.hosted_zone_name, settings.session)
    return find_hosted_zone(settings.domain_name, settings.session)


def generate_graph(
    settings: WebStackSettings,
    network_provider: NetworkProvider = None,
    hosted_zone_id: str = None,
) -> tuple[DeploymentGraph, TopologyBuilder]:
    """
    Resolves the network and the hosted zone, then builds the deployment graph.

    :raises ConfigurationError: before anything gets created
    """
    network = resolve_network(settings, network_provider)
    if hosted_zone_id is None:
        hosted_zone_id = resolve_hosted_zone_id(settings)
    builder = TopologyBuilder(settings, network, hosted_zone_id)
    return builder.build(), builder


def render(settings: WebStackSettings, **kwargs) -> str:
    """
    Writes the CFN template of the deployment

    :return: path to the template file
    """
    graph, builder = generate_graph(settings, **kwargs)
    template = FileArtifact(
        f"{settings.name}.{settings.format}",
        settings.output_dir,
        graph.to_dict(
            description=f"{settings.name} - {settings.domain_name}",
            outputs=builder.outputs(),
        ),
        settings.format,
    )
    return template.write()


def plan(settings: WebStackSettings, state: StateStore = None, **kwargs) -> list:
    graph, _ = generate_graph(settings, **kwargs)
    if state is None:
        state = StateStore(settings.state_file)
    return define_plan(graph, state)


def deploy(
    settings: WebStackSettings,
    resources: ResourceProvider = None,
    authority: CertificateAuthority = None,
    dns: DnsProvider = None,
    state: StateStore = None,
    **kwargs,
) -> tuple[ProvisioningReport, dict]:
    """
    Provisions the deployment. The AWS providers are used for what is not given.

    :return: the report of the run and the URLs of the services
    """
    graph, builder = generate_graph(settings, **kwargs)
    if resources is None:
        resources = CloudControlProvider(settings.session)
    if authority is None:
        authority = AcmCertificateAuthority(settings.session)
    if dns is None:
        dns = Route53DnsProvider(builder.hosted_zone_id, settings.session)
    if state is None:
        state = StateStore(settings.state_file)
    LOG.info(
        f"{settings.name} - Provisioning {len(graph)} resources in {len(graph.waves())} waves"
    )
    report = Provisioner(
        graph,
        resources,
        authority,
        dns,
        state,
        region=settings.aws_region,
        max_workers=settings.max_workers,
        validation_timeout=settings.validation_timeout,
    ).run()
    return report, builder.urls()
