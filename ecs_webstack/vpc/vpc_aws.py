#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Network the load balancer and the services are deployed into.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.common.settings import WebStackSettings

from boto3.session import Session
from botocore.exceptions import ClientError
from compose_x_common.compose_x_common import keyisset

from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import ConfigurationError, ProvisioningError
from ecs_webstack.providers import NetworkProvider


class NetworkContext:
    """
    :ivar str vpc_id:
    :ivar list[str] subnet_ids: sorted
    """

    def __init__(self, vpc_id: str, subnet_ids: list):
        self.vpc_id = vpc_id
        self.subnet_ids = sorted(subnet_ids)

    def __repr__(self):
        return f"NetworkContext({self.vpc_id}, {self.subnet_ids})"

    def __eq__(self, other):
        if not isinstance(other, NetworkContext):
            return NotImplemented
        return self.vpc_id == other.vpc_id and self.subnet_ids == other.subnet_ids


def resolve_default_network(session: Session = None) -> NetworkContext:
    """
    Finds the default VPC of the region and its subnets

    :param boto3.session.Session session:
    :rtype: NetworkContext
    :raises ConfigurationError: if the region has no default VPC or it has no subnet
    """
    if session is None:
        session = Session()
    client = session.client("ec2")
    try:
        vpcs = client.describe_vpcs(
            Filters=[{"Name": "is-default", "Values": ["true"]}]
        )["Vpcs"]
        if not vpcs:
            raise ConfigurationError(
                "No default VPC in the region. Set x-webstack.Network to use another VPC"
            )
        vpc_id = vpcs[0]["VpcId"]
        subnet_ids = []
        paginator = client.get_paginator("describe_subnets")
        for page in paginator.paginate(
            Filters=[{"Name": "vpc-id", "Values": [vpc_id]}]
        ):
            subnet_ids += [subnet["SubnetId"] for subnet in page["Subnets"]]
    except ClientError as error:
        raise ProvisioningError(
            error.response["Error"]["Message"], "DefaultVpc", "AWS::EC2::VPC"
        ) from error
    if not subnet_ids:
        raise ConfigurationError(f"Default VPC {vpc_id} has no subnet")
    LOG.info(f"Using default VPC {vpc_id} with {len(subnet_ids)} subnets")
    return NetworkContext(vpc_id, subnet_ids)


class Ec2NetworkProvider(NetworkProvider):
    def __init__(self, session: Session = None):
        self.session = session

    def resolve_default_network(self) -> NetworkContext:
        return resolve_default_network(self.session)


def resolve_network(
    settings: WebStackSettings, provider: NetworkProvider = None
) -> NetworkContext:
    """
    Network from x-webstack.Network when set, the default VPC otherwise.
    """
    if keyisset("Network", settings.webstack):
        network = settings.webstack["Network"]
        LOG.info(f"Using VPC {network['VpcId']} from x-webstack.Network")
        return NetworkContext(network["VpcId"], network["SubnetIds"])
    if provider is None:
        provider = Ec2NetworkProvider(settings.session)
    return provider.resolve_default_network()
