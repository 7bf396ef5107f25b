#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Capabilities the deployment relies on. The AWS implementations live along their service module
(vpc.vpc_aws, acm.acm_aws, route53.route53_aws, common.cloudcontrol).

A handle is the dict a provider returns once a resource is ready. "Ref" holds the primary
identifier, the other keys the resource attributes usable with Fn::GetAtt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.acm.validation import ValidationChallenge
    from ecs_webstack.vpc.vpc_aws import NetworkContext


class NetworkProvider:
    def resolve_default_network(self) -> NetworkContext:
        raise NotImplementedError


class ResourceProvider:
    """
    Creates and updates load balancing, container and autoscaling resources from their CFN
    properties.
    """

    def create(self, resource_type: str, logical_name: str, properties: dict) -> dict:
        raise NotImplementedError

    def update(
        self, resource_type: str, logical_name: str, identifier: str, properties: dict
    ) -> dict:
        raise NotImplementedError


class CertificateAuthority:
    def request_certificate(
        self, domain_name: str, alternative_names: list = None
    ) -> tuple[str, list[ValidationChallenge]]:
        """
        :return: the certificate ARN and the challenges to publish. No challenges if already issued.
        """
        raise NotImplementedError

    def await_validation(
        self, certificate_arn: str, challenge: ValidationChallenge, timeout: float = None
    ) -> str:
        """
        :return: one of ecs_webstack.acm.validation VALIDATED, FAILED or PENDING once timed out
        """
        raise NotImplementedError


class DnsProvider:
    def upsert_record(
        self, record_type: str, record_name: str, record_value: str, ttl: int
    ) -> dict:
        raise NotImplementedError

    def upsert_alias(
        self,
        record_name: str,
        target_dns_name: str,
        target_zone_id: str,
        evaluate_target_health: bool = True,
    ) -> dict:
        raise NotImplementedError
