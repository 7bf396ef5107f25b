#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Route53 as the DNS provider.
"""

from __future__ import annotations

from boto3.session import Session
from botocore.exceptions import ClientError

from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import (
    ConfigurationError,
    ProvisioningError,
    TransientProviderError,
)
from ecs_webstack.providers import DnsProvider

RECORD_TYPE = "AWS::Route53::RecordSet"


def lookup_hosted_zone(zone_name: str, session: Session = None) -> str:
    """
    Finds the public hosted zone of the given name

    :param str zone_name:
    :param boto3.session.Session session:
    :return: the zone ID, without the /hostedzone/ prefix
    :raises ConfigurationError: if no such public zone exists
    """
    if session is None:
        session = Session()
    client = session.client("route53")
    dns_name = zone_name if zone_name.endswith(".") else f"{zone_name}."
    zones = client.list_hosted_zones_by_name(DNSName=dns_name)["HostedZones"]
    for zone in zones:
        if zone["Name"] == dns_name and not zone["Config"].get("PrivateZone", False):
            zone_id = zone["Id"].split("/")[-1]
            LOG.info(f"Found public hosted zone {zone_id} for {zone_name}")
            return zone_id
    raise ConfigurationError(
        f"No public hosted zone found for {zone_name}. Set x-webstack.HostedZoneId"
    )


class Route53DnsProvider(DnsProvider):
    """
    UPSERTs are idempotent, concurrent writers of different records do not conflict.
    """

    def __init__(self, hosted_zone_id: str, session: Session = None):
        if session is None:
            session = Session()
        self.client = session.client("route53")
        self.hosted_zone_id = hosted_zone_id

    def change(self, record_name: str, record_set: dict) -> dict:
        try:
            change = self.client.change_resource_record_sets(
                HostedZoneId=self.hosted_zone_id,
                ChangeBatch={
                    "Comment": "ecs-webstack",
                    "Changes": [{"Action": "UPSERT", "ResourceRecordSet": record_set}],
                },
            )["ChangeInfo"]
        except ClientError as error:
            code = error.response["Error"]["Code"]
            error_class = (
                TransientProviderError
                if code in ["Throttling", "PriorRequestNotComplete"]
                else ProvisioningError
            )
            raise error_class(
                error.response["Error"]["Message"], record_name, RECORD_TYPE
            ) from error
        LOG.info(f"{record_name} - {record_set['Type']} record {change['Status']}")
        return {"Ref": record_name, "ChangeId": change["Id"]}

    def upsert_record(
        self, record_type: str, record_name: str, record_value: str, ttl: int
    ) -> dict:
        return self.change(
            record_name,
            {
                "Name": record_name,
                "Type": record_type,
                "TTL": ttl,
                "ResourceRecords": [{"Value": record_value}],
            },
        )

    def upsert_alias(
        self,
        record_name: str,
        target_dns_name: str,
        target_zone_id: str,
        evaluate_target_health: bool = True,
    ) -> dict:
        return self.change(
            record_name,
            {
                "Name": record_name,
                "Type": "A",
                "AliasTarget": {
                    "HostedZoneId": target_zone_id,
                    "DNSName": target_dns_name,
                    "EvaluateTargetHealth": evaluate_target_health,
                },
            },
        )


def find_hosted_zone(domain_name: str, session: Session = None) -> str:
    """
    Finds the closest public hosted zone for the domain name, i.e. for app.example.com,
    app.example.com then example.com

    :raises ConfigurationError: if no parent zone exists
    """
    labels = domain_name.strip(".").split(".")
    for index in range(len(labels) - 1):
        try:
            return lookup_hosted_zone(".".join(labels[index:]), session)
        except ConfigurationError:
            LOG.debug(f"No public hosted zone named {'.'.join(labels[index:])}")
    raise ConfigurationError(
        f"No public hosted zone found for {domain_name} or its parent domains. "
        "Set x-webstack.HostedZoneId"
    )
