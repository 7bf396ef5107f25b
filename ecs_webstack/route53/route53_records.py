#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from troposphere import GetAtt
from troposphere.elasticloadbalancingv2 import LoadBalancer
from troposphere.route53 import AliasTarget, RecordSetType

from ecs_webstack.elbv2.elbv2_params import LB_DNS_NAME, LB_DNS_ZONE_ID

DNS_ALIAS_T = "DnsAliasRecord"


def define_alias_record(
    domain_name: str, hosted_zone_id: str, load_balancer: LoadBalancer
) -> RecordSetType:
    """
    A record of the domain name pointing to the load balancer
    """
    return RecordSetType(
        DNS_ALIAS_T,
        HostedZoneId=hosted_zone_id,
        Name=domain_name,
        Type="A",
        AliasTarget=AliasTarget(
            DNSName=GetAtt(load_balancer, LB_DNS_NAME),
            HostedZoneId=GetAtt(load_balancer, LB_DNS_ZONE_ID),
            EvaluateTargetHealth=True,
        ),
    )
