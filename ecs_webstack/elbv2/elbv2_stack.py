#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Shared public Application Load Balancer, its security group and listeners, and the services
listener rules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.elbv2.routing import RoutingRule

from troposphere import GetAtt, Ref
from troposphere.ec2 import SecurityGroup, SecurityGroupIngress
from troposphere.elasticloadbalancingv2 import (
    Action,
    Certificate,
    Condition,
    Listener,
    ListenerRule,
    ListenerRuleAction,
    LoadBalancer,
    LoadBalancerAttributes,
    PathPatternConfig,
    RedirectConfig,
    TargetGroup,
)

from ecs_webstack.elbv2.elbv2_params import (
    HTTP_LISTENER_T,
    HTTP_PORT,
    HTTPS_LISTENER_T,
    HTTPS_PORT,
    LB_SG_T,
    LB_T,
    PUBLIC_CIDR,
    PUBLIC_HTTP_INGRESS_T,
    PUBLIC_HTTPS_INGRESS_T,
    SG_GROUP_ID,
)


def define_security_group(stack_name: str, vpc_id: str) -> SecurityGroup:
    """
    Security group shared by the load balancer and the services tasks.
    """
    return SecurityGroup(
        LB_SG_T,
        GroupDescription=f"{stack_name} load balancer and services",
        VpcId=vpc_id,
    )


def define_public_ingress(
    title: str, security_group: SecurityGroup, port: int
) -> SecurityGroupIngress:
    return SecurityGroupIngress(
        title,
        GroupId=GetAtt(security_group, SG_GROUP_ID),
        IpProtocol="tcp",
        FromPort=port,
        ToPort=port,
        CidrIp=PUBLIC_CIDR,
        Description=f"Public access on {port}",
    )


def define_public_ingresses(security_group: SecurityGroup) -> list:
    return [
        define_public_ingress(PUBLIC_HTTP_INGRESS_T, security_group, HTTP_PORT),
        define_public_ingress(PUBLIC_HTTPS_INGRESS_T, security_group, HTTPS_PORT),
    ]


def define_service_port_ingress(
    security_group: SecurityGroup, port: int
) -> SecurityGroupIngress:
    """
    Allows the load balancer to reach the tasks on a port which is not already public.
    """
    return SecurityGroupIngress(
        f"ServicePort{port}Ingress",
        GroupId=GetAtt(security_group, SG_GROUP_ID),
        IpProtocol="tcp",
        FromPort=port,
        ToPort=port,
        SourceSecurityGroupId=GetAtt(security_group, SG_GROUP_ID),
        Description=f"From load balancer to services on {port}",
    )


def define_load_balancer(
    security_group: SecurityGroup, subnet_ids: list
) -> LoadBalancer:
    return LoadBalancer(
        LB_T,
        Scheme="internet-facing",
        Type="application",
        IpAddressType="ipv4",
        Subnets=subnet_ids,
        SecurityGroups=[GetAtt(security_group, SG_GROUP_ID)],
        LoadBalancerAttributes=[
            LoadBalancerAttributes(Key="routing.http2.enabled", Value="true"),
        ],
    )


def http_to_https_default() -> Action:
    """
    Predefined action to redirect HTTP to HTTPS
    """
    return Action(
        RedirectConfig=RedirectConfig(
            Protocol="HTTPS",
            Port=str(HTTPS_PORT),
            Host="#{host}",
            Path="/#{path}",
            Query="#{query}",
            StatusCode=r"HTTP_301",
        ),
        Type="redirect",
    )


def forward_to(target_group: TargetGroup) -> Action:
    return Action(Type="forward", TargetGroupArn=Ref(target_group))


def define_plain_listener(load_balancer: LoadBalancer) -> Listener:
    """
    Port 80 listener. Only redirects, so it does not depend on the certificate.
    """
    return Listener(
        HTTP_LISTENER_T,
        LoadBalancerArn=Ref(load_balancer),
        Port=HTTP_PORT,
        Protocol="HTTP",
        DefaultActions=[http_to_https_default()],
    )


def define_secure_listener(
    load_balancer: LoadBalancer,
    certificate,
    primary_target_group: TargetGroup,
    ssl_policy: str = None,
) -> Listener:
    """
    Port 443 listener. Its default action forwards to the primary service.

    :param troposphere.elasticloadbalancingv2.LoadBalancer load_balancer:
    :param troposphere.certificatemanager.Certificate certificate:
    :param troposphere.elasticloadbalancingv2.TargetGroup primary_target_group:
    :param str ssl_policy:
    """
    props = {
        "LoadBalancerArn": Ref(load_balancer),
        "Port": HTTPS_PORT,
        "Protocol": "HTTPS",
        "Certificates": [Certificate(CertificateArn=Ref(certificate))],
        "DefaultActions": [forward_to(primary_target_group)],
    }
    if ssl_policy:
        props["SslPolicy"] = ssl_policy
    return Listener(HTTPS_LISTENER_T, **props)


def define_listener_rule(
    rule: RoutingRule, listener: Listener, target_group: TargetGroup
) -> ListenerRule:
    return ListenerRule(
        f"{rule.service.logical_name}ListenerRule",
        ListenerArn=Ref(listener),
        Priority=rule.priority,
        Conditions=[
            Condition(
                Field="path-pattern",
                PathPatternConfig=PathPatternConfig(Values=[rule.path_pattern]),
            )
        ],
        Actions=[
            ListenerRuleAction(Type="forward", TargetGroupArn=Ref(target_group))
        ],
    )
