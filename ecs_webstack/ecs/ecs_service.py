#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.compose.service_spec import ServiceSpec

from troposphere import GetAtt, Ref
from troposphere.ec2 import SecurityGroup
from troposphere.ecs import AwsvpcConfiguration, Cluster, DeploymentConfiguration
from troposphere.ecs import LoadBalancer as EcsLb
from troposphere.ecs import NetworkConfiguration, Service, TaskDefinition
from troposphere.elasticloadbalancingv2 import TargetGroup

from ecs_webstack.elbv2.elbv2_params import SG_GROUP_ID

HEALTH_CHECK_GRACE_PERIOD = 60


def define_service(
    service: ServiceSpec,
    cluster: Cluster,
    task_definition: TaskDefinition,
    target_group: TargetGroup,
    security_group: SecurityGroup,
    subnet_ids: list,
) -> Service:
    """
    Fargate service in the public subnets, registered into its target group.
    """
    return Service(
        f"{service.logical_name}Service",
        ServiceName=service.name,
        Cluster=Ref(cluster),
        TaskDefinition=Ref(task_definition),
        DesiredCount=service.replicas,
        LaunchType="FARGATE",
        PropagateTags="SERVICE",
        HealthCheckGracePeriodSeconds=HEALTH_CHECK_GRACE_PERIOD,
        DeploymentConfiguration=DeploymentConfiguration(
            MinimumHealthyPercent=100, MaximumPercent=200
        ),
        NetworkConfiguration=NetworkConfiguration(
            AwsvpcConfiguration=AwsvpcConfiguration(
                AssignPublicIp="ENABLED",
                Subnets=subnet_ids,
                SecurityGroups=[GetAtt(security_group, SG_GROUP_ID)],
            )
        ),
        LoadBalancers=[
            EcsLb(
                ContainerName=service.name,
                ContainerPort=service.port,
                TargetGroupArn=Ref(target_group),
            )
        ],
    )
