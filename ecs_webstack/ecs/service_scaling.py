#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Autoscaling of the services desired count.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.compose.service_spec import ServiceSpec

from troposphere import GetAtt, Join, Ref
from troposphere.applicationautoscaling import (
    ScalableTarget,
    ScalingPolicy,
    StepAdjustment,
    StepScalingPolicyConfiguration,
)
from troposphere.ecs import Cluster, Service

from ecs_webstack.ecs.ecs_params import SCALABLE_DIMENSION, SCALING_NAMESPACE


def service_resource_id(cluster: Cluster, ecs_service: Service) -> Join:
    """
    service/<cluster name>/<service name>
    """
    return Join("/", ["service", Ref(cluster), GetAtt(ecs_service, "Name")])


def define_scalable_target(
    service: ServiceSpec, cluster: Cluster, ecs_service: Service
) -> ScalableTarget:
    return ScalableTarget(
        f"{service.logical_name}ScalableTarget",
        MinCapacity=service.min_capacity,
        MaxCapacity=service.max_capacity,
        ResourceId=service_resource_id(cluster, ecs_service),
        ScalableDimension=SCALABLE_DIMENSION,
        ServiceNamespace=SCALING_NAMESPACE,
    )


def define_scale_in_policy(
    service: ServiceSpec, cluster: Cluster, ecs_service: Service
) -> ScalingPolicy:
    """
    Removes one task at a time. There is no scale out step.

    :param ServiceSpec service:
    :param troposphere.ecs.Cluster cluster:
    :param troposphere.ecs.Service ecs_service:
    :rtype: troposphere.applicationautoscaling.ScalingPolicy
    """
    return ScalingPolicy(
        f"{service.logical_name}ScaleInPolicy",
        PolicyName=f"{service.logical_name}ScaleInPolicy",
        PolicyType="StepScaling",
        ResourceId=service_resource_id(cluster, ecs_service),
        ScalableDimension=SCALABLE_DIMENSION,
        ServiceNamespace=SCALING_NAMESPACE,
        StepScalingPolicyConfiguration=StepScalingPolicyConfiguration(
            AdjustmentType="ChangeInCapacity",
            Cooldown=service.scale_in_cooldown,
            MetricAggregationType="Maximum",
            StepAdjustments=[
                StepAdjustment(
                    MetricIntervalUpperBound=0,
                    ScalingAdjustment=-1,
                ),
            ],
        ),
    )
