#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Shared ECS cluster and the log group all the services log into.
"""

from troposphere import ecs
from troposphere.logs import LogGroup

from ecs_webstack.ecs.ecs_params import CLUSTER_T, DEFAULT_LOG_RETENTION, LOG_GROUP_T


def define_cluster(cluster_name: str) -> ecs.Cluster:
    return ecs.Cluster(
        CLUSTER_T,
        ClusterName=cluster_name,
        CapacityProviders=["FARGATE", "FARGATE_SPOT"],
        DefaultCapacityProviderStrategy=[
            ecs.CapacityProviderStrategyItem(CapacityProvider="FARGATE", Weight=1)
        ],
        ClusterSettings=[ecs.ClusterSetting(Name="containerInsights", Value="enabled")],
    )


def define_log_group(
    stack_name: str, retention_in_days: int = DEFAULT_LOG_RETENTION
) -> LogGroup:
    return LogGroup(
        LOG_GROUP_T,
        LogGroupName=f"/ecs/{stack_name}",
        RetentionInDays=retention_in_days,
    )
