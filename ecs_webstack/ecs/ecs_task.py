#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Fargate task definition of a service: one container, logging to the shared log group.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.compose.service_spec import ServiceSpec

from troposphere import AWS_REGION, GetAtt, Ref
from troposphere.ecs import (
    ContainerDefinition,
    Environment,
    LogConfiguration,
    PortMapping,
    RuntimePlatform,
    TaskDefinition,
)
from troposphere.iam import Role
from troposphere.logs import LogGroup

from ecs_webstack.ecs.ecs_params import DEFAULT_CPU_ARCHITECTURE, LOG_STREAM_PREFIX


def define_container(
    service: ServiceSpec, log_group: LogGroup, environment: dict
) -> ContainerDefinition:
    """
    :param ServiceSpec service:
    :param troposphere.logs.LogGroup log_group:
    :param dict environment: the environment variables, values can be CFN functions
    """
    return ContainerDefinition(
        Name=service.name,
        Image=service.image,
        Essential=True,
        PortMappings=[
            PortMapping(
                ContainerPort=service.port, HostPort=service.port, Protocol="tcp"
            )
        ],
        Environment=[
            Environment(Name=name, Value=value)
            for name, value in environment.items()
        ],
        LogConfiguration=LogConfiguration(
            LogDriver="awslogs",
            Options={
                "awslogs-group": Ref(log_group),
                "awslogs-region": Ref(AWS_REGION),
                "awslogs-stream-prefix": LOG_STREAM_PREFIX,
            },
        ),
    )


def define_task_definition(
    stack_name: str,
    service: ServiceSpec,
    log_group: LogGroup,
    execution_role: Role,
    task_role: Role = None,
    environment: dict = None,
    cpu_architecture: str = DEFAULT_CPU_ARCHITECTURE,
) -> TaskDefinition:
    """
    Task definition sized from the service compute tier.

    :param str stack_name:
    :param ServiceSpec service:
    :param troposphere.logs.LogGroup log_group:
    :param troposphere.iam.Role execution_role:
    :param troposphere.iam.Role task_role: only when the service was granted access to other resources
    :param dict environment: the service environment and the variables from the resources it can access
    :param str cpu_architecture: X86_64 or ARM64
    """
    props = {
        "Family": f"{stack_name}-{service.name}",
        "Cpu": str(service.cpu),
        "Memory": str(service.memory),
        "NetworkMode": "awsvpc",
        "RequiresCompatibilities": ["FARGATE"],
        "ExecutionRoleArn": GetAtt(execution_role, "Arn"),
        "RuntimePlatform": RuntimePlatform(
            CpuArchitecture=cpu_architecture, OperatingSystemFamily="LINUX"
        ),
        "ContainerDefinitions": [
            define_container(
                service, log_group, environment if environment else service.environment
            )
        ],
    }
    if task_role:
        props["TaskRoleArn"] = GetAtt(task_role, "Arn")
    return TaskDefinition(f"{service.logical_name}TaskDefinition", **props)
