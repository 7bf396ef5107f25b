#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
One target group per service, registering the Fargate tasks by IP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.compose.service_spec import ServiceSpec

from troposphere.elasticloadbalancingv2 import Matcher, TargetGroup, TargetGroupAttribute

DEREGISTRATION_DELAY = 30


def set_healthcheck_definition(props: dict, service: ServiceSpec) -> None:
    """
    Sets the health check properties when the service defines one. ALB defaults apply otherwise.
    """
    if not service.health_check:
        return
    props.update(
        {
            "HealthCheckEnabled": True,
            "HealthCheckProtocol": "HTTP",
            "HealthCheckPath": service.health_check.path,
            "HealthCheckIntervalSeconds": service.health_check.interval,
            "HealthCheckTimeoutSeconds": service.health_check.timeout,
            "Matcher": Matcher(HttpCode="200-399"),
        }
    )


def define_service_target_group(service: ServiceSpec, vpc_id: str) -> TargetGroup:
    props = {
        "Port": service.port,
        "Protocol": "HTTP",
        "TargetType": "ip",
        "VpcId": vpc_id,
        "TargetGroupAttributes": [
            TargetGroupAttribute(
                Key="deregistration_delay.timeout_seconds",
                Value=str(DEREGISTRATION_DELAY),
            )
        ],
    }
    set_healthcheck_definition(props, service)
    return TargetGroup(f"{service.logical_name}TargetGroup", **props)
