#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Path based routing of the secure listener. The first declared service gets the listener default
action, every other one a path-pattern rule.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.compose.service_spec import ServiceSpec

from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import ConfigurationError

PRIORITY_STEP = 10
MIN_PRIORITY = 1
MAX_PRIORITY = 50000
WILDCARDS = re.compile(r"[*?]")


class RoutingRule:
    """
    :ivar str path_pattern:
    :ivar int priority:
    :ivar ServiceSpec service: the service traffic is forwarded to
    """

    def __init__(self, path_pattern: str, priority: int, service: ServiceSpec):
        self.path_pattern = path_pattern
        self.priority = priority
        self.service = service

    def __repr__(self):
        return f"RoutingRule({self.priority}, {self.path_pattern} -> {self.service.name})"


def path_pattern_covers(pattern: str, other: str) -> bool:
    """
    Whether every path matching other also matches pattern. Only a literal prefix followed by
    a single trailing * is considered, such as /api/* covering /api/users or /api/v?/*

    :param str pattern: the path pattern evaluated first
    :param str other: the path pattern evaluated after
    """
    if not pattern.endswith("*") or WILDCARDS.search(pattern[:-1]):
        return False
    return WILDCARDS.split(other, 1)[0].startswith(pattern[:-1])


def validate_path_patterns(services: list) -> None:
    primary = services[0]
    if primary.path_pattern:
        raise ConfigurationError(
            f"{primary.name} - the first service is the default target of the load balancer "
            f"and cannot declare x-routing.PathPattern ({primary.path_pattern})"
        )
    seen = []
    for service in services[1:]:
        if not service.path_pattern:
            raise ConfigurationError(
                f"{service.name} - x-routing.PathPattern is required for all services but the first one, "
                f"{primary.name}"
            )
        for earlier in seen:
            if earlier.path_pattern == service.path_pattern:
                raise ConfigurationError(
                    f"{service.name} - x-routing.PathPattern {service.path_pattern} "
                    f"is already used by {earlier.name}"
                )
            if path_pattern_covers(earlier.path_pattern, service.path_pattern):
                raise ConfigurationError(
                    f"{service.name} - x-routing.PathPattern {service.path_pattern} would never match: "
                    f"{earlier.name} {earlier.path_pattern} is evaluated first"
                )
        seen.append(service)


def define_routing_rules(services: list) -> tuple:
    """
    Validates the routing of the services and assigns the listener rules priorities,
    strictly increasing in declaration order.

    :param list[ServiceSpec] services: in declaration order
    :return: the primary service and the routing rules
    :rtype: tuple[ServiceSpec, list[RoutingRule]]
    :raises ConfigurationError: if the routing would be ambiguous
    """
    if not services:
        raise ConfigurationError("At least one service must be defined")
    validate_path_patterns(services)
    rules = []
    previous = 0
    for service in services[1:]:
        priority = (
            service.priority
            if service.priority is not None
            else previous + PRIORITY_STEP
        )
        if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
            raise ConfigurationError(
                f"{service.name} - x-routing.Priority must be in range",
                (MIN_PRIORITY, MAX_PRIORITY),
                "Got",
                priority,
            )
        if priority <= previous:
            raise ConfigurationError(
                f"{service.name} - x-routing.Priority {priority} must be higher than "
                f"the previous rule priority, {previous}"
            )
        rules.append(RoutingRule(service.path_pattern, priority, service))
        previous = priority
    for rule in rules:
        LOG.debug(rule)
    return services[0], rules
