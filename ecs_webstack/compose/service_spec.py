#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to parse the services definitions into ServiceSpec, the operator input of a deployment.
"""

from __future__ import annotations

import re
from copy import deepcopy

from compose_x_common.compose_x_common import keyisset, set_else_none

from ecs_webstack.common import logical_name
from ecs_webstack.common.logging import LOG
from ecs_webstack.ecs.ecs_params import DEFAULT_CPU, DEFAULT_MEMORY, FARGATE_MODES
from ecs_webstack.exceptions import ConfigurationError

PATH_PATTERN_RE = re.compile(r"^/[A-Za-z0-9_\-.$/~\"'@:+&*?]{0,127}$")
PORT_RE = re.compile(r"^(?:(?:[\d.]+:)?(?P<published>\d+):)?(?P<target>\d+)(?:/(?P<protocol>tcp|udp))?$")

DEFAULT_SCALING_RANGE = "1-10"
DEFAULT_SCALE_IN_COOLDOWN = 60


class HealthCheck:
    """
    Target group health check. Ranges follow the ELBv2 limits.
    """

    interval_range = (5, 300)
    timeout_range = (2, 120)

    def __init__(self, service_name: str, definition: dict):
        self.path = set_else_none("Path", definition, "/")
        self.interval = set_else_none("Interval", definition, 30)
        self.timeout = set_else_none("Timeout", definition, 5)
        if not min(self.interval_range) <= self.interval <= max(self.interval_range):
            raise ConfigurationError(
                f"{service_name} - HealthCheck.Interval must be in range",
                self.interval_range,
                "Got",
                self.interval,
            )
        if not min(self.timeout_range) <= self.timeout <= max(self.timeout_range):
            raise ConfigurationError(
                f"{service_name} - HealthCheck.Timeout must be in range",
                self.timeout_range,
                "Got",
                self.timeout,
            )
        if self.timeout >= self.interval:
            raise ConfigurationError(
                f"{service_name} - HealthCheck.Timeout ({self.timeout}) must be lower than "
                f"HealthCheck.Interval ({self.interval})"
            )

    def __repr__(self):
        return f"HealthCheck({self.path}, {self.interval}s, {self.timeout}s)"


def define_port(service_name: str, ports: list) -> int:
    """
    Identifies the container port the load balancer sends traffic to. Only the first port is used.

    :param str service_name:
    :param list ports: the compose ports, short or long syntax
    :rtype: int
    """
    if not ports:
        LOG.info(f"{service_name} - No ports defined. Defaulting to 80")
        return 80
    if len(ports) > 1:
        LOG.warning(
            f"{service_name} - More than one port defined. Only the first one is exposed via the load balancer."
        )
    port = ports[0]
    if isinstance(port, int):
        return port
    elif isinstance(port, dict):
        return int(port["target"])
    parts = PORT_RE.match(str(port))
    if not parts:
        raise ConfigurationError(f"{service_name} - Port {port} is not a valid port definition")
    if parts.group("protocol") == "udp":
        raise ConfigurationError(
            f"{service_name} - Port {port} uses UDP which an Application Load Balancer cannot route"
        )
    return int(parts.group("target"))


def define_environment(service_name: str, environment) -> dict:
    """
    Normalizes the compose environment (mapping or list of KEY=VALUE) into an ordered mapping.
    """
    if not environment:
        return {}
    if isinstance(environment, dict):
        return {
            key: "" if value is None else str(value) for key, value in environment.items()
        }
    variables = {}
    for item in environment:
        if "=" not in item:
            raise ConfigurationError(
                f"{service_name} - environment {item} must be in the KEY=VALUE format"
            )
        key, value = item.split("=", 1)
        variables[key] = value
    return variables


def define_scaling_range(service_name: str, range_def: str) -> tuple:
    new_min = int(range_def.split("-")[0])
    new_max = int(range_def.split("-")[1])
    if new_min > new_max:
        raise ConfigurationError(
            f"{service_name} - x-scaling.Range minimum {new_min} is higher than maximum {new_max}"
        )
    if new_max < 1:
        raise ConfigurationError(
            f"{service_name} - x-scaling.Range maximum must be at least 1"
        )
    return new_min, new_max


def define_compute(service_name: str, compute: dict) -> tuple:
    cpu = set_else_none("Cpu", compute, DEFAULT_CPU)
    memory = set_else_none("Memory", compute, DEFAULT_MEMORY)
    if cpu not in FARGATE_MODES:
        raise ConfigurationError(
            f"{service_name} - x-compute.Cpu {cpu} is not valid. Must be one of",
            list(FARGATE_MODES.keys()),
        )
    if memory not in FARGATE_MODES[cpu]:
        raise ConfigurationError(
            f"{service_name} - x-compute.Memory {memory} is not valid for {cpu} CPU units. Must be one of",
            FARGATE_MODES[cpu],
        )
    return cpu, memory


class ServiceSpec:
    """
    One service to deploy, as declared by the operator. Not meant to be modified once parsed.

    :ivar str name: name of the service in the input file
    :ivar str image: container image URI
    :ivar int port: container port the target group sends traffic to
    :ivar str path_pattern: ALB path pattern, None for the primary service
    :ivar int priority: explicit listener rule priority, if any
    :ivar HealthCheck health_check:
    :ivar int replicas: desired count
    :ivar int min_capacity:
    :ivar int max_capacity:
    :ivar int scale_in_cooldown:
    :ivar dict environment:
    :ivar int cpu:
    :ivar int memory:
    """

    def __init__(self, name: str, definition: dict):
        self.name = name
        self.definition = deepcopy(definition)
        try:
            self.logical_name = logical_name(name)
        except ValueError as error:
            raise ConfigurationError(str(error)) from error
        self.image = self.definition["image"]
        self.port = define_port(name, set_else_none("ports", self.definition, []))
        self.environment = define_environment(
            name, set_else_none("environment", self.definition)
        )

        routing = set_else_none("x-routing", self.definition, {})
        self.path_pattern = set_else_none("PathPattern", routing)
        if self.path_pattern and not PATH_PATTERN_RE.match(self.path_pattern):
            raise ConfigurationError(
                f"{name} - x-routing.PathPattern {self.path_pattern} is not valid. Expected",
                PATH_PATTERN_RE.pattern,
            )
        self.priority = set_else_none("Priority", routing, eval_bool=True)
        self.health_check = (
            HealthCheck(name, routing["HealthCheck"])
            if keyisset("HealthCheck", routing)
            else None
        )

        scaling = set_else_none("x-scaling", self.definition, {})
        self.min_capacity, self.max_capacity = define_scaling_range(
            name, set_else_none("Range", scaling, DEFAULT_SCALING_RANGE)
        )
        self.scale_in_cooldown = set_else_none(
            "ScaleInCooldown", scaling, DEFAULT_SCALE_IN_COOLDOWN, eval_bool=True
        )
        self.replicas = self.define_replicas(
            set_else_none(
                "replicas",
                set_else_none("deploy", self.definition, {}),
                1,
                eval_bool=True,
            )
        )
        self.cpu, self.memory = define_compute(
            name, set_else_none("x-compute", self.definition, {})
        )

    def __repr__(self):
        return f"ServiceSpec({self.name}, {self.path_pattern or 'primary'})"

    def define_replicas(self, replicas: int) -> int:
        if replicas < self.min_capacity:
            LOG.warning(
                f"{self.name} - deploy.replicas {replicas} is below the scaling minimum. Using {self.min_capacity}"
            )
            return self.min_capacity
        elif replicas > self.max_capacity:
            LOG.warning(
                f"{self.name} - deploy.replicas {replicas} is above the scaling maximum. Using {self.max_capacity}"
            )
            return self.max_capacity
        return replicas

    @property
    def url_path(self) -> str:
        """
        The sub-path the service is reachable under, i.e. /api/* -> /api
        """
        if not self.path_pattern:
            return ""
        return re.sub(r"/?[*?].*$", "", self.path_pattern)
