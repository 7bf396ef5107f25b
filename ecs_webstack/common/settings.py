#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module for the WebStackSettings class
"""

from __future__ import annotations

import re
from copy import deepcopy
from os import path

import boto3
import jsonschema
import yaml
from botocore.exceptions import ClientError
from compose_x_common.aws import get_assume_role_session, validate_iam_role_arn
from compose_x_common.compose_x_common import keyisset, set_else_none

from ecs_webstack.common.envsubst import interpolate
from ecs_webstack.common.logging import LOG
from ecs_webstack.compose.service_spec import ServiceSpec
from ecs_webstack.dynamodb.dynamodb_table import TableSpec
from ecs_webstack.ecs.ecs_params import DEFAULT_CPU_ARCHITECTURE, DEFAULT_LOG_RETENTION
from ecs_webstack.exceptions import ConfigurationError
from ecs_webstack.specs import load_input_schema

X_KEY = "x-webstack"
DEFAULT_VALIDATION_TIMEOUT = 1800
DEFAULT_MAX_WORKERS = 4


def load_input_file(file_path: str) -> dict:
    if not path.exists(file_path):
        raise ConfigurationError(f"Input file {file_path} does not exist")
    with open(file_path, encoding="utf-8") as file_fd:
        content = yaml.safe_load(file_fd.read())
    if not isinstance(content, dict):
        raise ConfigurationError(f"Input file {file_path} is not a valid YAML mapping")
    return content


def validate_input(content: dict) -> None:
    """
    :raises ConfigurationError: if the content does not match the input schema
    """
    try:
        jsonschema.validate(content, load_input_schema())
    except jsonschema.ValidationError as error:
        location = ".".join(str(part) for part in error.absolute_path)
        raise ConfigurationError(
            f"Invalid input at {location or 'root'} - {error.message}"
        ) from error


def define_stack_name(domain_name: str) -> str:
    """
    From the domain name, i.e. todo.example.com -> todo-example-com
    """
    name = re.sub(r"[^a-zA-Z0-9]+", "-", domain_name).strip("-")
    if not name[0].isalpha():
        name = f"webstack-{name}"
    return name[:64]


class WebStackSettings:
    """
    Class to handle the settings of an execution: the CLI arguments, the AWS session and the
    parsed input file.

    :ivar list[ServiceSpec] services: in declaration order, the first one is the primary
    :ivar list[TableSpec] tables:
    :ivar boto3.session.Session session:
    """

    name_arg = "Name"
    command_arg = "command"
    input_file_arg = "WebStackFile"
    output_dir_arg = "OutputDirectory"
    format_arg = "TemplateFormat"
    region_arg = "RegionName"
    arn_arg = "RoleArn"
    workers_arg = "MaxWorkers"

    deploy_arg = "up"
    render_arg = "render"
    plan_arg = "plan"
    config_render_arg = "config"

    default_format = "json"
    allowed_formats = ["json", "yaml"]
    default_output_dir = ".webstack"

    active_commands = [
        {
            "name": deploy_arg,
            "help": "Provisions the resources and prints the URLs",
        },
        {
            "name": render_arg,
            "help": "Generates the CFN template locally",
        },
        {
            "name": plan_arg,
            "help": "Shows the creation waves and the changes compared to the last run",
        },
    ]
    validation_commands = [
        {
            "name": config_render_arg,
            "help": "Prints the interpolated and validated input",
        }
    ]
    neutral_commands = [
        {"name": "version", "help": "ECS WebStack Version"},
    ]
    all_commands = active_commands + validation_commands + neutral_commands

    def __init__(self, content=None, profile_name=None, session=None, **kwargs):
        self.__args = deepcopy(kwargs)
        self.session = boto3.session.Session(
            region_name=set_else_none(self.region_arg, kwargs)
        )
        self.override_session(session, profile_name, kwargs)
        self.aws_region = (
            kwargs[self.region_arg]
            if keyisset(self.region_arg, kwargs)
            else self.session.region_name
        )
        self.input_file = set_else_none(self.input_file_arg, kwargs)
        self.content = self.set_content(content)
        self.webstack = self.content[X_KEY]

        self.domain_name = self.webstack["DomainName"]
        self.alternative_names = set_else_none("AlternativeNames", self.webstack, [])
        self.hosted_zone_id = set_else_none("HostedZoneId", self.webstack)
        self.hosted_zone_name = set_else_none("HostedZoneName", self.webstack)
        self.name = (
            kwargs[self.name_arg]
            if keyisset(self.name_arg, kwargs)
            else set_else_none(
                "Name", self.webstack, define_stack_name(self.domain_name)
            )
        )
        self.cluster_name = set_else_none("ClusterName", self.webstack, self.name)
        self.log_retention = set_else_none(
            "LogRetentionInDays", self.webstack, DEFAULT_LOG_RETENTION
        )
        self.cpu_architecture = set_else_none(
            "CpuArchitecture", self.webstack, DEFAULT_CPU_ARCHITECTURE
        )
        self.ssl_policy = set_else_none("SslPolicy", self.webstack)
        self.validation_timeout = set_else_none(
            "ValidationTimeout",
            self.webstack,
            DEFAULT_VALIDATION_TIMEOUT,
            eval_bool=True,
        )
        self.max_workers = int(
            set_else_none(self.workers_arg, kwargs, DEFAULT_MAX_WORKERS)
        )
        if self.max_workers < 1:
            raise ConfigurationError(
                f"{self.workers_arg} must be at least 1. Got {self.max_workers}"
            )

        self.services = self.set_services()
        self.tables = self.set_tables()
        self.set_output_settings(kwargs)

    def __repr__(self):
        return f"WebStackSettings({self.name}, {self.domain_name})"

    @property
    def command(self) -> str:
        return set_else_none(self.command_arg, self.__args)

    @property
    def state_file(self) -> str:
        return path.join(self.output_dir, f"{self.name}.state.json")

    @property
    def template_file(self) -> str:
        return path.join(self.output_dir, f"{self.name}.{self.format}")

    def override_session(self, session, profile_name, kwargs):
        """
        Method to set the session based on input params

        :param boto3.session.Session session: The session to override the API calls with
        :param str profile_name: Name of a profile configured in .aws/config
        :param dict kwargs: CLI kwargs
        """
        if profile_name and not session:
            self.session = boto3.session.Session(
                profile_name=profile_name,
                region_name=set_else_none(self.region_arg, kwargs),
            )
        elif session and not (profile_name or keyisset(self.arn_arg, kwargs)):
            self.session = session
        if keyisset(self.arn_arg, kwargs):
            validate_iam_role_arn(arn=kwargs[self.arn_arg])
            try:
                self.session = get_assume_role_session(
                    session if session else self.session,
                    kwargs[self.arn_arg],
                    session_name=f"WebStack@{set_else_none(self.command_arg, kwargs, 'cli')}",
                    region=set_else_none(self.region_arg, kwargs),
                )
            except ClientError:
                LOG.error(f"Failed to use the Role ARN {kwargs[self.arn_arg]}")
                raise

    def set_content(self, content: dict = None) -> dict:
        """
        Loads the input, expands the environment variables and validates it.
        """
        if content is None:
            if not self.input_file:
                raise ConfigurationError(
                    f"No content nor input file ({self.input_file_arg}) provided"
                )
            LOG.debug(f"Input file: {self.input_file}")
            content = load_input_file(self.input_file)
        interpolated = interpolate(deepcopy(content))
        LOG.info("Validating against input schema")
        validate_input(interpolated)
        return interpolated

    def set_services(self) -> list:
        services = []
        logical_names = {}
        for name, definition in self.content["services"].items():
            service = ServiceSpec(name, definition)
            if service.logical_name in logical_names:
                raise ConfigurationError(
                    f"services.{name} and services.{logical_names[service.logical_name]} "
                    f"have the same logical name {service.logical_name}"
                )
            logical_names[service.logical_name] = name
            services.append(service)
        return services

    def set_tables(self) -> list:
        services_names = [service.name for service in self.services]
        return [
            TableSpec(name, definition, services_names)
            for name, definition in set_else_none("x-dynamodb", self.content, {}).items()
        ]

    def set_output_settings(self, kwargs):
        """
        Method to set the output settings based on kwargs
        """
        self.format = self.default_format
        if (
            keyisset(self.format_arg, kwargs)
            and kwargs[self.format_arg] in self.allowed_formats
        ):
            self.format = kwargs[self.format_arg]
        self.output_dir = (
            kwargs[self.output_dir_arg]
            if keyisset(self.output_dir_arg, kwargs)
            else self.default_output_dir
        )
