#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Key-value tables declared under x-dynamodb and the access the services get to them.
"""

from __future__ import annotations

from copy import deepcopy

from compose_x_common.compose_x_common import set_else_none
from troposphere import GetAtt, Join, dynamodb

from ecs_webstack.common import logical_name
from ecs_webstack.common.logging import LOG
from ecs_webstack.dynamodb.dynamodb_perms import ACCESS_TYPES
from ecs_webstack.exceptions import ConfigurationError

DEFAULT_ENV_VAR = "DYNAMODB_TABLE_NAME"
DEFAULT_ACCESS = "RW"


class TableAccess:
    """
    :ivar str service_name:
    :ivar str access: RO or RW
    :ivar str env_var: name of the variable exposing the table name to the service
    """

    def __init__(self, service_name: str, definition: dict):
        self.service_name = service_name
        self.access = set_else_none("Access", definition, DEFAULT_ACCESS)
        self.env_var = set_else_none("EnvVar", definition, DEFAULT_ENV_VAR)
        if self.access not in ACCESS_TYPES:
            raise ConfigurationError(
                f"{service_name} - Access {self.access} is not valid. Must be one of",
                list(ACCESS_TYPES.keys()),
            )


class TableSpec:
    """
    Table from x-dynamodb.<name>

    :ivar str name:
    :ivar str logical_name:
    :ivar str hash_key:
    :ivar str hash_key_type:
    :ivar list[TableAccess] services:
    """

    def __init__(self, name: str, definition: dict, services_names: list):
        self.name = name
        self.definition = deepcopy(definition)
        try:
            self.logical_name = logical_name(name)
        except ValueError as error:
            raise ConfigurationError(str(error)) from error
        self.hash_key = self.definition["HashKey"]["Name"]
        self.hash_key_type = set_else_none("Type", self.definition["HashKey"], "S")
        self.services = []
        for service_name, access_def in set_else_none(
            "Services", self.definition, {}
        ).items():
            if service_name not in services_names:
                raise ConfigurationError(
                    f"x-dynamodb.{name} - Service {service_name} is not defined. Defined services",
                    services_names,
                )
            self.services.append(TableAccess(service_name, access_def or {}))
        if not self.services:
            LOG.warning(f"x-dynamodb.{name} - No service has access to the table")

    def __repr__(self):
        return f"TableSpec({self.name})"

    @property
    def title(self) -> str:
        return f"{self.logical_name}Table"

    def access_for(self, service_name: str) -> TableAccess | None:
        for access in self.services:
            if access.service_name == service_name:
                return access
        return None


def define_table(table: TableSpec) -> dynamodb.Table:
    return dynamodb.Table(
        table.title,
        BillingMode="PAY_PER_REQUEST",
        AttributeDefinitions=[
            dynamodb.AttributeDefinition(
                AttributeName=table.hash_key, AttributeType=table.hash_key_type
            )
        ],
        KeySchema=[dynamodb.KeySchema(AttributeName=table.hash_key, KeyType="HASH")],
    )


def table_access_statement(table: dynamodb.Table, access: TableAccess) -> dict:
    """
    IAM statement granting the access type on the table and its indexes
    """
    statement = deepcopy(ACCESS_TYPES[access.access])
    statement["Sid"] = f"{access.access}On{table.title}"
    statement["Resource"] = [
        GetAtt(table, "Arn"),
        Join("", [GetAtt(table, "Arn"), "/index/*"]),
    ]
    return statement
