#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
In-memory providers and the common fixtures.
"""

import threading
from copy import deepcopy
from os import path

import yaml
from pytest import fixture

from ecs_webstack.acm.validation import VALIDATED, ValidationChallenge
from ecs_webstack.common.settings import WebStackSettings
from ecs_webstack.exceptions import CertificateIssuanceError, ProvisioningError
from ecs_webstack.providers import (
    CertificateAuthority,
    DnsProvider,
    NetworkProvider,
    ResourceProvider,
)
from ecs_webstack.vpc.vpc_aws import NetworkContext

HERE = path.abspath(path.dirname(__file__))
USE_CASES = path.abspath(f"{HERE}/../../use-cases")

CERTIFICATE_ARN = "arn:aws:acm:eu-west-1:012345678912:certificate/0a1b2c3d-4e5f-6789-0a1b-2c3d4e5f6789"
HOSTED_ZONE_ID = "Z0123456789ABCDEFGHIJ"


def get_use_case(file_name: str) -> dict:
    with open(f"{USE_CASES}/{file_name}") as case_fd:
        return yaml.safe_load(case_fd.read())


def challenge(name: str, value: str = None) -> ValidationChallenge:
    return ValidationChallenge(
        "CNAME",
        f"_{name}.todo.example.com.",
        value or f"_{name}.acm-validations.aws.",
    )


class FakeResourceProvider(ResourceProvider):
    """
    Returns a handle with all the attributes the resources of the graph use.
    """

    def __init__(self, fail_on: list = None):
        self.lock = threading.Lock()
        self.calls = []
        self.fail_on = fail_on or []
        self.properties = {}

    def handle(self, logical_name: str) -> dict:
        return {
            "Ref": f"{logical_name}-id",
            "Arn": f"arn:aws:fake:eu-west-1:012345678912:{logical_name}",
            "GroupId": "sg-0a1b2c3d4e5f67890",
            "DNSName": "webstack-1234567890.eu-west-1.elb.amazonaws.com",
            "CanonicalHostedZoneID": "Z32O12XQLNTSW2",
            "Name": logical_name,
        }

    def create(self, resource_type, logical_name, properties):
        with self.lock:
            self.calls.append(("create", logical_name))
            self.properties[logical_name] = deepcopy(properties)
        if logical_name in self.fail_on:
            raise ProvisioningError("Resource rejected", logical_name, resource_type)
        return self.handle(logical_name)

    def update(self, resource_type, logical_name, identifier, properties):
        with self.lock:
            self.calls.append(("update", logical_name))
            self.properties[logical_name] = deepcopy(properties)
        if logical_name in self.fail_on:
            raise ProvisioningError("Resource rejected", logical_name, resource_type)
        return self.handle(logical_name)

    def titles(self, action: str = "create") -> list:
        return [title for call_action, title in self.calls if call_action == action]


class FakeCertificateAuthority(CertificateAuthority):
    """
    :param list challenges: what the certificate request returns
    :param dict statuses: validation status per record name. Validated when not set.
    :param bool refuse: refuses to issue the challenges
    """

    def __init__(self, challenges=None, statuses=None, refuse=False):
        self.challenges = challenges if challenges is not None else [challenge("todo")]
        self.statuses = statuses or {}
        self.refuse = refuse
        self.requests = []
        self.waits = []

    def request_certificate(self, domain_name, alternative_names=None):
        self.requests.append(domain_name)
        if self.refuse:
            raise CertificateIssuanceError(f"{domain_name} - domain ownership check failed")
        return CERTIFICATE_ARN, list(self.challenges)

    def await_validation(self, certificate_arn, challenge, timeout=None):
        self.waits.append(challenge)
        return self.statuses.get(challenge.record_name, VALIDATED)


class FakeDnsProvider(DnsProvider):
    def __init__(self):
        self.lock = threading.Lock()
        self.records = []
        self.aliases = []

    def upsert_record(self, record_type, record_name, record_value, ttl):
        with self.lock:
            self.records.append((record_type, record_name, record_value, ttl))
        return {"Ref": record_name}

    def upsert_alias(
        self, record_name, target_dns_name, target_zone_id, evaluate_target_health=True
    ):
        with self.lock:
            self.aliases.append((record_name, target_dns_name, target_zone_id))
        return {"Ref": record_name}


class FakeNetworkProvider(NetworkProvider):
    def __init__(self):
        self.calls = 0

    def resolve_default_network(self):
        self.calls += 1
        return NetworkContext("vpc-0fedcba987654321", ["subnet-02", "subnet-01"])


def get_settings(content: dict, **kwargs) -> WebStackSettings:
    args = {
        WebStackSettings.command_arg: WebStackSettings.render_arg,
        WebStackSettings.region_arg: "eu-west-1",
    }
    args.update(kwargs)
    return WebStackSettings(content=deepcopy(content), **args)


@fixture
def todo_content():
    return get_use_case("todo.yml")


@fixture
def single_content():
    return get_use_case("single.yml")


@fixture
def todo_settings(todo_content):
    return get_settings(todo_content)


@fixture
def network():
    return NetworkContext(
        "vpc-0a1b2c3d4e5f67890",
        ["subnet-0a1b2c3d4e5f67891", "subnet-0a1b2c3d4e5f67892"],
    )


@fixture
def resources():
    return FakeResourceProvider()


@fixture
def authority():
    return FakeCertificateAuthority()


@fixture
def dns():
    return FakeDnsProvider()
