#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from os import path

import boto3
import placebo
from conftest import FakeNetworkProvider, get_settings
from pytest import raises

from ecs_webstack.exceptions import ConfigurationError
from ecs_webstack.route53.route53_aws import (
    Route53DnsProvider,
    find_hosted_zone,
    lookup_hosted_zone,
)
from ecs_webstack.vpc.vpc_aws import (
    Ec2NetworkProvider,
    NetworkContext,
    resolve_network,
)

HERE = path.abspath(path.dirname(__file__))


def get_session(case_path: str):
    session = boto3.session.Session(region_name="eu-west-1")
    pill = placebo.attach(session, data_path=f"{HERE}/{case_path}")
    # pill.record()
    pill.playback()
    return session


def test_default_vpc():
    network = Ec2NetworkProvider(
        get_session("x_aws/default_vpc")
    ).resolve_default_network()
    assert network.vpc_id == "vpc-0fedcba987654321"
    assert network.subnet_ids == [
        "subnet-0a1b2c3d4e5f67890",
        "subnet-0b2c3d4e5f6789012",
    ]


def test_no_default_vpc():
    with raises(ConfigurationError):
        Ec2NetworkProvider(get_session("x_aws/no_default_vpc")).resolve_default_network()


def test_network_from_input(todo_content):
    provider = FakeNetworkProvider()
    network = resolve_network(get_settings(todo_content), provider)
    assert provider.calls == 0
    assert network == NetworkContext(
        "vpc-0a1b2c3d4e5f67890",
        [
            "subnet-0a1b2c3d4e5f67893",
            "subnet-0a1b2c3d4e5f67891",
            "subnet-0a1b2c3d4e5f67892",
        ],
    )

    del todo_content["x-webstack"]["Network"]
    network = resolve_network(get_settings(todo_content), provider)
    assert provider.calls == 1
    assert network.subnet_ids == ["subnet-01", "subnet-02"]


def test_lookup_hosted_zone():
    session = get_session("x_aws/hosted_zone")
    assert lookup_hosted_zone("example.com", session) == "Z0123456789ABCDEFGHIJ"
    assert find_hosted_zone("todo.example.com", session) == "Z0123456789ABCDEFGHIJ"
    with raises(ConfigurationError):
        lookup_hosted_zone("example.org", session)
    with raises(ConfigurationError):
        find_hosted_zone("app.example.org", session)


def test_upsert_records():
    dns = Route53DnsProvider("Z0123456789ABCDEFGHIJ", get_session("x_aws/hosted_zone"))
    assert dns.upsert_record(
        "CNAME", "_3f1c2b.todo.example.com.", "_9e8d7c.acm-validations.aws.", 60
    ) == {"Ref": "_3f1c2b.todo.example.com.", "ChangeId": "/change/C0123456789ABCDEFGHIJ"}
    assert dns.upsert_alias(
        "todo.example.com",
        "webstack-1234567890.eu-west-1.elb.amazonaws.com",
        "Z32O12XQLNTSW2",
    )["Ref"] == "todo.example.com"
