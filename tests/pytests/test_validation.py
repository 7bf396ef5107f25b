#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from conftest import FakeCertificateAuthority, FakeDnsProvider, challenge

from ecs_webstack.acm.validation import (
    FAILED,
    PENDING,
    VALIDATED,
    ValidationChallenge,
    await_challenges,
    dedupe_challenges,
    publish_validation_records,
)


def test_challenges_compare_by_value():
    assert challenge("todo") == ValidationChallenge(
        "CNAME", "_todo.todo.example.com.", "_todo.acm-validations.aws."
    )
    assert challenge("todo") != challenge("www")
    assert len({challenge("todo"), challenge("todo")}) == 1


def test_challenge_from_acm():
    option = {
        "DomainName": "todo.example.com",
        "ValidationStatus": "PENDING_VALIDATION",
        "ResourceRecord": {
            "Name": "_todo.todo.example.com.",
            "Type": "CNAME",
            "Value": "_todo.acm-validations.aws.",
        },
    }
    assert ValidationChallenge.from_acm(option) == challenge("todo")


def test_dedupe_keeps_first_occurrence_in_order():
    first = challenge("todo")
    duplicate = challenge("todo")
    other = challenge("www")
    unique = dedupe_challenges([first, other, duplicate])
    assert unique == [first, other]
    assert unique[0] is first
    assert dedupe_challenges([]) == []


def test_publish_one_record_per_distinct_challenge():
    dns = FakeDnsProvider()
    records = publish_validation_records(
        [challenge("todo"), challenge("www"), challenge("todo")], dns, ttl=300
    )
    assert len(records) == 2
    assert dns.records == [
        ("CNAME", "_todo.todo.example.com.", "_todo.acm-validations.aws.", 300),
        ("CNAME", "_www.todo.example.com.", "_www.acm-validations.aws.", 300),
    ]


def test_publish_twice_is_idempotent():
    dns = FakeDnsProvider()
    publish_validation_records([challenge("todo")], dns)
    publish_validation_records([challenge("todo")], dns)
    assert len(set(dns.records)) == 1


def test_publish_nothing():
    dns = FakeDnsProvider()
    assert publish_validation_records([], dns) == []
    assert dns.records == []


def test_await_each_distinct_challenge_once():
    authority = FakeCertificateAuthority()
    statuses = await_challenges(
        [challenge("todo"), challenge("www"), challenge("todo")],
        authority,
        "arn:aws:acm:eu-west-1:012345678912:certificate/abcd",
        timeout=10,
    )
    assert authority.waits == [challenge("todo"), challenge("www")]
    assert set(statuses.values()) == {VALIDATED}


def test_await_stops_at_first_not_validated():
    authority = FakeCertificateAuthority(
        statuses={"_todo.todo.example.com.": FAILED}
    )
    statuses = await_challenges(
        [challenge("todo"), challenge("www")], authority, "arn", timeout=None
    )
    assert statuses == {challenge("todo"): FAILED}
    assert authority.waits == [challenge("todo")]

    authority = FakeCertificateAuthority(statuses={"_www.todo.example.com.": PENDING})
    statuses = await_challenges(
        [challenge("todo"), challenge("www")], authority, "arn", timeout=0
    )
    assert statuses[challenge("www")] == PENDING
