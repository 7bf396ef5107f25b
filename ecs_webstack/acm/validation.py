#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
DNS validation challenges of ACM certificates.

A certificate covering overlapping names (i.e. example.com and *.example.com) gets the same
challenge more than once. Exactly one record and one validation wait must exist per distinct
(type, name, value): more records get rejected by Route53, fewer stall the validation.
"""

from __future__ import annotations

from time import monotonic
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.providers import CertificateAuthority, DnsProvider

from ecs_webstack.common.logging import LOG

VALIDATED = "validated"
FAILED = "failed"
PENDING = "pending"

DEFAULT_RECORD_TTL = 60


class ValidationChallenge:
    """
    The record the certificate authority wants to see published to prove the domain ownership.
    Compares and hashes by value.
    """

    __slots__ = ("record_type", "record_name", "record_value")

    def __init__(self, record_type: str, record_name: str, record_value: str):
        self.record_type = record_type
        self.record_name = record_name
        self.record_value = record_value

    @classmethod
    def from_acm(cls, validation_option: dict) -> ValidationChallenge:
        """
        From an ACM DomainValidationOptions item

        :param dict validation_option:
        """
        record = validation_option["ResourceRecord"]
        return cls(record["Type"], record["Name"], record["Value"])

    @property
    def key(self) -> tuple:
        return self.record_type, self.record_name, self.record_value

    def __eq__(self, other):
        if not isinstance(other, ValidationChallenge):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f"ValidationChallenge({self.record_type} {self.record_name} {self.record_value})"


def dedupe_challenges(challenges) -> list[ValidationChallenge]:
    """
    Keeps the first occurrence of each distinct challenge, in input order.

    :param list[ValidationChallenge] challenges:
    :rtype: list[ValidationChallenge]
    """
    unique = {}
    for challenge in challenges:
        unique.setdefault(challenge.key, challenge)
    if len(unique) != len(challenges):
        LOG.debug(
            f"Deduplicated {len(challenges)} validation challenges into {len(unique)}"
        )
    return list(unique.values())


def publish_validation_records(
    challenges, dns: DnsProvider, ttl: int = DEFAULT_RECORD_TTL
) -> list[tuple]:
    """
    Upserts one DNS record per distinct challenge.

    :param list[ValidationChallenge] challenges:
    :param ecs_webstack.providers.DnsProvider dns:
    :param int ttl:
    :return: the (challenge, record handle) pairs
    """
    records = []
    for challenge in dedupe_challenges(challenges):
        LOG.info(
            f"Publishing validation record {challenge.record_type} {challenge.record_name}"
        )
        records.append(
            (
                challenge,
                dns.upsert_record(
                    challenge.record_type,
                    challenge.record_name,
                    challenge.record_value,
                    ttl,
                ),
            )
        )
    return records


def await_challenges(
    challenges,
    authority: CertificateAuthority,
    certificate_arn: str,
    timeout: float = None,
) -> dict:
    """
    Waits once on each distinct challenge. Stops at the first one which did not validate.

    :param list[ValidationChallenge] challenges:
    :param ecs_webstack.providers.CertificateAuthority authority:
    :param str certificate_arn:
    :param float timeout: seconds to wait, overall
    :return: the status of each challenge waited on
    :rtype: dict
    """
    statuses = {}
    deadline = None if timeout is None else monotonic() + timeout
    for challenge in dedupe_challenges(challenges):
        remaining = None if deadline is None else max(deadline - monotonic(), 0)
        status = authority.await_validation(certificate_arn, challenge, remaining)
        statuses[challenge] = status
        LOG.info(f"{certificate_arn} - {challenge.record_name} is {status}")
        if status != VALIDATED:
            break
    return statuses
