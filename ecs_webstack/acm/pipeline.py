#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Certificate provisioning: request the certificate, publish the validation records,
wait for every distinct challenge and hand over the certificate to the secure listener.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.providers import CertificateAuthority, DnsProvider

from ecs_webstack.acm.validation import (
    DEFAULT_RECORD_TTL,
    FAILED,
    VALIDATED,
    await_challenges,
    dedupe_challenges,
    publish_validation_records,
)
from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import (
    CertificateIssuanceError,
    ProvisioningError,
    ValidationTimeout,
)


class CertificateState:
    REQUESTED = "Requested"
    CHALLENGES_ISSUED = "ChallengesIssued"
    RECORDS_PUBLISHED = "RecordsPublished"
    VALIDATION_PENDING = "ValidationPending"
    VALIDATED = "Validated"
    ATTACHED = "Attached"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"

    transitions = {
        None: [REQUESTED],
        REQUESTED: [CHALLENGES_ISSUED, FAILED],
        CHALLENGES_ISSUED: [RECORDS_PUBLISHED],
        RECORDS_PUBLISHED: [VALIDATION_PENDING],
        VALIDATION_PENDING: [VALIDATED, FAILED, TIMED_OUT],
        VALIDATED: [ATTACHED],
        ATTACHED: [],
        FAILED: [],
        TIMED_OUT: [],
    }


class CertificatePipeline:
    """
    Drives one certificate through its states.

    :ivar str state: the current CertificateState
    :ivar list history: all the states gone through
    :ivar str certificate_arn:
    :ivar list[ValidationChallenge] challenges: the distinct challenges
    """

    def __init__(
        self,
        domain_name: str,
        authority: CertificateAuthority,
        dns: DnsProvider,
        alternative_names: list = None,
        validation_timeout: float = None,
        record_ttl: int = DEFAULT_RECORD_TTL,
    ):
        self.domain_name = domain_name
        self.alternative_names = alternative_names or []
        self.authority = authority
        self.dns = dns
        self.validation_timeout = validation_timeout
        self.record_ttl = record_ttl
        self.state = None
        self.history = []
        self.certificate_arn = None
        self.challenges = []
        self.records = []
        self.listener = None

    def __repr__(self):
        return f"CertificatePipeline({self.domain_name}, {self.state})"

    def transition(self, new_state: str) -> None:
        if new_state not in CertificateState.transitions[self.state]:
            raise RuntimeError(
                f"{self.domain_name} - Cannot go from {self.state} to {new_state}"
            )
        LOG.debug(f"{self.domain_name} - certificate {self.state} -> {new_state}")
        self.state = new_state
        self.history.append(new_state)

    def request(self) -> None:
        self.transition(CertificateState.REQUESTED)
        try:
            self.certificate_arn, challenges = self.authority.request_certificate(
                self.domain_name, self.alternative_names
            )
        except (CertificateIssuanceError, ProvisioningError):
            self.transition(CertificateState.FAILED)
            raise
        self.challenges = dedupe_challenges(challenges)
        self.transition(CertificateState.CHALLENGES_ISSUED)
        if not self.challenges:
            LOG.info(
                f"{self.domain_name} - {self.certificate_arn} has no pending challenge. Already validated."
            )

    def publish(self) -> None:
        self.records = publish_validation_records(
            self.challenges, self.dns, self.record_ttl
        )
        self.transition(CertificateState.RECORDS_PUBLISHED)

    def validate(self) -> None:
        self.transition(CertificateState.VALIDATION_PENDING)
        try:
            statuses = await_challenges(
                self.challenges,
                self.authority,
                self.certificate_arn,
                self.validation_timeout,
            )
        except (CertificateIssuanceError, ProvisioningError):
            self.transition(CertificateState.FAILED)
            raise
        if FAILED in statuses.values():
            self.transition(CertificateState.FAILED)
            raise CertificateIssuanceError(
                f"{self.domain_name} - validation failed for",
                [
                    challenge.record_name
                    for challenge, status in statuses.items()
                    if status == FAILED
                ],
            )
        if len(statuses) != len(self.challenges) or not all(
            status == VALIDATED for status in statuses.values()
        ):
            self.transition(CertificateState.TIMED_OUT)
            raise ValidationTimeout(
                f"{self.domain_name} - validation did not complete within {self.validation_timeout}s for",
                [
                    challenge.record_name
                    for challenge in self.challenges
                    if statuses.get(challenge) != VALIDATED
                ],
            )
        self.transition(CertificateState.VALIDATED)

    def run(self) -> dict:
        """
        Requested -> ChallengesIssued -> RecordsPublished -> ValidationPending -> Validated

        :return: the certificate handle
        :raises CertificateIssuanceError: challenges could not be issued or a validation failed
        :raises ValidationTimeout: a challenge did not validate in time
        :raises ProvisioningError: the certificate authority could not be reached
        """
        self.request()
        self.publish()
        self.validate()
        return {"Ref": self.certificate_arn, "Arn": self.certificate_arn}

    def attach(self, listener_handle: dict) -> None:
        """
        Validated -> Attached, once the secure listener using the certificate is ready.
        """
        self.transition(CertificateState.ATTACHED)
        self.listener = listener_handle
        LOG.info(
            f"{self.domain_name} - {self.certificate_arn} attached to {listener_handle['Ref']}"
        )
