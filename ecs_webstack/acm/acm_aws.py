#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
ACM as the certificate authority.
"""

from __future__ import annotations

from time import monotonic, sleep

from boto3.session import Session
from botocore.exceptions import ClientError
from compose_x_common.compose_x_common import keyisset

from ecs_webstack.acm.validation import FAILED, PENDING, VALIDATED, ValidationChallenge
from ecs_webstack.common import NONALPHANUM
from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import CertificateIssuanceError, TransientProviderError
from ecs_webstack.providers import CertificateAuthority

REUSABLE_STATUSES = ["ISSUED", "PENDING_VALIDATION"]
FAILED_STATUSES = ["FAILED", "VALIDATION_TIMED_OUT", "REVOKED", "EXPIRED", "INACTIVE"]
THROTTLING_CODES = ["ThrottlingException", "Throttling", "TooManyRequestsException"]
CERTIFICATE_TYPE = "AWS::CertificateManager::Certificate"


def map_acm_error(error: ClientError, name: str, action: str) -> Exception:
    """
    :return: TransientProviderError when ACM throttled the call, CertificateIssuanceError otherwise
    """
    if error.response["Error"]["Code"] in THROTTLING_CODES:
        return TransientProviderError(
            f"{name} - ACM throttled the {action}", "Certificate", CERTIFICATE_TYPE
        )
    return CertificateIssuanceError(
        f"{name} - ACM refused the {action}",
        error.response["Error"].get("Message"),
    )


class AcmCertificateAuthority(CertificateAuthority):
    """
    Requests DNS validated certificates. A certificate already issued or pending for the same
    domain name is reused, so that re-runs converge onto the same certificate.
    """

    def __init__(
        self,
        session: Session = None,
        poll_interval: int = 15,
        challenges_timeout: int = 300,
    ):
        if session is None:
            session = Session()
        self.client = session.client("acm")
        self.poll_interval = poll_interval
        self.challenges_timeout = challenges_timeout

    def find_certificate(self, domain_name: str, alternative_names: list) -> str | None:
        wanted = set([domain_name] + alternative_names)
        paginator = self.client.get_paginator("list_certificates")
        for page in paginator.paginate(CertificateStatuses=REUSABLE_STATUSES):
            for summary in page["CertificateSummaryList"]:
                if summary["DomainName"] != domain_name:
                    continue
                names = set(
                    self.describe_certificate(summary["CertificateArn"]).get(
                        "SubjectAlternativeNames", [domain_name]
                    )
                )
                if names == wanted:
                    LOG.info(
                        f"{domain_name} - Reusing existing certificate {summary['CertificateArn']}"
                    )
                    return summary["CertificateArn"]
        return None

    def request_certificate(
        self, domain_name: str, alternative_names: list = None
    ) -> tuple[str, list[ValidationChallenge]]:
        alternative_names = alternative_names or []
        try:
            certificate_arn = self.find_certificate(domain_name, alternative_names)
            if not certificate_arn:
                props = {
                    "DomainName": domain_name,
                    "ValidationMethod": "DNS",
                    "IdempotencyToken": NONALPHANUM.sub("", domain_name)[:32],
                }
                if alternative_names:
                    props["SubjectAlternativeNames"] = [domain_name] + alternative_names
                certificate_arn = self.client.request_certificate(**props)[
                    "CertificateArn"
                ]
                LOG.info(f"{domain_name} - Requested certificate {certificate_arn}")
            return certificate_arn, self.wait_for_challenges(certificate_arn)
        except ClientError as error:
            raise map_acm_error(error, domain_name, "certificate request") from error

    def describe_certificate(self, certificate_arn: str) -> dict:
        """
        :raises TransientProviderError: ACM throttled the call
        :raises CertificateIssuanceError: any other ACM error
        """
        try:
            return self.client.describe_certificate(CertificateArn=certificate_arn)[
                "Certificate"
            ]
        except ClientError as error:
            raise map_acm_error(error, certificate_arn, "certificate description") from error

    def wait_for_challenges(self, certificate_arn: str) -> list[ValidationChallenge]:
        """
        ACM fills the DomainValidationOptions records a few seconds after the request.
        """
        deadline = monotonic() + self.challenges_timeout
        while True:
            certificate = self.describe_certificate(certificate_arn)
            if certificate["Status"] == "ISSUED":
                return []
            if certificate["Status"] in FAILED_STATUSES:
                raise CertificateIssuanceError(
                    f"{certificate_arn} is {certificate['Status']}",
                    certificate.get("FailureReason"),
                )
            options = certificate.get("DomainValidationOptions", [])
            if options and all(keyisset("ResourceRecord", option) for option in options):
                return [
                    ValidationChallenge.from_acm(option)
                    for option in options
                    if option.get("ValidationStatus") != "SUCCESS"
                ]
            if monotonic() > deadline:
                raise CertificateIssuanceError(
                    f"{certificate_arn} - No validation record issued after {self.challenges_timeout}s"
                )
            sleep(self.poll_interval)

    def await_validation(
        self, certificate_arn: str, challenge: ValidationChallenge, timeout: float = None
    ) -> str:
        deadline = None if timeout is None else monotonic() + timeout
        while True:
            certificate = self.describe_certificate(certificate_arn)
            if certificate["Status"] == "ISSUED":
                return VALIDATED
            if certificate["Status"] in FAILED_STATUSES:
                return FAILED
            statuses = [
                option.get("ValidationStatus")
                for option in certificate.get("DomainValidationOptions", [])
                if keyisset("ResourceRecord", option)
                and ValidationChallenge.from_acm(option) == challenge
            ]
            if statuses and all(status == "SUCCESS" for status in statuses):
                return VALIDATED
            if "FAILED" in statuses:
                return FAILED
            if deadline is not None and monotonic() >= deadline:
                return PENDING
            LOG.debug(f"{certificate_arn} - {challenge.record_name} still pending")
            sleep(self.poll_interval)
