#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
The certificate of the secure listener, DNS validated in the hosted zone of the domain.
"""

from troposphere.certificatemanager import Certificate, DomainValidationOption

CERTIFICATE_T = "Certificate"


def define_certificate(
    domain_name: str, alternative_names: list, hosted_zone_id: str
) -> Certificate:
    """
    :param str domain_name:
    :param list alternative_names:
    :param str hosted_zone_id: zone in which the validation records are created
    :rtype: troposphere.certificatemanager.Certificate
    """
    names = [domain_name]
    for name in alternative_names or []:
        if name not in names:
            names.append(name)
    props = {
        "DomainName": domain_name,
        "ValidationMethod": "DNS",
        "DomainValidationOptions": [
            DomainValidationOption(DomainName=name, HostedZoneId=hosted_zone_id)
            for name in names
        ],
    }
    if len(names) > 1:
        props["SubjectAlternativeNames"] = names
    return Certificate(CERTIFICATE_T, **props)
