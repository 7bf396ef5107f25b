#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Custom exceptions for ECS WebStack
"""


class WebStackException(Exception):
    """
    Top class for ECS WebStack exceptions
    """

    def __init__(self, msg, *args):
        super().__init__(msg, *args)


class ConfigurationError(WebStackException):
    """
    The input cannot produce a valid deployment graph. Raised before any resource is touched.
    """


class ProvisioningError(WebStackException):
    """
    The platform API rejected a resource.

    :ivar str logical_name: The graph node that failed
    :ivar str resource_type: The CFN type of the resource
    """

    def __init__(self, msg, logical_name: str = None, resource_type: str = None):
        super().__init__(msg)
        self.logical_name = logical_name
        self.resource_type = resource_type

    def __str__(self):
        if self.logical_name:
            return f"{self.logical_name} ({self.resource_type}) - {self.args[0]}"
        return str(self.args[0])


class TransientProviderError(ProvisioningError):
    """
    Throttling or eventual consistency lag. Not retried, the next run converges.
    """


class CertificateIssuanceError(WebStackException):
    """
    The certificate authority refused to issue the challenges, or reported a failed validation.
    Only the plain listener remains.
    """


class ValidationTimeout(WebStackException):
    """
    At least one distinct validation challenge did not complete in time.
    Only the plain listener remains.
    """
