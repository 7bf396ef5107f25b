#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Resources provisioning through the AWS Cloud Control API, from their CFN properties.
"""

from __future__ import annotations

import json
from time import sleep
from uuid import uuid4

from boto3.session import Session
from botocore.exceptions import ClientError

from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import ProvisioningError, TransientProviderError
from ecs_webstack.providers import ResourceProvider

THROTTLING_CODES = ["Throttling", "ThrottlingException", "ConcurrentOperationException"]


def define_patch(properties: dict) -> list:
    """
    JSON Patch document setting all the top level properties to their desired value
    """
    return [
        {"op": "add", "path": f"/{key}", "value": value}
        for key, value in properties.items()
    ]


class CloudControlProvider(ResourceProvider):
    """
    :ivar boto3.client client: cloudcontrol client
    :ivar int poll_delay: seconds between two status checks of a request
    """

    def __init__(self, session: Session = None, poll_delay: int = 5):
        if session is None:
            session = Session()
        self.client = session.client("cloudcontrol")
        self.poll_delay = poll_delay

    def describe(self, resource_type: str, identifier: str) -> dict:
        """
        The handle of the resource: its identifier as Ref and its properties as attributes
        """
        description = self.client.get_resource(
            TypeName=resource_type, Identifier=identifier
        )["ResourceDescription"]
        properties = json.loads(description["Properties"])
        return {**properties, "Ref": description["Identifier"]}

    def wait_for_request(
        self, request_token: str, logical_name: str, resource_type: str
    ) -> str:
        """
        :return: the identifier of the resource once the request succeeded
        :raises ProvisioningError: if the request failed
        """
        while True:
            progress = self.client.get_resource_request_status(
                RequestToken=request_token
            )["ProgressEvent"]
            status = progress["OperationStatus"]
            if status == "SUCCESS":
                return progress["Identifier"]
            if status in ["FAILED", "CANCEL_COMPLETE"]:
                error_class = (
                    TransientProviderError
                    if progress.get("ErrorCode") == "Throttling"
                    else ProvisioningError
                )
                raise error_class(
                    progress.get("StatusMessage", status), logical_name, resource_type
                )
            LOG.debug(f"{logical_name} - {progress['Operation']} {status}")
            sleep(self.poll_delay)

    def create(self, resource_type: str, logical_name: str, properties: dict) -> dict:
        LOG.info(f"{logical_name} - Creating {resource_type}")
        try:
            request = self.client.create_resource(
                TypeName=resource_type,
                DesiredState=json.dumps(properties),
                ClientToken=str(uuid4()),
            )
            identifier = self.wait_for_request(
                request["ProgressEvent"]["RequestToken"], logical_name, resource_type
            )
            return self.describe(resource_type, identifier)
        except ClientError as error:
            raise self.from_client_error(error, logical_name, resource_type) from error

    def update(
        self, resource_type: str, logical_name: str, identifier: str, properties: dict
    ) -> dict:
        LOG.info(f"{logical_name} - Updating {resource_type} {identifier}")
        try:
            request = self.client.update_resource(
                TypeName=resource_type,
                Identifier=identifier,
                PatchDocument=json.dumps(define_patch(properties)),
            )
            self.wait_for_request(
                request["ProgressEvent"]["RequestToken"], logical_name, resource_type
            )
            return self.describe(resource_type, identifier)
        except ClientError as error:
            raise self.from_client_error(error, logical_name, resource_type) from error

    @staticmethod
    def from_client_error(
        error: ClientError, logical_name: str, resource_type: str
    ) -> ProvisioningError:
        code = error.response["Error"]["Code"]
        message = error.response["Error"].get("Message", code)
        if code in THROTTLING_CODES:
            return TransientProviderError(message, logical_name, resource_type)
        return ProvisioningError(message, logical_name, resource_type)
