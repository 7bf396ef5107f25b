#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
IAM roles of the tasks. The execution role is shared, a task role only exists for services
which were granted access to other resources.
"""

from troposphere.iam import Policy, Role

from ecs_webstack.ecs.ecs_params import (
    ECS_TASKS_PRINCIPAL,
    EXEC_ROLE_T,
    TASK_EXECUTION_POLICY_ARN,
)


def service_role_trust_policy(service_name: str) -> dict:
    """
    Trust relationship for a Role and an AWS Service

    :param str service_name: name of the AWS service principal
    :return: policy document
    :rtype: dict
    """
    statement = {
        "Effect": "Allow",
        "Principal": {"Service": [service_name]},
        "Action": ["sts:AssumeRole"],
    }
    return {"Version": "2012-10-17", "Statement": [statement]}


def define_execution_role() -> Role:
    """
    Role used by ECS to pull the images and ship the logs.
    """
    return Role(
        EXEC_ROLE_T,
        AssumeRolePolicyDocument=service_role_trust_policy(ECS_TASKS_PRINCIPAL),
        ManagedPolicyArns=[TASK_EXECUTION_POLICY_ARN],
    )


def define_task_role(service_logical_name: str, statements: list) -> Role:
    """
    Role assumed by the containers of the service

    :param str service_logical_name:
    :param list[dict] statements: the IAM statements granted to the service
    """
    return Role(
        f"{service_logical_name}TaskRole",
        AssumeRolePolicyDocument=service_role_trust_policy(ECS_TASKS_PRINCIPAL),
        Policies=[
            Policy(
                PolicyName=f"{service_logical_name}Access",
                PolicyDocument={"Version": "2012-10-17", "Statement": statements},
            )
        ],
    )
