#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Pre-defined permissions the services get on their tables
"""

ACCESS_TYPES = {
    "RW": {
        "Action": [
            "dynamodb:BatchGet*",
            "dynamodb:DescribeTable",
            "dynamodb:Get*",
            "dynamodb:Query",
            "dynamodb:Scan",
            "dynamodb:BatchWrite*",
            "dynamodb:DeleteItem",
            "dynamodb:UpdateItem",
            "dynamodb:PutItem",
        ],
        "Effect": "Allow",
    },
    "RO": {
        "Action": [
            "dynamodb:BatchGet*",
            "dynamodb:DescribeTable",
            "dynamodb:Get*",
            "dynamodb:Query",
            "dynamodb:Scan",
        ],
        "Effect": "Allow",
    },
}
