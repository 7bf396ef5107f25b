# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Most commonly used functions shared across all modules.
"""

from __future__ import annotations

import hashlib
import json
import re

NONALPHANUM = re.compile(r"([^a-zA-Z\d]+)")


def logical_name(name: str) -> str:
    """
    Returns the CFN compatible logical name for a given name, i.e. todo-api -> todoapi

    :raises ValueError: if nothing alphanumerical is left
    """
    _name = NONALPHANUM.sub("", name)
    if not _name:
        raise ValueError(f"{name} does not contain any alphanumerical character")
    return _name


def properties_checksum(properties) -> str:
    """
    Stable checksum of a JSON compatible structure. Keys order does not matter.
    """
    return hashlib.sha256(
        json.dumps(properties, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
