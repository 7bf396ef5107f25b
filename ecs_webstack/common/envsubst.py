#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Environment variables interpolation of the input file.
Supports $VAR, ${VAR}, ${VAR:-default} and ${VAR:+alternative}. ${AWS::xxx} is left untouched.
"""

from __future__ import annotations

import os
import re

VAR_RE = re.compile(r"(?<!\\)\$(?:(?P<bare>\w+)|\{(?!AWS::)(?P<braced>[^}]*)\})")
MODIFIER_RE = re.compile(r"^(?P<name>\w+):(?P<modifier>[-+])(?P<word>.*)$")


def expandvars(value: str, default: str = None) -> str:
    """
    Expands the environment variables found in value.
    Unknown variables are replaced with default, or left as-is if default is None.
    """

    def replace(match) -> str:
        if match.group("bare"):
            return os.environ.get(
                match.group("bare"), match.group(0) if default is None else default
            )
        braced = match.group("braced")
        modified = MODIFIER_RE.match(braced)
        if not modified:
            return os.environ.get(
                braced, match.group(0) if default is None else default
            )
        env_value = os.environ.get(modified.group("name"))
        if modified.group("modifier") == "-":
            return env_value or expandvars(modified.group("word"), default)
        return expandvars(modified.group("word"), default) if env_value else ""

    return VAR_RE.sub(replace, value)


def interpolate(content):
    """
    Walks the loaded YAML content and expands every string value.
    Keys are left untouched.
    """
    if isinstance(content, dict):
        return {key: interpolate(value) for key, value in content.items()}
    elif isinstance(content, list):
        return [interpolate(item) for item in content]
    elif isinstance(content, str):
        return expandvars(content)
    return content
