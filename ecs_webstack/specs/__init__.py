#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
JSON Schema used to validate the input files
"""

import json

from importlib_resources import files

SCHEMA_FILE = "webstack.spec.json"


def load_input_schema() -> dict:
    source = files("ecs_webstack").joinpath(f"specs/{SCHEMA_FILE}")
    return json.loads(source.read_text())
