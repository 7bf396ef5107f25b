#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Writes the rendered template to the local filesystem.
"""

from __future__ import annotations

import json
from os import makedirs
from os.path import abspath

import yaml
from cfn_flip.yaml_dumper import LongCleanDumper

from ecs_webstack.common.logging import LOG

JSON_MIME = "application/json"
YAML_MIME = "application/x-yaml"


class FileArtifact:
    """
    A file to write in the output directory, from a dict content.

    :ivar str file_name:
    :ivar str file_path:
    :ivar str body:
    :ivar str mime:
    """

    def __init__(self, file_name: str, output_dir: str, content: dict, file_format: str = "json"):
        if not isinstance(content, dict):
            raise TypeError("content must be of type", dict, "Got", type(content))
        self.file_name = file_name
        self.output_dir = output_dir
        self.content = content
        self.file_path = f"{output_dir}/{file_name}"
        if file_format == "yaml":
            self.mime = YAML_MIME
            self.body = yaml.dump(content, Dumper=LongCleanDumper)
        else:
            self.mime = JSON_MIME
            self.body = json.dumps(content, indent=4)

    def __repr__(self):
        return self.file_path

    def write(self) -> str:
        makedirs(self.output_dir, exist_ok=True)
        with open(self.file_path, "w", encoding="utf-8") as template_fd:
            template_fd.write(self.body)
        LOG.info(f"Template {self.file_name} written successfully at {abspath(self.file_path)}")
        return self.file_path
