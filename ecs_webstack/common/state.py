#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Record of the provisioned resources, used to converge the next runs.
"""

from __future__ import annotations

import json
import threading
from copy import deepcopy
from os import makedirs, path

from ecs_webstack.common.logging import LOG

STATE_VERSION = 1


class StateStore:
    """
    JSON file mapping each resource logical name to its type, handle and the checksums of its
    properties. Without a file path, the state only lives in memory.

    :ivar str file_path:
    """

    def __init__(self, file_path: str = None):
        self.file_path = file_path
        self.lock = threading.Lock()
        self.resources = {}
        if file_path and path.exists(file_path):
            with open(file_path, encoding="utf-8") as state_fd:
                content = json.load(state_fd)
            self.resources = content.get("Resources", {})
            LOG.debug(f"Loaded {len(self.resources)} resources from {file_path}")

    def __contains__(self, title):
        return title in self.resources

    def get(self, title: str) -> dict | None:
        with self.lock:
            return deepcopy(self.resources.get(title))

    def titles(self) -> list:
        with self.lock:
            return list(self.resources.keys())

    def put(
        self,
        title: str,
        resource_type: str,
        handle: dict,
        checksum: str,
        desired_checksum: str,
    ) -> None:
        """
        Records the resource and writes the state file right away, so that an interrupted run
        keeps track of what got created.
        """
        with self.lock:
            self.resources[title] = {
                "Type": resource_type,
                "Handle": handle,
                "Checksum": checksum,
                "DesiredChecksum": desired_checksum,
            }
            self._save()

    def save(self) -> None:
        with self.lock:
            self._save()

    def _save(self) -> None:
        if not self.file_path:
            return
        dir_name = path.dirname(self.file_path)
        if dir_name:
            makedirs(dir_name, exist_ok=True)
        with open(self.file_path, "w", encoding="utf-8") as state_fd:
            json.dump(
                {"Version": STATE_VERSION, "Resources": self.resources},
                state_fd,
                indent=2,
                default=str,
            )
