# /*
# Copyright 2026 The etcd-ctl-harness Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Cluster collaborator protocol and the externally-managed cluster adapter."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from ctl_harness import logger
from ctl_harness.config import ClusterConfig, HarnessSettings, get_settings
from ctl_harness.errors import ClusterStartError


@runtime_checkable
class ProcessCluster(Protocol):
    """A running multi-process etcd cluster owned by one test run."""

    def endpoints(self) -> list[str]:
        """Client URLs of every member."""
        ...

    def data_dir(self) -> str:
        """Data directory of the first member."""
        ...

    def close(self) -> None:
        """Stop the cluster. Raises on failure."""
        ...


ClusterFactory = Callable[[ClusterConfig], ProcessCluster]


class ExistingCluster:
    """A cluster started and stopped outside the harness.

    The member processes belong to whoever started them, so :meth:`close`
    only detaches the run from the cluster.
    """

    def __init__(self, endpoints: list[str], data_dir: str = "", cfg: ClusterConfig | None = None) -> None:
        self._endpoints = list(endpoints)
        self._data_dir = data_dir
        self.cfg = cfg
        self.closed = False

    @classmethod
    def start(cls, cfg: ClusterConfig, settings: HarnessSettings | None = None) -> ExistingCluster:
        """Attach to the cluster named by E2E_ENDPOINTS.

        Args:
            cfg: Shape the test expects the cluster to have.
            settings: Harness settings, or None for the process-wide settings.

        Raises:
            ClusterStartError: If no endpoints are configured.
        """
        settings = settings or get_settings()
        endpoints = settings.endpoint_list
        if not endpoints:
            raise ClusterStartError(
                "no cluster endpoints configured; set E2E_ENDPOINTS to the client URLs "
                "of a running cluster"
            )
        logger.info("attaching to existing cluster at %s", ",".join(endpoints))
        return cls(endpoints, data_dir=settings.data_dir, cfg=cfg)

    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    def data_dir(self) -> str:
        return self._data_dir

    def close(self) -> None:
        self.closed = True
