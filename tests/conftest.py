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

"""Shared fixtures: isolated settings and an in-memory cluster collaborator."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from ctl_harness.config import ClusterConfig, get_settings


class FakeCluster:
    """In-memory stand-in for a started multi-process cluster."""

    def __init__(self, cfg: ClusterConfig, endpoints: list[str], data_dir: str,
                 close_error: Exception | None = None) -> None:
        self.cfg = cfg
        self._endpoints = endpoints
        self._data_dir = data_dir
        self.close_error = close_error
        self.close_calls = 0

    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    def data_dir(self) -> str:
        return self._data_dir

    def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class ClusterRecorder:
    """Cluster factory that records every cluster it starts."""

    def __init__(self, tmp_path: Path) -> None:
        self.tmp_path = tmp_path
        self.started: list[FakeCluster] = []
        self.start_error: Exception | None = None
        self.close_error: Exception | None = None

    def __call__(self, cfg: ClusterConfig) -> FakeCluster:
        if self.start_error is not None:
            raise self.start_error
        endpoints = [f"http://127.0.0.1:{cfg.base_port + i}" for i in range(cfg.cluster_size)]
        cluster = FakeCluster(
            cfg, endpoints, str(self.tmp_path / "member-0"), close_error=self.close_error,
        )
        self.started.append(cluster)
        return cluster

    @property
    def last(self) -> FakeCluster:
        return self.started[-1]


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point settings at per-test directories and drop inherited E2E_/ETCDCTL_ variables."""
    for key in list(os.environ):
        if key.startswith(("E2E_", "ETCDCTL_")):
            monkeypatch.delenv(key)
    monkeypatch.setenv("E2E_BIN_DIR", str(tmp_path / "bin"))
    monkeypatch.setenv("E2E_FIXTURES_DIR", str(tmp_path / "fixtures"))
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def clusters(tmp_path) -> ClusterRecorder:
    return ClusterRecorder(tmp_path)


@pytest.fixture
def fake_ctl(tmp_path):
    """Install a shell script as etcdctl in the settings' bin dir.

    Returns a function taking the script body and returning its path.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _install(body: str, name: str = "etcdctl") -> Path:
        path = bin_dir / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _install
