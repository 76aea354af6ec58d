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

from __future__ import annotations

import os

from ctl_harness.environment import ScopedEnvironment


def test_staging_leaves_process_env_alone():
    env = ScopedEnvironment()
    env["ETCDCTL_ENDPOINTS"] = "http://a:2379"
    assert "ETCDCTL_ENDPOINTS" not in os.environ
    assert env.child_env()["ETCDCTL_ENDPOINTS"] == "http://a:2379"
    assert dict(env) == {"ETCDCTL_ENDPOINTS": "http://a:2379"}


def test_export_and_restore(monkeypatch):
    monkeypatch.setenv("ETCDCTL_USER", "outer")
    env = ScopedEnvironment()
    env["ETCDCTL_USER"] = "inner"
    env["ETCDCTL_ENDPOINTS"] = "http://a:2379"

    env.export()
    assert os.environ["ETCDCTL_USER"] == "inner"
    assert os.environ["ETCDCTL_ENDPOINTS"] == "http://a:2379"

    env.restore()
    assert os.environ["ETCDCTL_USER"] == "outer"
    assert "ETCDCTL_ENDPOINTS" not in os.environ
    assert len(env) == 0


def test_restore_unsets_staged_keys_and_is_idempotent(monkeypatch):
    monkeypatch.setenv("ETCDCTL_DIAL_TIMEOUT", "leaked")
    env = ScopedEnvironment()
    env["ETCDCTL_DIAL_TIMEOUT"] = "7s"

    env.restore()
    env.restore()

    assert "ETCDCTL_DIAL_TIMEOUT" not in os.environ


def test_context_manager_restores():
    with ScopedEnvironment() as env:
        env["ETCDCTL_KEY"] = "k"
        env.export()
        assert os.environ["ETCDCTL_KEY"] == "k"
    assert "ETCDCTL_KEY" not in os.environ
