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
import threading

import pytest

from ctl_harness.cluster import ExistingCluster
from ctl_harness.config import get_settings, new_config_no_tls
from ctl_harness.engine import prepare_cluster_config, run_ctl_test, run_ctl_test_with_offline
from ctl_harness.errors import ClusterCloseError, ClusterStartError, RunTimeoutError
from ctl_harness.invocation import ctx_prefix_args
from ctl_harness.options import (
    default_ctl_ctx,
    with_cfg,
    with_flag_by_env,
    with_no_strict_reconfig,
    with_quorum,
    with_quota,
    with_test_timeout,
)


def test_successful_run_tears_down(clusters):
    seen = {}

    def body(cx):
        seen["endpoints"] = cx.epc.endpoints()
        seen["data_dir"] = cx.data_dir

    cx = run_ctl_test(body, with_cfg(new_config_no_tls()), cluster_factory=clusters)

    assert seen["endpoints"] == clusters.last.endpoints()
    assert seen["data_dir"] == clusters.last.data_dir()
    assert cx.epc is None
    assert clusters.last.close_calls == 1


def test_shape_is_derived_before_start(clusters):
    run_ctl_test(
        lambda cx: None,
        with_cfg(new_config_no_tls()), with_quota(4096), with_no_strict_reconfig(),
        cluster_factory=clusters,
    )
    cfg = clusters.last.cfg
    assert cfg.cluster_size == 1
    assert cfg.quota_backend_bytes == 4096
    assert cfg.no_strict_reconfig
    assert cfg.initial_corrupt_check
    assert not cfg.keep_data_dir


def test_quorum_keeps_cluster_size(clusters):
    run_ctl_test(lambda cx: None, with_cfg(new_config_no_tls()), with_quorum(), cluster_factory=clusters)
    assert clusters.last.cfg.cluster_size == 3
    assert len(clusters.last.endpoints()) == 3


def test_prepare_cluster_config_keeps_data_dir():
    cx = default_ctl_ctx()
    cx.apply_opts([])
    prepare_cluster_config(cx, keep_data_dir=True)
    assert cx.cfg.keep_data_dir
    assert cx.cfg.initial_corrupt_check


def test_start_failure(clusters):
    clusters.start_error = OSError("port in use")
    called = []

    with pytest.raises(ClusterStartError, match="port in use"):
        run_ctl_test(called.append, cluster_factory=clusters)
    assert called == []


def test_body_failure_propagates_after_teardown(clusters):
    def body(cx):
        assert cx.dial_timeout == 0, "expected zero dial timeout"

    with pytest.raises(AssertionError, match="expected zero dial timeout"):
        run_ctl_test(body, cluster_factory=clusters)
    assert clusters.last.close_calls == 1


def test_close_error_fails_successful_run(clusters):
    clusters.close_error = RuntimeError("member 2 did not stop")
    with pytest.raises(ClusterCloseError, match="member 2 did not stop"):
        run_ctl_test(lambda cx: None, cluster_factory=clusters)


def test_deadline_cancels_cooperative_body(clusters):
    observed = {}

    def body(cx):
        observed["cancelled"] = cx.cancelled.wait(10)

    with pytest.raises(RunTimeoutError) as excinfo:
        run_ctl_test(body, with_test_timeout(0.2), cluster_factory=clusters)

    assert excinfo.value.timeout == 0.2
    assert "ctl-test-func" in excinfo.value.stacks
    assert observed["cancelled"] is True
    assert clusters.last.close_calls == 1


def test_deadline_abandons_stuck_body(clusters):
    release = threading.Event()
    try:
        with pytest.raises(RunTimeoutError):
            run_ctl_test_with_offline(
                lambda cx: release.wait(10), None,
                with_test_timeout(0.1),
                cluster_factory=clusters, drain_grace=0.1,
            )
        assert clusters.last.close_calls == 1
    finally:
        release.set()


def test_staged_env_is_unset_after_run(clusters):
    staged = []

    def body(cx):
        ctx_prefix_args(cx)
        staged.extend(cx.env_map)
        cx.env_map.export()
        assert os.environ["ETCDCTL_ENDPOINTS"] == ",".join(cx.epc.endpoints())

    cx = run_ctl_test(body, with_flag_by_env(), cluster_factory=clusters)

    assert "ETCDCTL_ENDPOINTS" in staged
    assert not [key for key in staged if key in os.environ]
    assert len(cx.env_map) == 0


def test_offline_phase_runs_after_teardown(clusters):
    order = []

    def body(cx):
        order.append(("online", cx.epc is not None))

    def offline(cx):
        order.append(("offline", cx.epc is None, cx.data_dir))

    run_ctl_test_with_offline(body, offline, cluster_factory=clusters)

    assert order == [("online", True), ("offline", True, clusters.last.data_dir())]
    assert clusters.last.cfg.keep_data_dir


def test_offline_phase_skipped_when_body_fails(clusters):
    offline_calls = []

    def body(cx):
        raise AssertionError("online failure")

    with pytest.raises(AssertionError):
        run_ctl_test_with_offline(body, offline_calls.append, cluster_factory=clusters)
    assert offline_calls == []


def test_default_factory_requires_endpoints():
    with pytest.raises(ClusterStartError, match="E2E_ENDPOINTS"):
        run_ctl_test(lambda cx: None)


def test_default_factory_attaches_to_existing_cluster(monkeypatch):
    monkeypatch.setenv("E2E_ENDPOINTS", "http://10.0.0.1:2379, http://10.0.0.2:2379")
    monkeypatch.setenv("E2E_DATA_DIR", "/var/lib/etcd")
    get_settings.cache_clear()
    seen = {}

    def body(cx):
        seen["epc"] = cx.epc
        seen["data_dir"] = cx.data_dir

    run_ctl_test(body)

    assert isinstance(seen["epc"], ExistingCluster)
    assert seen["epc"].endpoints() == ["http://10.0.0.1:2379", "http://10.0.0.2:2379"]
    assert seen["epc"].closed
    assert seen["data_dir"] == "/var/lib/etcd"
