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

import pytest

from ctl_harness.config import (
    new_config_client_auto_tls,
    new_config_client_crl,
    new_config_client_tls,
    new_config_no_tls,
)
from ctl_harness.constants import CTL_ENV_PREFIX
from ctl_harness.environment import ScopedEnvironment
from ctl_harness.invocation import (
    connection_fields,
    ctx_prefix_args,
    flag_to_env,
    format_duration,
    patch_args,
    prefix_args,
    prefix_args_utl,
)
from ctl_harness.options import CtlContext

ENDPOINTS = ["http://127.0.0.1:2379", "http://127.0.0.1:22379"]


@pytest.mark.parametrize("seconds,expected", [
    (0, "0s"),
    (7, "7s"),
    (2.5, "2.5s"),
    (90, "1m30s"),
    (3600, "1h0m0s"),
    (0.5, "500ms"),
    (0.0015, "1.5ms"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_flag_to_env():
    assert flag_to_env("ETCDCTL", "dial-timeout") == "ETCDCTL_DIAL_TIMEOUT"
    assert flag_to_env("ETCDCTL", "insecure-skip-tls-verify") == "ETCDCTL_INSECURE_SKIP_TLS_VERIFY"


def test_flag_mode_plain(isolated_settings):
    cx = CtlContext(cfg=new_config_no_tls(), dial_timeout=7)
    args = prefix_args(cx, ENDPOINTS)
    assert args == [
        isolated_settings.ctl_bin_path,
        "--endpoints=http://127.0.0.1:2379,http://127.0.0.1:22379",
        "--dial-timeout=7s",
    ]


def test_auto_tls_fields():
    cx = CtlContext(cfg=new_config_client_auto_tls(), dial_timeout=7)
    fields = connection_fields(cx, ENDPOINTS)
    assert fields["insecure-transport"] == "false"
    assert fields["insecure-skip-tls-verify"] == "true"
    assert "cacert" not in fields


def test_client_tls_fields(isolated_settings):
    cx = CtlContext(cfg=new_config_client_tls(), dial_timeout=7)
    fields = connection_fields(cx, ENDPOINTS)
    assert fields["cacert"] == isolated_settings.ca_path
    assert fields["cert"] == isolated_settings.cert_path
    assert fields["key"] == isolated_settings.private_key_path


def test_crl_fields_use_revoked_pair(isolated_settings):
    cx = CtlContext(cfg=new_config_client_crl(), dial_timeout=7)
    fields = connection_fields(cx, ENDPOINTS)
    assert fields["cacert"] == isolated_settings.ca_path
    assert fields["cert"] == isolated_settings.revoked_cert_path
    assert fields["key"] == isolated_settings.revoked_private_key_path


def test_user_field():
    cx = CtlContext(cfg=new_config_no_tls(), dial_timeout=7, user="root", password="secret")
    assert connection_fields(cx, ENDPOINTS)["user"] == "root:secret"
    cx.user = ""
    assert "user" not in connection_fields(cx, ENDPOINTS)


def test_env_mode_stages_without_touching_process_env(isolated_settings):
    cx = CtlContext(cfg=new_config_client_tls(), dial_timeout=7, env_map=ScopedEnvironment())
    args = prefix_args(cx, ENDPOINTS)

    assert args == [isolated_settings.ctl_bin_path]
    assert cx.env_map["ETCDCTL_ENDPOINTS"] == ",".join(ENDPOINTS)
    assert cx.env_map["ETCDCTL_CACERT"] == isolated_settings.ca_path
    assert "ETCDCTL_ENDPOINTS" not in os.environ


@pytest.mark.parametrize("cfg_factory", [
    new_config_no_tls, new_config_client_tls, new_config_client_auto_tls, new_config_client_crl,
])
def test_flag_and_env_modes_encode_same_fields(cfg_factory):
    flag_cx = CtlContext(cfg=cfg_factory(), dial_timeout=3, user="u", password="p")
    env_cx = CtlContext(cfg=cfg_factory(), dial_timeout=3, user="u", password="p",
                        env_map=ScopedEnvironment())

    flag_args = prefix_args(flag_cx, ENDPOINTS)[1:]
    prefix_args(env_cx, ENDPOINTS)

    from_flags = {}
    for token in flag_args:
        key, value = token[2:].split("=", 1)
        from_flags[flag_to_env(CTL_ENV_PREFIX, key)] = value
    assert from_flags == dict(env_cx.env_map)


def test_prefix_args_utl(isolated_settings):
    cx = CtlContext()
    assert prefix_args_utl(cx) == [isolated_settings.ctl_bin_path]
    cx.etcdutl = True
    assert prefix_args_utl(cx) == [isolated_settings.utl_bin_path]


def test_ctx_prefix_args_uses_live_cluster(clusters):
    cx = CtlContext(cfg=new_config_no_tls(), dial_timeout=7)
    with pytest.raises(RuntimeError):
        ctx_prefix_args(cx)
    cx.epc = clusters(cx.cfg)
    args = ctx_prefix_args(cx)
    assert args[1] == "--endpoints=" + ",".join(clusters.last.endpoints())


def test_patch_args():
    args = ["etcd", "--name=a", "--initial-cluster-state=new"]
    assert patch_args(list(args), "initial-cluster-state", "existing")[-1] == "--initial-cluster-state=existing"
    patched = patch_args(list(args), "snapshot-count", "5")
    assert patched[-1] == "--snapshot-count=5"
    assert len(patched) == 4
