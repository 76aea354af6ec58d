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

"""Reusable test bodies for the engine."""

from __future__ import annotations

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_fixed,
)

from ctl_harness import logger
from ctl_harness.client import new_client
from ctl_harness.config import ClientConnType
from ctl_harness.constants import (
    CLUSTER_VERSION_MAX_ATTEMPTS,
    CLUSTER_VERSION_POLL_INTERVAL_SECONDS,
)
from ctl_harness.errors import ExpectError, HarnessFailure
from ctl_harness.invocation import ctx_prefix_args, prefix_args
from ctl_harness.members import fill_etcd_with_data, get_member_list
from ctl_harness.options import CtlContext
from ctl_harness.process import curl_get, spawn_with_expect_with_env

CTL_VERSION_BANNER = "etcdctl version:"


def _live_endpoints(cx: CtlContext) -> list[str]:
    if cx.epc is None:
        raise HarnessFailure("cluster is not running")
    return cx.epc.endpoints()


def ctl_v3_version(cx: CtlContext, expected: str = CTL_VERSION_BANNER) -> None:
    cmd_args = ctx_prefix_args(cx) + ["version"]
    spawn_with_expect_with_env(cmd_args, cx.env_map, expected)


def version_test(cx: CtlContext) -> None:
    try:
        ctl_v3_version(cx)
    except ExpectError as e:
        raise HarnessFailure(f"versionTest ctlV3Version error ({e})") from e


def dial_with_scheme_test(cx: CtlContext) -> None:
    """Put a key through endpoints that carry an explicit URL scheme."""
    cmd_args = prefix_args(cx, _live_endpoints(cx)) + ["put", "foo", "bar"]
    spawn_with_expect_with_env(cmd_args, cx.env_map, "OK")


def cluster_version_test(cx: CtlContext, expected: str) -> None:
    """Poll ``/version`` until the cluster reports *expected*.

    Raises:
        HarnessFailure: If the cluster never reports *expected*.
    """
    endpoint = _live_endpoints(cx)[0]
    insecure = cx.cfg.client_tls == ClientConnType.TLS

    def _log_attempt(retry_state) -> None:
        logger.info(
            "#%d: v3 is not ready yet (%s)",
            retry_state.attempt_number - 1, retry_state.outcome.exception(),
        )

    retryer = Retrying(
        stop=stop_after_attempt(CLUSTER_VERSION_MAX_ATTEMPTS) | stop_when_event_set(cx.cancelled),
        wait=wait_fixed(CLUSTER_VERSION_POLL_INTERVAL_SECONDS),
        retry=retry_if_exception_type(ExpectError),
        before_sleep=_log_attempt,
    )
    try:
        retryer(curl_get, endpoint, "/version", expected, insecure)
    except RetryError as e:
        raise HarnessFailure(
            f"failed cluster version test expected {expected} got ({e.last_attempt.exception()})"
        ) from e


def member_list_test(cx: CtlContext) -> None:
    resp = get_member_list(cx)
    if len(resp.members) != cx.cfg.cluster_size:
        raise HarnessFailure(f"expected {cx.cfg.cluster_size} members, got {len(resp.members)}")
    for member in resp.members:
        logger.info("member %x %s %s", member.id, member.name, ",".join(member.client_urls))


def fill_data_test(cx: CtlContext, db_size: int) -> None:
    """Load about *db_size* bytes into the cluster through a v3 client."""
    with new_client(_live_endpoints(cx), cx.cfg.client_tls, cx.cfg.is_client_auto_tls) as client:
        fill_etcd_with_data(client, db_size)
