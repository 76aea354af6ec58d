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

"""Cluster membership queries and bulk data loading for multi-step scenarios."""

from __future__ import annotations

import random
import string
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from pydantic import ValidationError

from ctl_harness.constants import FILL_CONCURRENCY, FILL_KEY_COUNT
from ctl_harness.errors import HarnessFailure, MemberListError
from ctl_harness.invocation import ctx_prefix_args
from ctl_harness.models import MemberListResponse
from ctl_harness.options import CtlContext
from ctl_harness.process import spawn_cmd


class MemberLister(Protocol):
    def member_list(self) -> MemberListResponse:
        ...


class KVWriter(Protocol):
    def put(self, key: str, value: str | bytes) -> object:
        ...


# ============================================================================
# Membership
# ============================================================================

def get_member_list(cx: CtlContext) -> MemberListResponse:
    """List members through etcdctl using the run's invocation prefix.

    Raises:
        MemberListError: If etcdctl fails or prints something that is not a member list.
    """
    args = ctx_prefix_args(cx) + ["member", "list", "-w", "json"]
    env = cx.env_map.child_env() if cx.env_map is not None else None
    result = spawn_cmd(args, env)
    if not result.ok:
        raise MemberListError(
            f"member list exited with {result.returncode}: {result.stderr.strip()}"
        )
    try:
        return MemberListResponse.model_validate_json(result.stdout)
    except ValidationError as e:
        raise MemberListError(f"could not parse member list output: {e}") from e


def get_member_id_by_name(client: MemberLister, name: str) -> tuple[int, bool]:
    """Return ``(member_id, True)`` for the member called *name*, or ``(0, False)``."""
    resp = client.member_list()
    for member in resp.members:
        if member.name == name:
            return member.id, True
    return 0, False


def member_to_remove(cx: CtlContext, lister: MemberLister | None = None) -> tuple[str, str, str]:
    """Pick the member a reconfiguration test removes: always the second listed.

    Args:
        cx: Context of the current run.
        lister: Source of the member list, or None to ask etcdctl.

    Returns:
        Tuple of (client endpoint, member ID hex, cluster ID hex) of that member.

    Raises:
        HarnessFailure: If the cluster is too small or its size is unexpected.
    """
    n1 = cx.cfg.cluster_size
    if n1 < 2:
        raise HarnessFailure(f"{n1}-node is too small to test 'member remove'")

    resp = lister.member_list() if lister is not None else get_member_list(cx)
    if n1 != len(resp.members):
        raise HarnessFailure(f"expected {n1}, got {len(resp.members)}")

    target = resp.members[1]
    if not target.client_urls:
        raise HarnessFailure(f"member {target.id:x} has no client URLs")

    ep = target.client_urls[0]
    member_id = f"{target.id:x}"
    cluster_id = f"{resp.header.cluster_id:x}"
    return ep, member_id, cluster_id


# ============================================================================
# Bulk loading
# ============================================================================

def rand_string(n: int) -> str:
    """Return *n* random lowercase letters."""
    return "".join(random.choices(string.ascii_lowercase, k=n))


def fill_etcd_with_data(
    client: KVWriter,
    db_size: int,
    concurrency: int = FILL_CONCURRENCY,
    key_count: int = FILL_KEY_COUNT,
) -> None:
    """Write *key_count* keys ``"0"``..``"key_count-1"`` totalling about *db_size* bytes.

    Keys are split evenly across *concurrency* writers. The first write error
    stops the remaining writers and is raised; later errors are dropped.

    Args:
        client: Anything with a ``put(key, value)`` method.
        db_size: Target payload size in bytes across all keys.
        concurrency: Number of concurrent writers.
        key_count: Number of keys to write.
    """
    keys_per_writer = key_count // concurrency
    value_size = db_size // key_count
    abort = threading.Event()
    lock = threading.Lock()
    first_error: list[Exception] = []

    def _writer(i: int) -> None:
        for j in range(keys_per_writer):
            if abort.is_set():
                return
            try:
                client.put(str(i * keys_per_writer + j), rand_string(value_size))
            except Exception as e:
                with lock:
                    if not first_error:
                        first_error.append(e)
                abort.set()
                return

    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        for i in range(concurrency):
            executor.submit(_writer, i)

    if first_error:
        raise first_error[0]
