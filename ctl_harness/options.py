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

"""Test-run context and the composable options that configure it."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ctl_harness import logger
from ctl_harness.cluster import ProcessCluster
from ctl_harness.config import ClusterConfig, new_config_auto_tls
from ctl_harness.constants import (
    DEFAULT_DIAL_TIMEOUT,
    FALLBACK_TEST_TIMEOUT,
    TEST_TIMEOUT_SLACK,
)
from ctl_harness.environment import ScopedEnvironment
from ctl_harness.errors import ClusterCloseError


# ============================================================================
# Context
# ============================================================================

@dataclass
class CtlContext:
    """Configuration and live resources of one test run.

    Attributes:
        cfg: Shape the cluster is started with.
        api_prefix: Key prefix used by scenarios.
        quota_backend_bytes: Backend quota copied into ``cfg`` when positive.
        corrupt_func: Callback that corrupts a member's data directory.
        no_strict_reconfig: Copied into ``cfg`` before the cluster starts.
        epc: Live cluster handle, None before start and after teardown.
        env_map: Staged ETCDCTL_* variables; None selects flag encoding.
        dial_timeout: Seconds passed to the client as ``--dial-timeout``.
        test_timeout: Run deadline in seconds, 0 to derive it from dial_timeout.
        quorum: Keep the configured cluster size instead of a single member.
        interactive: Scenario drives the client interactively.
        user: User name for authenticated invocations.
        password: Password paired with ``user``.
        initial_corrupt_check: Forced on after the options are applied.
        compact_physical: Scenarios compact with ``--physical``.
        etcdutl: Route utility commands to etcdutl instead of etcdctl.
        data_dir: Data directory of the first member once the cluster runs.
        cancelled: Set when the run deadline fires.
    """

    cfg: ClusterConfig = field(default_factory=ClusterConfig)
    api_prefix: str = ""
    quota_backend_bytes: int = 0
    corrupt_func: Callable[[str], None] | None = None
    no_strict_reconfig: bool = False

    epc: ProcessCluster | None = None

    env_map: ScopedEnvironment | None = None

    dial_timeout: float = 0.0
    test_timeout: float = 0.0

    quorum: bool = False
    interactive: bool = False

    user: str = ""
    password: str = ""

    initial_corrupt_check: bool = False

    compact_physical: bool = False

    etcdutl: bool = False

    data_dir: str = ""

    cancelled: threading.Event = field(default_factory=threading.Event)

    def apply_opts(self, opts: Iterable[CtlOption]) -> None:
        """Apply *opts*, then force the initial corruption check on.

        Structural options that replace ``cfg`` are applied first, in the
        order given; every other option follows in the order given. A
        field-level cfg override therefore survives wherever it appears in
        *opts*.
        """
        opts = list(opts)
        structural = [opt for opt in opts if opt.structural]
        rest = [opt for opt in opts if not opt.structural]
        if structural and rest and opts != structural + rest:
            logger.debug(
                "applying %s before the remaining options",
                ", ".join(opt.name for opt in structural),
            )
        for opt in structural + rest:
            opt(self)
        self.initial_corrupt_check = True

    def get_test_timeout(self) -> float:
        """Return the run deadline in seconds."""
        timeout = self.test_timeout
        if timeout == 0:
            timeout = 2 * self.dial_timeout + TEST_TIMEOUT_SLACK
            if self.dial_timeout == 0:
                timeout = FALLBACK_TEST_TIMEOUT
        return timeout

    def check_cancelled(self) -> None:
        """Raise if the run deadline has already fired."""
        if self.cancelled.is_set():
            raise RuntimeError("test run was cancelled after its deadline")

    def teardown(self) -> None:
        """Release the run's environment and cluster. Safe to call repeatedly.

        Raises:
            ClusterCloseError: If closing the cluster fails.
        """
        if self.env_map is not None:
            self.env_map.restore()
        if self.epc is not None:
            epc, self.epc = self.epc, None
            try:
                epc.close()
            except Exception as e:
                raise ClusterCloseError(f"error closing etcd processes ({e})") from e


def default_ctl_ctx() -> CtlContext:
    return CtlContext(cfg=new_config_auto_tls(), dial_timeout=DEFAULT_DIAL_TIMEOUT)


# ============================================================================
# Options
# ============================================================================

@dataclass(frozen=True)
class CtlOption:
    """A named mutation of a CtlContext.

    Attributes:
        name: Option name, used in diagnostics.
        apply: The mutation itself.
        structural: The option replaces the whole cluster config and is applied first.
    """

    name: str
    apply: Callable[[CtlContext], None]
    structural: bool = False

    def __call__(self, cx: CtlContext) -> None:
        self.apply(cx)


def with_cfg(cfg: ClusterConfig) -> CtlOption:
    snapshot = cfg.copy()

    def _apply(cx: CtlContext) -> None:
        cx.cfg = snapshot.copy()

    return CtlOption("with_cfg", _apply, structural=True)


def with_dial_timeout(timeout: float) -> CtlOption:
    return CtlOption("with_dial_timeout", lambda cx: setattr(cx, "dial_timeout", timeout))


def with_test_timeout(timeout: float) -> CtlOption:
    return CtlOption("with_test_timeout", lambda cx: setattr(cx, "test_timeout", timeout))


def with_quorum() -> CtlOption:
    return CtlOption("with_quorum", lambda cx: setattr(cx, "quorum", True))


def with_interactive() -> CtlOption:
    return CtlOption("with_interactive", lambda cx: setattr(cx, "interactive", True))


def with_quota(b: int) -> CtlOption:
    return CtlOption("with_quota", lambda cx: setattr(cx, "quota_backend_bytes", b))


def with_compact_physical() -> CtlOption:
    return CtlOption("with_compact_physical", lambda cx: setattr(cx, "compact_physical", True))


def with_initial_corrupt_check() -> CtlOption:
    return CtlOption(
        "with_initial_corrupt_check", lambda cx: setattr(cx, "initial_corrupt_check", True))


def with_corrupt_func(f: Callable[[str], None]) -> CtlOption:
    return CtlOption("with_corrupt_func", lambda cx: setattr(cx, "corrupt_func", f))


def with_no_strict_reconfig() -> CtlOption:
    return CtlOption("with_no_strict_reconfig", lambda cx: setattr(cx, "no_strict_reconfig", True))


def with_api_prefix(p: str) -> CtlOption:
    return CtlOption("with_api_prefix", lambda cx: setattr(cx, "api_prefix", p))


def with_flag_by_env() -> CtlOption:
    return CtlOption("with_flag_by_env", lambda cx: setattr(cx, "env_map", ScopedEnvironment()))


def with_etcdutl() -> CtlOption:
    return CtlOption("with_etcdutl", lambda cx: setattr(cx, "etcdutl", True))


def with_user(user: str, password: str) -> CtlOption:
    def _apply(cx: CtlContext) -> None:
        cx.user = user
        cx.password = password

    return CtlOption("with_user", _apply)


# Field-level cfg overrides. apply_opts runs them after with_cfg.

def with_max_concurrent_streams(streams: int) -> CtlOption:
    """Set ``cfg.max_concurrent_streams`` on top of the configured shape."""
    return CtlOption(
        "with_max_concurrent_streams",
        lambda cx: setattr(cx.cfg, "max_concurrent_streams", streams),
    )


def with_snapshot_count(snapshot_count: int) -> CtlOption:
    """Set ``cfg.snapshot_count`` on top of the configured shape."""
    return CtlOption(
        "with_snapshot_count",
        lambda cx: setattr(cx.cfg, "snapshot_count", snapshot_count),
    )


def with_log_level(log_level: str) -> CtlOption:
    """Set ``cfg.log_level`` on top of the configured shape."""
    return CtlOption(
        "with_log_level",
        lambda cx: setattr(cx.cfg, "log_level", log_level),
    )
