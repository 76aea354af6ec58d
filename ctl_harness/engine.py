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

"""Bounded-time execution of etcdctl test bodies against a started cluster.

A run goes through four steps:

1. Build a :class:`CtlContext` from the defaults and the option chain, then
   derive the effective cluster shape from it.
2. Start the cluster through the factory. Any failure is a
   :class:`ClusterStartError`; there is no retry.
3. Run the test body on a worker thread and wait for it up to the run
   deadline. When the deadline fires first the context's ``cancelled`` event
   is set, the worker gets a short grace period to notice, and the run fails
   with :class:`RunTimeoutError` carrying every thread's stack.
4. Tear down: unset staged ETCDCTL_* variables and close the cluster once.
   This happens on every path out of step 3.

An optional offline body runs after teardown, without a deadline, to inspect
the data directory the cluster left behind.
"""

from __future__ import annotations

import sys
import threading
import traceback
from collections.abc import Callable

from ctl_harness import logger
from ctl_harness.cluster import ClusterFactory, ExistingCluster
from ctl_harness.config import config_standalone
from ctl_harness.constants import WORKER_DRAIN_GRACE_SECONDS
from ctl_harness.errors import ClusterStartError, RunTimeoutError
from ctl_harness.options import CtlContext, CtlOption, default_ctl_ctx

BodyFunc = Callable[[CtlContext], None]


def thread_stacks() -> str:
    """Format the current stack of every live thread."""
    names = {t.ident: t.name for t in threading.enumerate()}
    sections = []
    for ident, frame in sys._current_frames().items():
        header = f"Thread {names.get(ident, '<unknown>')} ({ident}):\n"
        sections.append(header + "".join(traceback.format_stack(frame)))
    return "\n".join(sections)


def prepare_cluster_config(cx: CtlContext, keep_data_dir: bool = False) -> None:
    """Fold the context's convenience fields into ``cx.cfg``."""
    if not cx.quorum:
        cx.cfg = config_standalone(cx.cfg)
    if cx.quota_backend_bytes > 0:
        cx.cfg.quota_backend_bytes = cx.quota_backend_bytes
    cx.cfg.no_strict_reconfig = cx.no_strict_reconfig
    if cx.initial_corrupt_check:
        cx.cfg.initial_corrupt_check = cx.initial_corrupt_check
    if keep_data_dir:
        cx.cfg.keep_data_dir = True


def _run_with_deadline(cx: CtlContext, test_func: BodyFunc, drain_grace: float) -> None:
    errors: list[BaseException] = []
    done = threading.Event()

    def _worker() -> None:
        try:
            test_func(cx)
            logger.info("---test_func logic DONE")
        except BaseException as e:
            errors.append(e)
        finally:
            done.set()

    timeout = cx.get_test_timeout()
    worker = threading.Thread(target=_worker, name="ctl-test-func", daemon=True)
    worker.start()

    if not done.wait(timeout):
        stacks = thread_stacks()
        cx.cancelled.set()
        worker.join(drain_grace)
        if worker.is_alive():
            logger.warning(
                "test body still running %ss after cancellation; abandoning it", drain_grace
            )
        raise RunTimeoutError(timeout, stacks)

    if errors:
        raise errors[0]


def run_ctl_test(
    test_func: BodyFunc,
    *opts: CtlOption,
    cluster_factory: ClusterFactory | None = None,
) -> CtlContext:
    """Run *test_func* against a fresh cluster configured by *opts*.

    Returns:
        The torn-down context of the run.
    """
    return run_ctl_test_with_offline(test_func, None, *opts, cluster_factory=cluster_factory)


def run_ctl_test_with_offline(
    test_func: BodyFunc,
    offline_func: BodyFunc | None,
    *opts: CtlOption,
    cluster_factory: ClusterFactory | None = None,
    drain_grace: float = WORKER_DRAIN_GRACE_SECONDS,
) -> CtlContext:
    """Run *test_func* under the run deadline, then *offline_func* after teardown.

    Args:
        test_func: Body run while the cluster is up.
        offline_func: Body run after the cluster is closed, or None.
        *opts: Options applied in order to the default context.
        cluster_factory: Starts the cluster, or None to attach to the cluster
            named by E2E_ENDPOINTS.
        drain_grace: Seconds a timed-out body gets to stop after cancellation.

    Returns:
        The torn-down context of the run.

    Raises:
        ClusterStartError: If the cluster cannot be started.
        RunTimeoutError: If *test_func* outlives the run deadline.
        ClusterCloseError: If closing the cluster fails.
    """
    cx = default_ctl_ctx()
    cx.apply_opts(opts)
    prepare_cluster_config(cx, keep_data_dir=offline_func is not None)

    factory = cluster_factory or ExistingCluster.start
    try:
        epc = factory(cx.cfg)
    except ClusterStartError:
        raise
    except Exception as e:
        raise ClusterStartError(f"could not start etcd process cluster ({e})") from e
    cx.epc = epc

    try:
        cx.data_dir = epc.data_dir()
        _run_with_deadline(cx, test_func, drain_grace)
    finally:
        logger.info("closing test cluster...")
        cx.teardown()
        logger.info("closed test cluster...")

    if offline_func is not None and cx.cfg.keep_data_dir:
        offline_func(cx)
    return cx
