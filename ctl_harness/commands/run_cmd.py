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

"""Run subcommands: execute a scenario against an externally-managed cluster."""

from __future__ import annotations

import typer

from ctl_harness import console
from ctl_harness.config import config_for_tls_mode
from ctl_harness.constants import DEFAULT_DIAL_TIMEOUT
from ctl_harness.engine import BodyFunc, run_ctl_test
from ctl_harness.options import (
    CtlOption,
    with_cfg,
    with_dial_timeout,
    with_flag_by_env,
    with_quorum,
    with_test_timeout,
    with_user,
)
from ctl_harness.scenarios import (
    cluster_version_test,
    fill_data_test,
    member_list_test,
    version_test,
)

app = typer.Typer(help="Run scenarios against the cluster named by E2E_ENDPOINTS.")


def _collect_opts(
    client_tls: str,
    dial_timeout: float,
    test_timeout: float,
    flag_by_env: bool,
    quorum: bool,
    user: str,
    password: str,
) -> list[CtlOption]:
    """Translate CLI flags into engine options."""
    try:
        cfg = config_for_tls_mode(client_tls)
    except KeyError as e:
        raise typer.BadParameter(str(e.args[0])) from e
    opts = [with_cfg(cfg), with_dial_timeout(dial_timeout), with_test_timeout(test_timeout)]
    if flag_by_env:
        opts.append(with_flag_by_env())
    if quorum:
        opts.append(with_quorum())
    if user:
        opts.append(with_user(user, password))
    return opts


def _execute(name: str, body: BodyFunc, opts: list[CtlOption]) -> None:
    console.print(f"[yellow]ℹ️  Running {name}...[/yellow]")
    run_ctl_test(body, *opts)
    console.print(f"[green]✅ {name} passed[/green]")


_CLIENT_TLS = typer.Option("none", "--client-tls", help="Client TLS mode: none, tls, auto, crl")
_DIAL_TIMEOUT = typer.Option(DEFAULT_DIAL_TIMEOUT, "--dial-timeout", help="etcdctl dial timeout in seconds")
_TEST_TIMEOUT = typer.Option(0.0, "--test-timeout", help="Run deadline in seconds (0: derive from dial timeout)")
_FLAG_BY_ENV = typer.Option(False, "--flag-by-env", help="Pass connection flags as ETCDCTL_* variables")
_QUORUM = typer.Option(False, "--quorum", help="Expect the full cluster size instead of one member")
_USER = typer.Option("", "--user", help="User name for authenticated commands")
_PASSWORD = typer.Option("", "--password", help="Password for --user")


@app.command()
def version(
    client_tls: str = _CLIENT_TLS,
    dial_timeout: float = _DIAL_TIMEOUT,
    test_timeout: float = _TEST_TIMEOUT,
    flag_by_env: bool = _FLAG_BY_ENV,
    user: str = _USER,
    password: str = _PASSWORD,
) -> None:
    """Check that etcdctl reports its version."""
    opts = _collect_opts(client_tls, dial_timeout, test_timeout, flag_by_env, False, user, password)
    _execute("version", version_test, opts)


@app.command("cluster-version")
def cluster_version(
    expected: str = typer.Option(..., "--expected", help="Substring expected in the /version body"),
    client_tls: str = _CLIENT_TLS,
    dial_timeout: float = _DIAL_TIMEOUT,
    test_timeout: float = _TEST_TIMEOUT,
) -> None:
    """Poll /version until the cluster reports the expected version."""
    opts = _collect_opts(client_tls, dial_timeout, test_timeout, False, False, "", "")
    _execute("cluster-version", lambda cx: cluster_version_test(cx, expected), opts)


@app.command("member-list")
def member_list(
    client_tls: str = _CLIENT_TLS,
    dial_timeout: float = _DIAL_TIMEOUT,
    test_timeout: float = _TEST_TIMEOUT,
    flag_by_env: bool = _FLAG_BY_ENV,
    quorum: bool = _QUORUM,
    user: str = _USER,
    password: str = _PASSWORD,
) -> None:
    """List members through etcdctl and check the cluster size."""
    opts = _collect_opts(client_tls, dial_timeout, test_timeout, flag_by_env, quorum, user, password)
    _execute("member-list", member_list_test, opts)


@app.command("fill-data")
def fill_data(
    db_size: int = typer.Option(1000, "--db-size", help="Total payload in bytes", min=100),
    client_tls: str = _CLIENT_TLS,
    dial_timeout: float = _DIAL_TIMEOUT,
    test_timeout: float = _TEST_TIMEOUT,
) -> None:
    """Write 100 keys totalling --db-size bytes through the v3 client."""
    opts = _collect_opts(client_tls, dial_timeout, test_timeout, False, False, "", "")
    _execute("fill-data", lambda cx: fill_data_test(cx, db_size), opts)
