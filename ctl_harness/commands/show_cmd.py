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

"""Show subcommands (config, prefix-args)."""

from __future__ import annotations

import typer
from rich.table import Table

from ctl_harness import console
from ctl_harness.config import config_for_tls_mode, display_config, get_settings
from ctl_harness.constants import DEFAULT_DIAL_TIMEOUT
from ctl_harness.environment import ScopedEnvironment
from ctl_harness.invocation import prefix_args
from ctl_harness.options import CtlContext

app = typer.Typer(help="Inspect resolved configuration.")


@app.command()
def config(
    client_tls: str = typer.Option("none", "--client-tls", help="Client TLS mode: none, tls, auto, crl"),
) -> None:
    """Print resolved settings and the cluster shape for a TLS mode."""
    try:
        cfg = config_for_tls_mode(client_tls)
    except KeyError as e:
        raise typer.BadParameter(str(e.args[0])) from e
    display_config(get_settings(), cfg)


@app.command("prefix-args")
def show_prefix_args(
    endpoints: str | None = typer.Option(
        None, "--endpoints", help="Comma separated client URLs (overrides E2E_ENDPOINTS)"),
    client_tls: str = typer.Option("none", "--client-tls", help="Client TLS mode: none, tls, auto, crl"),
    dial_timeout: float = typer.Option(DEFAULT_DIAL_TIMEOUT, "--dial-timeout", help="Dial timeout in seconds"),
    user: str = typer.Option("", "--user", help="User name for authenticated commands"),
    password: str = typer.Option("", "--password", help="Password for --user"),
    flag_by_env: bool = typer.Option(False, "--flag-by-env", help="Encode fields as ETCDCTL_* variables"),
) -> None:
    """Print the etcdctl invocation vector for the given connection parameters."""
    settings = get_settings()
    eps = [ep.strip() for ep in endpoints.split(",") if ep.strip()] if endpoints else settings.endpoint_list
    if not eps:
        raise typer.BadParameter("no endpoints given and E2E_ENDPOINTS is not set")
    try:
        cfg = config_for_tls_mode(client_tls)
    except KeyError as e:
        raise typer.BadParameter(str(e.args[0])) from e

    cx = CtlContext(
        cfg=cfg,
        dial_timeout=dial_timeout,
        user=user,
        password=password,
        env_map=ScopedEnvironment() if flag_by_env else None,
    )
    args = prefix_args(cx, eps, settings)
    console.print(" ".join(args))

    if cx.env_map:
        table = Table(title="Staged environment")
        table.add_column("Variable", style="cyan")
        table.add_column("Value")
        for key, value in cx.env_map.items():
            table.add_row(key, value)
        console.print(table)
