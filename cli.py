#!/usr/bin/env python3
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

"""
cli.py - CLI for the etcdctl e2e harness.

Subcommands:
    show    Inspect resolved configuration (config, prefix-args)
    run     Run a scenario against an externally-managed cluster
            (version, cluster-version, member-list, fill-data)

Environment Variables:
    Harness settings can be overridden via E2E_* environment variables:
    - E2E_BIN_DIR (default: ./bin)
    - E2E_FIXTURES_DIR (default: ./fixtures)
    - E2E_ENDPOINTS (client URLs of the cluster under test)
    - E2E_DATA_DIR (data directory of its first member)

Examples:
    # Print the etcdctl prefix for a TLS cluster
    ./cli.py show prefix-args --endpoints https://127.0.0.1:2379 --client-tls tls

    # Same fields, staged as ETCDCTL_* variables
    ./cli.py show prefix-args --endpoints http://127.0.0.1:2379 --flag-by-env

    # Check etcdctl version against a running 3-member cluster
    E2E_ENDPOINTS=http://127.0.0.1:2379 ./cli.py run version

    # Load 1MB of data
    E2E_ENDPOINTS=http://127.0.0.1:2379 ./cli.py run fill-data --db-size 1000000

For detailed usage information, run: ./cli.py --help
"""

from __future__ import annotations

import logging
import sys

import typer

from ctl_harness import console
from ctl_harness.commands import run_cmd, show_cmd

app = typer.Typer(
    help="CLI for the etcdctl e2e harness.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(show_cmd.app, name="show")
app.add_typer(run_cmd.app, name="run")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
