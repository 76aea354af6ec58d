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

"""Spawning the administration binaries and matching their output."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass

import sh

from ctl_harness import logger
from ctl_harness.config import get_settings
from ctl_harness.environment import ScopedEnvironment
from ctl_harness.errors import ExpectError


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Stdout followed by stderr, each stream starting on its own line."""
        if self.stdout and self.stderr and not self.stdout.endswith("\n"):
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout + self.stderr


def spawn_cmd(
    args: list[str],
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run *args* to completion and capture stdout and stderr separately.

    Uses subprocess instead of sh so the child gets exactly the environment
    passed in and the two output streams stay apart.

    Args:
        args: Command line, binary path first.
        env: Full child environment, or None to inherit the process environment.
        timeout: Seconds before the child is killed, or None for the configured default.

    Returns:
        Exit status and captured output.

    Raises:
        ExpectError: If the binary cannot be started or does not finish in time.
    """
    timeout = timeout if timeout is not None else get_settings().spawn_timeout
    logger.debug("spawning %s", " ".join(args))
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            env=dict(env) if env is not None else None,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ExpectError(f"{args[0]} did not exit within {timeout}s") from e
    except OSError as e:
        raise ExpectError(f"could not start {args[0]}: {e}") from e
    return CommandResult(result.returncode, result.stdout, result.stderr)


def _match_in_order(output: str, expected: list[str]) -> list[str]:
    lines = output.splitlines()
    matched: list[str] = []
    pos = 0
    for want in expected:
        while pos < len(lines) and want not in lines[pos]:
            pos += 1
        if pos == len(lines):
            raise ExpectError(
                f"expected {want!r} (after {matched!r}) in output, got:\n{output}"
            )
        matched.append(lines[pos])
        pos += 1
    return matched


def spawn_with_expect_lines(
    args: list[str],
    env: Mapping[str, str] | None,
    *expected: str,
) -> list[str]:
    """Run *args* and return the output lines matching each of *expected*, in order.

    Raises:
        ExpectError: If any expected string is missing from the combined output.
    """
    if isinstance(env, ScopedEnvironment):
        child_env = env.child_env()
    elif env is not None:
        child_env = {**os.environ, **env}
    else:
        child_env = None
    result = spawn_cmd(args, child_env)
    return _match_in_order(result.output, list(expected))


def spawn_with_expects_with_env(
    args: list[str],
    env: Mapping[str, str] | None,
    expected: list[str],
) -> None:
    spawn_with_expect_lines(args, env, *expected)


def spawn_with_expect_with_env(
    args: list[str],
    env: Mapping[str, str] | None,
    expected: str,
) -> None:
    spawn_with_expects_with_env(args, env, [expected])


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def curl_get(endpoint: str, path: str, expected: str, insecure: bool = False) -> str:
    """GET *path* from *endpoint* with curl and check the body contains *expected*.

    Returns:
        The response body.

    Raises:
        ExpectError: If curl fails or the body does not contain *expected*.
    """
    url = endpoint.rstrip("/") + path
    flags = ["-sS", "-L", "-m", "5"]
    if insecure:
        flags.append("-k")
    try:
        body = str(sh.curl(*flags, url))
    except sh.ErrorReturnCode as err:
        raise ExpectError(f"curl {url} failed: {err.stderr.decode(errors='replace').strip()}") from err
    if expected not in body:
        raise ExpectError(f"expected {expected!r} in response from {url}, got {body!r}")
    return body
