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

"""Invocation vectors for etcdctl: flag tokens or staged ETCDCTL_* variables."""

from __future__ import annotations

from typing import Protocol

from ctl_harness.config import ClientConnType, HarnessSettings, get_settings
from ctl_harness.constants import CTL_ENV_PREFIX
from ctl_harness.environment import ScopedEnvironment
from ctl_harness.options import CtlContext

_SUBSECOND_UNITS = (("ms", 1_000_000), ("µs", 1_000), ("ns", 1))
_NS_PER_SECOND = 1_000_000_000


def flag_to_env(prefix: str, name: str) -> str:
    """Convert a flag name to the environment variable etcdctl reads it from.

    Args:
        prefix: Variable prefix without the trailing underscore (e.g. ``ETCDCTL``).
        name: Flag name without dashes in front (e.g. ``dial-timeout``).

    Returns:
        Variable name, e.g. ``ETCDCTL_DIAL_TIMEOUT``.
    """
    return f"{prefix}_{name.replace('-', '_').upper()}"


def _with_fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(frac).zfill(digits).rstrip('0')}"


def format_duration(seconds: float) -> str:
    """Render *seconds* the way Go prints a time.Duration (``7s``, ``1m30s``, ``500ms``)."""
    ns = round(seconds * _NS_PER_SECOND)
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < _NS_PER_SECOND:
        for suffix, size in _SUBSECOND_UNITS:
            if ns >= size:
                return f"{sign}{_with_fraction(ns, size)}{suffix}"
    minutes, rem = divmod(ns, 60 * _NS_PER_SECOND)
    hours, minutes = divmod(minutes, 60)
    secs = f"{_with_fraction(rem, _NS_PER_SECOND)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}"
    if minutes:
        return f"{sign}{minutes}m{secs}"
    return f"{sign}{secs}"


# ============================================================================
# Field set
# ============================================================================

def connection_fields(
    cx: CtlContext,
    endpoints: list[str],
    settings: HarnessSettings | None = None,
) -> dict[str, str]:
    """Build the keyed connection and security fields for one invocation.

    Args:
        cx: Context of the current run.
        endpoints: Client URLs to connect to.
        settings: Harness settings, or None for the process-wide settings.

    Returns:
        Ordered mapping of flag name to value.
    """
    settings = settings or get_settings()
    fmap: dict[str, str] = {
        "endpoints": ",".join(endpoints),
        "dial-timeout": format_duration(cx.dial_timeout),
    }
    if cx.cfg.client_tls == ClientConnType.TLS:
        if cx.cfg.is_client_auto_tls:
            fmap["insecure-transport"] = "false"
            fmap["insecure-skip-tls-verify"] = "true"
        elif cx.cfg.is_client_crl:
            fmap["cacert"] = settings.ca_path
            fmap["cert"] = settings.revoked_cert_path
            fmap["key"] = settings.revoked_private_key_path
        else:
            fmap["cacert"] = settings.ca_path
            fmap["cert"] = settings.cert_path
            fmap["key"] = settings.private_key_path
    if cx.user:
        fmap["user"] = f"{cx.user}:{cx.password}"
    return fmap


# ============================================================================
# Encodings
# ============================================================================

class FieldEncoding(Protocol):
    def encode(self, fields: dict[str, str], args: list[str]) -> list[str]:
        ...


class FlagEncoding:
    """Appends ``--key=value`` tokens to the command line."""

    def encode(self, fields: dict[str, str], args: list[str]) -> list[str]:
        args.extend(f"--{key}={value}" for key, value in fields.items())
        return args


class EnvEncoding:
    """Stages each field as an environment variable; the command line is unchanged."""

    def __init__(self, env: ScopedEnvironment, prefix: str = CTL_ENV_PREFIX) -> None:
        self.env = env
        self.prefix = prefix

    def encode(self, fields: dict[str, str], args: list[str]) -> list[str]:
        for key, value in fields.items():
            self.env[flag_to_env(self.prefix, key)] = value
        return args


def encoding_for(cx: CtlContext) -> FieldEncoding:
    if cx.env_map is not None:
        return EnvEncoding(cx.env_map)
    return FlagEncoding()


# ============================================================================
# Prefixes
# ============================================================================

def prefix_args(
    cx: CtlContext,
    endpoints: list[str],
    settings: HarnessSettings | None = None,
) -> list[str]:
    """Return the etcdctl command prefix for *endpoints*.

    In flag-by-env mode the connection fields are staged in ``cx.env_map``
    instead of the returned list; the engine unsets them after the run.
    """
    settings = settings or get_settings()
    fields = connection_fields(cx, endpoints, settings)
    return encoding_for(cx).encode(fields, [settings.ctl_bin_path])


def ctx_prefix_args(cx: CtlContext, settings: HarnessSettings | None = None) -> list[str]:
    """Return the etcdctl command prefix for the run's live cluster."""
    if cx.epc is None:
        raise RuntimeError("cluster is not running")
    return prefix_args(cx, cx.epc.endpoints(), settings)


def prefix_args_utl(cx: CtlContext, settings: HarnessSettings | None = None) -> list[str]:
    """Return the prefix for commands that take no endpoint or TLS flags.

    This is etcdutl when the run was configured with ``with_etcdutl``,
    otherwise etcdctl.
    """
    settings = settings or get_settings()
    if cx.etcdutl:
        return [settings.utl_bin_path]
    return [settings.ctl_bin_path]


def patch_args(args: list[str], flag: str, new_value: str) -> list[str]:
    """Replace the token carrying *flag* with ``--flag=new_value``, or append it."""
    for i, arg in enumerate(args):
        if flag in arg:
            args[i] = f"--{flag}={new_value}"
            return args
    args.append(f"--{flag}={new_value}")
    return args
