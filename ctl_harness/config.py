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

"""Harness settings, cluster shape config, and config display."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from ctl_harness import console
from ctl_harness.constants import (
    CLIENT_DIAL_TIMEOUT,
    CTL_BINARY,
    DEFAULT_BASE_PORT,
    DEFAULT_BASE_SCHEME,
    DEFAULT_BIN_DIR,
    DEFAULT_CLUSTER_SIZE,
    DEFAULT_FIXTURES_DIR,
    DEFAULT_INITIAL_TOKEN,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SNAPSHOT_COUNT,
    DEFAULT_SPAWN_TIMEOUT,
    SERVER_BINARY,
    UTL_BINARY,
    fixture_value,
)


# ============================================================================
# Harness settings
# ============================================================================

class HarnessSettings(BaseSettings):
    """Harness configuration, auto-loaded from E2E_* env vars.

    Attributes:
        bin_dir: Directory holding the etcd, etcdctl and etcdutl binaries.
        fixtures_dir: Directory holding the certificate fixtures.
        ctl_binary: File name of the administration client.
        utl_binary: File name of the offline utility binary.
        server_binary: File name of the server binary.
        endpoints: Comma separated client URLs of an externally-managed cluster.
        data_dir: Data directory of the first member of that cluster.
        client_dial_timeout: Seconds the RPC client factory waits for a connection.
        spawn_timeout: Seconds a spawned binary may run before it is killed.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore")

    bin_dir: Path = DEFAULT_BIN_DIR
    fixtures_dir: Path = DEFAULT_FIXTURES_DIR
    ctl_binary: str = CTL_BINARY
    utl_binary: str = UTL_BINARY
    server_binary: str = SERVER_BINARY
    endpoints: str = ""
    data_dir: str = ""
    client_dial_timeout: float = Field(default=CLIENT_DIAL_TIMEOUT, gt=0)
    spawn_timeout: float = Field(default=DEFAULT_SPAWN_TIMEOUT, gt=0)

    @property
    def ctl_bin_path(self) -> str:
        return str(self.bin_dir / self.ctl_binary)

    @property
    def utl_bin_path(self) -> str:
        return str(self.bin_dir / self.utl_binary)

    @property
    def server_bin_path(self) -> str:
        return str(self.bin_dir / self.server_binary)

    @property
    def endpoint_list(self) -> list[str]:
        return [ep.strip() for ep in self.endpoints.split(",") if ep.strip()]

    def fixture_path(self, *keys: str) -> str:
        """Resolve a certificate fixture named in fixtures.yaml under fixtures_dir."""
        name = fixture_value(*keys)
        if name is None:
            raise KeyError(f"no fixture registered under {'.'.join(keys)}")
        return str(self.fixtures_dir / name)

    @property
    def ca_path(self) -> str:
        return self.fixture_path("tls", "ca")

    @property
    def cert_path(self) -> str:
        return self.fixture_path("tls", "cert")

    @property
    def private_key_path(self) -> str:
        return self.fixture_path("tls", "key")

    @property
    def revoked_cert_path(self) -> str:
        return self.fixture_path("revoked", "cert")

    @property
    def revoked_private_key_path(self) -> str:
        return self.fixture_path("revoked", "key")

    @property
    def crl_path(self) -> str:
        return self.fixture_path("crl")


@lru_cache(maxsize=1)
def get_settings() -> HarnessSettings:
    """Return the process-wide settings, resolved once from the environment."""
    return HarnessSettings()


# ============================================================================
# Cluster shape
# ============================================================================

class ClientConnType(enum.Enum):
    """How clients connect to the cluster's client URLs."""

    NON_TLS = "non-tls"
    TLS = "tls"
    TLS_AND_NON_TLS = "tls-and-non-tls"


@dataclass
class ClusterConfig:
    """Shape of a test cluster.

    Attributes:
        exec_path: Server binary to launch, or empty for the configured default.
        cluster_size: Number of members.
        base_scheme: URL scheme of client URLs without TLS ("http" or "unix").
        base_port: First client port.
        initial_token: Initial cluster token.
        client_tls: Client connection type.
        is_client_auto_tls: Server generates its own client certificate.
        is_client_crl: Client uses the revoked certificate pair.
        is_peer_tls: Peers talk TLS to each other.
        is_peer_auto_tls: Peers generate their own certificates.
        snapshot_count: Applied entries between snapshots.
        quota_backend_bytes: Backend quota, 0 for the server default.
        no_strict_reconfig: Disable strict reconfiguration checks.
        initial_corrupt_check: Check data consistency on member start.
        keep_data_dir: Keep the data directory after the cluster is closed.
        max_concurrent_streams: gRPC stream limit per client connection, 0 for default.
        log_level: Server log level.
        rolling_start: Start members one by one instead of all at once.
    """

    exec_path: str = ""
    cluster_size: int = 1
    base_scheme: str = DEFAULT_BASE_SCHEME
    base_port: int = DEFAULT_BASE_PORT
    initial_token: str = DEFAULT_INITIAL_TOKEN
    client_tls: ClientConnType = ClientConnType.NON_TLS
    is_client_auto_tls: bool = False
    is_client_crl: bool = False
    is_peer_tls: bool = False
    is_peer_auto_tls: bool = False
    snapshot_count: int = DEFAULT_SNAPSHOT_COUNT
    quota_backend_bytes: int = 0
    no_strict_reconfig: bool = False
    initial_corrupt_check: bool = False
    keep_data_dir: bool = False
    max_concurrent_streams: int = 0
    log_level: str = DEFAULT_LOG_LEVEL
    rolling_start: bool = False

    def copy(self) -> ClusterConfig:
        return replace(self)


def new_config_no_tls() -> ClusterConfig:
    return ClusterConfig(cluster_size=DEFAULT_CLUSTER_SIZE)


def new_config_auto_tls() -> ClusterConfig:
    return ClusterConfig(
        cluster_size=DEFAULT_CLUSTER_SIZE,
        is_peer_tls=True,
        is_peer_auto_tls=True,
    )


def new_config_peer_tls() -> ClusterConfig:
    return ClusterConfig(cluster_size=DEFAULT_CLUSTER_SIZE, is_peer_tls=True)


def new_config_client_tls() -> ClusterConfig:
    return ClusterConfig(cluster_size=DEFAULT_CLUSTER_SIZE, client_tls=ClientConnType.TLS)


def new_config_client_auto_tls() -> ClusterConfig:
    return ClusterConfig(
        cluster_size=1,
        client_tls=ClientConnType.TLS,
        is_client_auto_tls=True,
    )


def new_config_client_crl() -> ClusterConfig:
    return ClusterConfig(
        cluster_size=1,
        client_tls=ClientConnType.TLS,
        is_client_crl=True,
    )


def config_standalone(cfg: ClusterConfig) -> ClusterConfig:
    """Return a single-member copy of *cfg*."""
    return replace(cfg, cluster_size=1)


CLIENT_TLS_MODES = {
    "none": new_config_no_tls,
    "tls": new_config_client_tls,
    "auto": new_config_client_auto_tls,
    "crl": new_config_client_crl,
}


def config_for_tls_mode(mode: str) -> ClusterConfig:
    """Return the cluster shape for a client TLS mode name.

    Raises:
        KeyError: If *mode* is not one of CLIENT_TLS_MODES.
    """
    try:
        return CLIENT_TLS_MODES[mode]()
    except KeyError:
        raise KeyError(f"unknown client TLS mode {mode!r}; choose from {', '.join(CLIENT_TLS_MODES)}") from None


# ============================================================================
# Display
# ============================================================================

def display_config(settings: HarnessSettings, cfg: ClusterConfig | None = None) -> None:
    """Print resolved settings and, when given, a cluster shape.

    Args:
        settings: Resolved harness settings.
        cfg: Cluster shape to display, or None to skip it.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))

    console.print("[yellow]Binaries:[/yellow]")
    console.print(f"  ctl             : {settings.ctl_bin_path}")
    console.print(f"  utl             : {settings.utl_bin_path}")
    console.print(f"  server          : {settings.server_bin_path}")

    console.print("[yellow]Fixtures:[/yellow]")
    console.print(f"  fixtures_dir    : {settings.fixtures_dir}")

    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  endpoints       : {settings.endpoints or '(not set)'}")
    console.print(f"  data_dir        : {settings.data_dir or '(not set)'}")

    if cfg is not None:
        console.print("[yellow]Shape:[/yellow]")
        console.print(f"  cluster_size    : {cfg.cluster_size}")
        console.print(f"  client_tls      : {cfg.client_tls.value}")
        console.print(f"  client_auto_tls : {cfg.is_client_auto_tls}")
        console.print(f"  peer_tls        : {cfg.is_peer_tls}")
        console.print(f"  snapshot_count  : {cfg.snapshot_count}")
