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

"""Constants, fixture manifest loading, and fixture_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_DIR = PACKAGE_DIR.parent


def load_fixtures() -> dict:
    """Load certificate and binary names from fixtures.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    fixtures_file = PACKAGE_DIR / "fixtures.yaml"
    with open(fixtures_file) as f:
        return yaml.safe_load(f)


FIXTURES = load_fixtures()


def fixture_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the FIXTURES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = FIXTURES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Environment encoding --
CTL_ENV_PREFIX = "ETCDCTL"

# -- Timeouts (seconds) --
DEFAULT_DIAL_TIMEOUT = 7.0
FALLBACK_TEST_TIMEOUT = 30.0
TEST_TIMEOUT_SLACK = 1.0
WORKER_DRAIN_GRACE_SECONDS = 5.0
CLIENT_DIAL_TIMEOUT = 5.0
CLIENT_DIAL_RETRY_WAIT_SECONDS = 0.2
DEFAULT_SPAWN_TIMEOUT = 60.0

# -- Cluster version probe --
CLUSTER_VERSION_MAX_ATTEMPTS = 35
CLUSTER_VERSION_POLL_INTERVAL_SECONDS = 0.2

# -- Bulk loading --
FILL_CONCURRENCY = 10
FILL_KEY_COUNT = 100

# -- Self-signed certificates --
SELF_CERT_HOSTS = ("localhost",)
SELF_CERT_VALIDITY_YEARS = 1

# -- Cluster shape defaults --
DEFAULT_CLUSTER_SIZE = 3
DEFAULT_SNAPSHOT_COUNT = 10000
DEFAULT_BASE_SCHEME = "http"
DEFAULT_BASE_PORT = 20000
DEFAULT_INITIAL_TOKEN = "new"
DEFAULT_LOG_LEVEL = "info"

# -- Binaries and fixture directories --
DEFAULT_BIN_DIR = PROJECT_DIR / "bin"
DEFAULT_FIXTURES_DIR = PROJECT_DIR / "fixtures"
CTL_BINARY = fixture_value("binaries", "ctl", default="etcdctl")
UTL_BINARY = fixture_value("binaries", "utl", default="etcdutl")
SERVER_BINARY = fixture_value("binaries", "server", default="etcd")
