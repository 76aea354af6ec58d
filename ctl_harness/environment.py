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

"""Scoped staging of ETCDCTL_* variables for flag-by-env invocations."""

from __future__ import annotations

import os
from collections.abc import Iterator, MutableMapping

from ctl_harness.constants import CTL_ENV_PREFIX


class ScopedEnvironment(MutableMapping[str, str]):
    """Variables staged for a single test run.

    Staging a key never touches ``os.environ``. Spawned commands receive the
    staged values through :meth:`child_env`. Anything pushed into the process
    environment with :meth:`export` is removed again by :meth:`restore`, which
    also puts back values the process had before the export.
    """

    def __init__(self, prefix: str = CTL_ENV_PREFIX) -> None:
        self.prefix = prefix
        self._staged: dict[str, str] = {}
        self._saved: dict[str, str | None] = {}

    def __getitem__(self, key: str) -> str:
        return self._staged[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._staged[key] = value

    def __delitem__(self, key: str) -> None:
        del self._staged[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._staged)

    def __len__(self) -> int:
        return len(self._staged)

    def __repr__(self) -> str:
        return f"ScopedEnvironment(prefix={self.prefix!r}, staged={sorted(self._staged)})"

    def child_env(self) -> dict[str, str]:
        """Return the process environment overlaid with the staged values."""
        env = dict(os.environ)
        env.update(self._staged)
        return env

    def export(self) -> None:
        """Apply staged values to ``os.environ``, remembering what they replaced."""
        for key, value in self._staged.items():
            if key not in self._saved:
                self._saved[key] = os.environ.get(key)
            os.environ[key] = value

    def restore(self) -> None:
        """Unset every staged or exported key and clear the staging area."""
        for key in set(self._staged) | set(self._saved):
            previous = self._saved.get(key)
            if previous is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = previous
        self._staged.clear()
        self._saved.clear()

    def __enter__(self) -> ScopedEnvironment:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()
