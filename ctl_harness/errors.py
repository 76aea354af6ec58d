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

"""Failure types reported by the harness."""

from __future__ import annotations


class HarnessFailure(AssertionError):
    """A fatal test-run failure raised by the harness itself.

    Derives from AssertionError so test runners report it as a failed test
    rather than an error in the test's own code.
    """


class ClusterStartError(HarnessFailure):
    """The cluster collaborator could not be started."""


class RunTimeoutError(HarnessFailure):
    """The test body did not finish before the run deadline."""

    def __init__(self, timeout: float, stacks: str) -> None:
        super().__init__(f"test timed out after {timeout}s\n{stacks}")
        self.timeout = timeout
        self.stacks = stacks


class ClusterCloseError(HarnessFailure):
    """Closing the cluster collaborator returned an error."""


class ExpectError(HarnessFailure):
    """A spawned command's output did not match what the test expected."""


class MemberListError(HarnessFailure):
    """Cluster membership could not be listed or parsed."""


class UnsupportedConnTypeError(ValueError):
    """The client connection type has no TLS resolution."""


class DialError(ConnectionError):
    """No endpoint answered within the dial timeout."""
