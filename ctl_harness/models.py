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

"""Response models shared by etcdctl JSON output and the v3 JSON gateway."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ResponseHeader(BaseModel):
    """Header attached to every v3 response."""

    model_config = ConfigDict(extra="ignore")

    cluster_id: int = 0
    member_id: int = 0
    revision: int = 0
    raft_term: int = 0


class Member(BaseModel):
    """One cluster member.

    Attributes:
        id: Member ID.
        name: Member name, empty until the member has started.
        peer_urls: URLs the member listens on for peers.
        client_urls: URLs the member serves clients on.
        is_learner: Member is a non-voting learner.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int = Field(alias="ID")
    name: str = ""
    peer_urls: list[str] = Field(default_factory=list, alias="peerURLs")
    client_urls: list[str] = Field(default_factory=list, alias="clientURLs")
    is_learner: bool = Field(default=False, alias="isLearner")


class MemberListResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    header: ResponseHeader = Field(default_factory=ResponseHeader)
    members: list[Member] = Field(default_factory=list)
