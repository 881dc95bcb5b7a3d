# Copyright 2026 Firefly Software Solutions Inc
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

"""
Session lookups used for node capacity accounting.

Sessions are owned by the session subsystem; the node pool only reads how
many of them are attributed to each node. Soft-deleted sessions still count
so that a session that is being torn down keeps occupying its slot until its
record is gone.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import redis

from flygrid.storage.redis_store import ModelKeys, RedisModelStore


@dataclass(frozen=True)
class SessionRecord:
    """A browser session as seen by the node pool."""
    id: str
    node_id: Optional[str]
    soft_deleted: bool = False


class SessionSource(ABC):
    """Read-only view of the session subsystem."""

    @abstractmethod
    def sessions(self, node_id: str, include_soft_deleted: bool = True) -> List[SessionRecord]:
        """Return the sessions attributed to ``node_id``."""

    def session_count(self, node_id: str) -> int:
        return len(self.sessions(node_id, include_soft_deleted=True))


class RedisSessionSource(SessionSource):
    """Session records stored alongside the nodes.

    Layout: ``<prefix>/sessions`` holds the session ids and
    ``<prefix>/sessions/<id>`` is a hash with ``node_id`` and ``deleted``.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "_flygrid") -> None:
        self._store = RedisModelStore(client, ModelKeys(prefix=key_prefix, name="sessions"))

    def _records(self) -> List[SessionRecord]:
        records = []
        for session_id in self._store.ids():
            data = self._store.read(session_id)
            records.append(
                SessionRecord(
                    id=session_id,
                    node_id=data.get("node_id"),
                    soft_deleted=data.get("deleted", "false").lower() == "true",
                )
            )
        return records

    def sessions(self, node_id: str, include_soft_deleted: bool = True) -> List[SessionRecord]:
        return [
            s for s in self._records()
            if s.node_id == node_id and (include_soft_deleted or not s.soft_deleted)
        ]
