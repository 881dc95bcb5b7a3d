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

"""Node view models as presented to library users."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

# Attribute hash field names.
URL_FIELD = "url"
MAX_SESSIONS_FIELD = "max-sessions"


@dataclass(frozen=True)
class NodeView:
    """Read projection of a node's persisted fields."""
    id: str
    url: Optional[str]
    tags: FrozenSet[str] = field(default_factory=frozenset)
    max_sessions: Optional[int] = None

    @classmethod
    def from_record(cls, node_id: str, record: Dict[str, Any]) -> "NodeView":
        """Build a view model from a raw store record."""
        max_sessions = record.get(MAX_SESSIONS_FIELD)
        return cls(
            id=node_id,
            url=record.get(URL_FIELD) or None,
            tags=frozenset(record.get("tags") or ()),
            max_sessions=int(max_sessions) if max_sessions is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "tags": sorted(self.tags),
            "max_sessions": self.max_sessions,
        }
