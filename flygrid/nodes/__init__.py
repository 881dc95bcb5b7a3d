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
Node pool management for FlyGrid.

This package tracks the browser automation nodes of a fleet:
- NodeProvider: discovers which node endpoints are live
- NodePool: persists nodes, reconciles them with the provider and selects
  nodes with spare capacity
- Requirements: boolean expressions used to pick nodes by id, url or tag
"""

from flygrid.nodes.models import NodeView
from flygrid.nodes.pool import NodePool
from flygrid.nodes.providers import (
    CustomNodeProvider,
    NodeProvider,
    ProviderType,
    StaticNodeProvider,
    node_provider_from_config,
)
from flygrid.nodes.requirements import (
    AndRequirement,
    FieldRequirement,
    NodeRequirement,
    NotRequirement,
    OrRequirement,
    RequirementField,
    matches_requirement,
    requirement_from_json,
    requirement_to_json,
)
from flygrid.nodes.sessions import RedisSessionSource, SessionRecord, SessionSource

__all__ = [
    # Pool
    "NodePool",
    "NodeView",
    # Providers
    "CustomNodeProvider",
    "NodeProvider",
    "ProviderType",
    "StaticNodeProvider",
    "node_provider_from_config",
    # Requirements
    "AndRequirement",
    "FieldRequirement",
    "NodeRequirement",
    "NotRequirement",
    "OrRequirement",
    "RequirementField",
    "matches_requirement",
    "requirement_from_json",
    "requirement_to_json",
    # Sessions
    "RedisSessionSource",
    "SessionRecord",
    "SessionSource",
]
