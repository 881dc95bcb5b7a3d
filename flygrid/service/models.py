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
Pydantic models for the FlyGrid REST API requests and responses.

Node requirements travel in their JSON pair form, e.g.
``["or", [["tag", "chrome"], ["tag", "firefox"]]]``, and are parsed by
``flygrid.nodes.requirements.requirement_from_json``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from flygrid.nodes.models import NodeView


class NodeResponse(BaseModel):
    """A node as presented to API callers."""

    id: str = Field(..., description="Unique node identifier")
    url: Optional[str] = Field(None, description="Node endpoint url")
    tags: List[str] = Field(default_factory=list, description="Node tags")
    max_sessions: Optional[int] = Field(None, description="Session limit")

    @classmethod
    def from_view(cls, view: NodeView) -> "NodeResponse":
        return cls(**view.to_dict())


class NodeListResponse(BaseModel):
    """All nodes in the pool."""

    nodes: List[NodeResponse] = Field(default_factory=list)
    total: int = Field(0, description="Number of nodes")


class NodeCreateRequest(BaseModel):
    """Request to register a node."""

    url: str = Field(..., min_length=1, description="Node endpoint url")
    tags: List[str] = Field(default_factory=list, description="Initial tags")
    max_sessions: Optional[int] = Field(None, ge=1, description="Session limit")


class NodeModifyRequest(BaseModel):
    """Request to modify a node.

    Omitted fields are left untouched; ``tags: []`` clears the tags.
    """

    url: Optional[str] = Field(None, min_length=1, description="New endpoint url")
    tags: Optional[List[str]] = Field(None, description="Replacement tag set")
    max_sessions: Optional[int] = Field(None, ge=1, description="New session limit")


class NodeSelectRequest(BaseModel):
    """Request to pick an available node."""

    requirement: Optional[Any] = Field(None, description="Requirement in JSON pair form")


class NodeSelectResponse(BaseModel):
    """Selected node, or null when no node qualifies."""

    node: Optional[NodeResponse] = None


class RefreshResponse(BaseModel):
    """Result of a refresh pass."""

    success: bool = True
    total: int = Field(0, description="Number of nodes after the refresh")


class DeleteResponse(BaseModel):
    status: str = "deleted"
    node_id: str


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="FlyGrid version")
    uptime_seconds: float = Field(..., description="Seconds since startup")
    nodes: int = Field(0, description="Registered nodes")


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error message")
    details: Dict[str, Any] = Field(default_factory=dict)
