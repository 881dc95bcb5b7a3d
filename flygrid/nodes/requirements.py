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
Node requirements for FlyGrid.

A requirement is a small boolean expression tree evaluated against a node
view model:

- FieldRequirement: ``id``, ``tag`` or ``url`` equals a value
- NotRequirement: negation of one sub-requirement
- AndRequirement: every sub-requirement matches (empty is true)
- OrRequirement: any sub-requirement matches (empty is false)

``None`` stands for "no requirement" and matches every node.

REST callers send requirements as JSON pairs, for example::

    ["and", [["tag", "chrome"], ["not", ["url", "http://10.0.0.9:5555/wd/hub"]]]]
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Tuple, Union

from flygrid.exceptions import InvalidRequirementError

if TYPE_CHECKING:
    from flygrid.nodes.models import NodeView


class RequirementField(str, Enum):
    """Node fields that a leaf requirement can test."""
    ID = "id"
    TAG = "tag"
    URL = "url"


@dataclass(frozen=True)
class FieldRequirement:
    """Equality test on a single node field (membership for tags)."""
    field: RequirementField
    value: str


@dataclass(frozen=True)
class NotRequirement:
    requirement: "NodeRequirement"


@dataclass(frozen=True)
class AndRequirement:
    requirements: Tuple["NodeRequirement", ...] = ()


@dataclass(frozen=True)
class OrRequirement:
    requirements: Tuple["NodeRequirement", ...] = ()


NodeRequirement = Union[FieldRequirement, NotRequirement, AndRequirement, OrRequirement]


def matches_requirement(node: "NodeView", requirement: Optional[NodeRequirement]) -> bool:
    """Test whether ``node`` satisfies ``requirement``.

    Args:
        node: Node view model to test
        requirement: Requirement tree, or None for "any node"

    Returns:
        True if the node matches
    """
    if requirement is None:
        return True

    if isinstance(requirement, FieldRequirement):
        if requirement.field == RequirementField.TAG:
            return requirement.value in node.tags
        if requirement.field == RequirementField.ID:
            return node.id == requirement.value
        if requirement.field == RequirementField.URL:
            return node.url == requirement.value
        raise TypeError(f"Unknown requirement field: {requirement.field!r}")

    if isinstance(requirement, NotRequirement):
        return not matches_requirement(node, requirement.requirement)

    if isinstance(requirement, AndRequirement):
        return all(matches_requirement(node, r) for r in requirement.requirements)

    if isinstance(requirement, OrRequirement):
        return any(matches_requirement(node, r) for r in requirement.requirements)

    raise TypeError(f"Not a node requirement: {requirement!r}")


# ==================== JSON form ====================

def requirement_from_json(data: Any) -> Optional[NodeRequirement]:
    """Parse the JSON pair form of a requirement.

    Raises:
        InvalidRequirementError: If ``data`` is not a well-formed requirement
    """
    if data is None:
        return None

    if not isinstance(data, (list, tuple)) or len(data) != 2:
        raise InvalidRequirementError(
            f"A requirement must be a [type, argument] pair, got {data!r}"
        )

    kind, arg = data
    if kind in ("id", "tag", "url"):
        if not isinstance(arg, str):
            raise InvalidRequirementError(f"The {kind} requirement takes a string, got {arg!r}")
        return FieldRequirement(RequirementField(kind), arg)

    if kind == "not":
        if arg is None:
            raise InvalidRequirementError("The not requirement takes a requirement")
        return NotRequirement(requirement_from_json(arg))

    if kind in ("and", "or"):
        if not isinstance(arg, (list, tuple)):
            raise InvalidRequirementError(f"The {kind} requirement takes a list, got {arg!r}")
        children = tuple(requirement_from_json(r) for r in arg)
        if any(c is None for c in children):
            raise InvalidRequirementError(f"The {kind} requirement cannot contain null")
        if kind == "and":
            return AndRequirement(children)
        return OrRequirement(children)

    raise InvalidRequirementError(f"Unknown requirement type: {kind!r}")


def requirement_to_json(requirement: Optional[NodeRequirement]) -> Any:
    """Render a requirement in its JSON pair form."""
    if requirement is None:
        return None
    if isinstance(requirement, FieldRequirement):
        return [requirement.field.value, requirement.value]
    if isinstance(requirement, NotRequirement):
        return ["not", requirement_to_json(requirement.requirement)]
    if isinstance(requirement, AndRequirement):
        return ["and", [requirement_to_json(r) for r in requirement.requirements]]
    if isinstance(requirement, OrRequirement):
        return ["or", [requirement_to_json(r) for r in requirement.requirements]]
    raise TypeError(f"Not a node requirement: {requirement!r}")
