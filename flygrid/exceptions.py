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

"""Custom exceptions for FlyGrid.

This module defines the exception hierarchy used throughout FlyGrid.
All exceptions inherit from FlyGridError for easy catching and handling.

Exception Hierarchy:
    FlyGridError (base)
    ├── ConfigurationError - Invalid or unsupported configuration
    ├── NodeProviderError - Discovery or teardown failed at the provider
    ├── StoreContentionError - A watched transaction was aborted
    ├── NodeNotFoundError - Operation on an id that is not in the pool
    ├── DuplicateNodeError - Node url already registered
    ├── InvalidRequirementError - Malformed node requirement
    └── ValidationError - Invalid operation input

Errors marked ``user_visible`` carry a message that is safe to return to
API callers, together with an HTTP ``status`` classification.

Example:
    try:
        pool.modify_node(node_id, tags={"firefox"})
    except NodeNotFoundError:
        # Handle missing node
        pass
    except StoreContentionError as e:
        # Concurrent structural change, retry later
        time.sleep(e.retry_after)
"""

from __future__ import annotations

from typing import Optional


class FlyGridError(Exception):
    """Base exception for all FlyGrid errors.

    Attributes:
        message: Error message describing what went wrong
        user_visible: Whether the message may be shown to API callers
        status: HTTP status classification for the error
        retry_after: Optional seconds to wait before retrying
    """

    def __init__(
        self,
        message: str,
        user_visible: bool = False,
        status: int = 500,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_visible = user_visible
        self.status = status
        self.retry_after = retry_after


class ConfigurationError(FlyGridError):
    """Exception raised for configuration errors.

    Raised at startup when the node pool cannot be built from the supplied
    configuration.

    Examples:
        - Unsupported cloud provider
        - Custom provider missing required operations
        - Non-positive default session limit
    """

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message, user_visible=True, status=status)


class NodeProviderError(FlyGridError):
    """Exception raised when the node provider fails.

    Examples:
        - Cloud API unreachable while listing instances
        - Instance termination rejected
    """

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message, status=502)
        self.provider = provider


class StoreContentionError(FlyGridError):
    """Raised when a watched key changed before a transaction committed.

    The operation did not apply. Callers may retry it.
    """

    def __init__(
        self,
        message: str = "Concurrent modification detected",
        key: Optional[str] = None,
        retry_after: float = 0.1,
    ) -> None:
        super().__init__(message, user_visible=True, status=409, retry_after=retry_after)
        self.key = key


class NodeNotFoundError(FlyGridError):
    """Raised when a node id is not present in the pool."""

    def __init__(self, node_id: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Node not found: {node_id}",
            user_visible=True,
            status=404,
        )
        self.node_id = node_id


class DuplicateNodeError(FlyGridError):
    """Raised when creating a node whose url is already registered."""

    def __init__(self, url: str, existing_id: Optional[str] = None) -> None:
        super().__init__(
            f"A node with url {url} already exists",
            user_visible=True,
            status=409,
        )
        self.url = url
        self.existing_id = existing_id


class InvalidRequirementError(FlyGridError):
    """Raised when a node requirement cannot be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, user_visible=True, status=400)


class ValidationError(FlyGridError):
    """Exception raised when an operation is given invalid input.

    Examples:
        - Empty node url
        - Non-positive session limit
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, user_visible=True, status=400)
