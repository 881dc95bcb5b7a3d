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
Node providers for FlyGrid.

A node provider is the source of truth for which worker endpoints are live in
real infrastructure. The pool reconciles its persisted records against it and
asks it to tear down endpoints when nodes are destroyed. Adding capacity is
left to external infrastructure.

Provider variants:
1. Static: a fixed list of urls configured up front
2. Cloud: running cloud instances matching a tag filter (AWS only)
3. Custom: operator-supplied discovery and teardown callables
"""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional, Set

from flygrid.config import DEFAULT_NODE_URL
from flygrid.exceptions import ConfigurationError
from flygrid.utils.logger import logger

if TYPE_CHECKING:
    from flygrid.config import NodePoolConfig


class ProviderType(str, Enum):
    """Provider variants selectable through configuration."""
    STATIC = "static"
    CLOUD = "cloud"
    CUSTOM = "custom"


class NodeProvider(ABC):
    """Interface that supplies the current set of live node urls."""

    provider_type: ProviderType = ProviderType.CUSTOM

    @abstractmethod
    def list_live_nodes(self) -> Set[str]:
        """Return the urls of every live node.

        Raises:
            NodeProviderError: If the live set cannot be determined
        """

    @abstractmethod
    def remove(self, url: str) -> None:
        """Tear down the infrastructure behind ``url``."""


class StaticNodeProvider(NodeProvider):
    """Provider backed by a fixed list of urls; removal is a no-op."""

    provider_type = ProviderType.STATIC

    def __init__(self, urls: Optional[Iterable[str]] = None) -> None:
        self._urls = frozenset(urls or [DEFAULT_NODE_URL])

    def list_live_nodes(self) -> Set[str]:
        return set(self._urls)

    def remove(self, url: str) -> None:
        logger.debug(f"Static provider ignoring removal of {url}")


class CustomNodeProvider(NodeProvider):
    """Provider built from operator-supplied callables.

    Args:
        list_live_nodes: Callable returning an iterable of live urls
        remove: Optional callable tearing down one url
    """

    provider_type = ProviderType.CUSTOM

    def __init__(
        self,
        list_live_nodes: Callable[[], Iterable[str]],
        remove: Optional[Callable[[str], Any]] = None,
    ) -> None:
        if not callable(list_live_nodes):
            raise ConfigurationError("Custom node provider requires a callable list_live_nodes")
        if remove is not None and not callable(remove):
            raise ConfigurationError("Custom node provider remove must be callable")
        self._list_live_nodes = list_live_nodes
        self._remove = remove

    def list_live_nodes(self) -> Set[str]:
        return set(self._list_live_nodes())

    def remove(self, url: str) -> None:
        if self._remove is not None:
            self._remove(url)


def _import_object(path: str) -> Any:
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(
            f"Custom node provider must be given as 'module:attribute', got {path!r}"
        )
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Could not load custom node provider {path!r}: {e}") from e


def custom_provider(impl: Any) -> NodeProvider:
    """Install an explicitly configured provider implementation.

    Accepts a NodeProvider instance, a NodeProvider subclass, a mapping of
    ``list_live_nodes``/``remove`` callables, any object exposing those
    methods, or an import path to one of these.
    """
    if isinstance(impl, str):
        impl = _import_object(impl)
    if isinstance(impl, type):
        impl = impl()

    if isinstance(impl, NodeProvider):
        return impl
    if isinstance(impl, Mapping):
        unknown = set(impl) - {"list_live_nodes", "remove"}
        if unknown or "list_live_nodes" not in impl:
            raise ConfigurationError(
                "Custom node provider mapping must define list_live_nodes "
                "and may define remove"
            )
        return CustomNodeProvider(impl["list_live_nodes"], impl.get("remove"))
    if callable(getattr(impl, "list_live_nodes", None)):
        return CustomNodeProvider(impl.list_live_nodes, getattr(impl, "remove", None))

    raise ConfigurationError(f"Unsupported custom node provider: {impl!r}")


def cloud_provider(cloud_config: Mapping[str, Any]) -> NodeProvider:
    """Build the cloud-elastic provider named by ``cloud_config['provider']``."""
    provider = str(cloud_config.get("provider", "")).lstrip(":").lower()
    if provider == "aws":
        from flygrid.nodes.aws import AWSNodeProvider

        return AWSNodeProvider(cloud_config)
    raise ConfigurationError(
        "Issue with cloud config: AWS is the only currently supported provider."
    )


def node_provider_from_config(config: "NodePoolConfig") -> NodeProvider:
    """Select and build the node provider for a pool.

    An explicit implementation wins, then a cloud config, then the static
    node list (or the default endpoint).

    Raises:
        ConfigurationError: If the configured provider is unsupported
    """
    if config.node_provider is not None:
        provider = custom_provider(config.node_provider)
    elif config.cloud_config is not None:
        provider = cloud_provider(config.cloud_config)
    else:
        provider = StaticNodeProvider(config.node_list or None)

    logger.info(f"Using {provider.provider_type.value} node provider")
    return provider
