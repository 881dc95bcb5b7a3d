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

"""URL helpers for node endpoints.

Node urls are stored with their host resolved to an address so that
comparisons between persisted records and provider output are
address-based rather than name-based.
"""

from __future__ import annotations

import ipaddress
import socket
from urllib.parse import urlsplit, urlunsplit

from flygrid.utils.logger import logger


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def host_resolved_url(url: str) -> str:
    """Return ``url`` with its hostname replaced by the resolved address.

    Urls whose host is already an IP literal are returned unchanged. If the
    host cannot be resolved the url is returned as given.

    Args:
        url: Endpoint url, e.g. ``http://selenium-1:5555/wd/hub``

    Returns:
        The url with the host part replaced, e.g. ``http://10.0.0.7:5555/wd/hub``
    """
    parts = urlsplit(url)
    host = parts.hostname
    if not host or _is_ip_literal(host):
        return url

    try:
        address = socket.gethostbyname(host)
    except (socket.gaierror, UnicodeError) as e:
        logger.warning(f"Could not resolve host {host} for {url}: {e}")
        return url

    netloc = address
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
