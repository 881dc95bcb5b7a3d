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
FlyGrid - A node pool coordinator for fleets of browser automation workers.

FlyGrid tracks which worker endpoints exist, how many concurrent sessions
each may host, and hands out the best-matching available node on demand.
State lives in a shared Redis store so several coordinators can manage the
same fleet.
"""

__version__ = "0.4.0"
__author__ = "Firefly Software Solutions Inc"
__license__ = "Apache-2.0"

from flygrid.config import NodePoolConfig
from flygrid.exceptions import FlyGridError
from flygrid.nodes import NodePool, NodeView

__all__ = [
    "FlyGridError",
    "NodePool",
    "NodePoolConfig",
    "NodeView",
]
