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
FastAPI application for the FlyGrid node pool.

This module exposes the node pool over HTTP so that session schedulers and
operators can manage the fleet:

- Node management (list, create, modify, destroy)
- Reconciliation with the node provider
- Selection of an available node for a requirement
- Health checks

Handlers are plain functions: the pool talks to the store with blocking
calls, and FastAPI runs such handlers in its worker threadpool.

Example Usage:
    Start the service:
    ```bash
    FLYGRID_NODE_LIST=http://10.0.0.5:5555/wd/hub \\
      uvicorn flygrid.service.app:app --host 0.0.0.0 --port 5000
    ```

    Pick a node with a tag:
    ```bash
    curl -X POST http://localhost:5000/nodes/select \\
      -H "Content-Type: application/json" \\
      -d '{"requirement": ["tag", "chrome"]}'
    ```
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from flygrid import __version__
from flygrid.config import NodePoolConfig
from flygrid.exceptions import FlyGridError, NodeNotFoundError
from flygrid.nodes.pool import NodePool
from flygrid.nodes.requirements import requirement_from_json
from flygrid.service.models import (
    DeleteResponse,
    ErrorResponse,
    HealthResponse,
    NodeCreateRequest,
    NodeListResponse,
    NodeModifyRequest,
    NodeResponse,
    NodeSelectRequest,
    NodeSelectResponse,
    RefreshResponse,
)
from flygrid.utils.logger import logger

# Global state
node_pool: NodePool = None
start_time: float = 0


async def refresh_loop(pool: NodePool, interval: float) -> None:
    """Refresh the pool every ``interval`` seconds until cancelled.

    A failed pass is logged and the next one runs on schedule.
    """
    while True:
        try:
            await asyncio.to_thread(pool.refresh_nodes)
        except FlyGridError as e:
            logger.warning(f"Node refresh failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error during node refresh: {e}", exc_info=True)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup and shutdown.

    Startup builds the node pool from the environment and, if configured,
    starts the background refresh loop. Shutdown stops the loop and closes
    the store connection.
    """
    global node_pool, start_time

    logger.info("Starting FlyGrid service...")
    config = NodePoolConfig.from_env()
    node_pool = NodePool.from_config(config)
    start_time = time.time()

    refresh_task: Optional[asyncio.Task] = None
    if config.refresh_interval > 0:
        refresh_task = asyncio.create_task(refresh_loop(node_pool, config.refresh_interval))
    logger.info("FlyGrid service started successfully")

    yield

    logger.info("Shutting down FlyGrid service...")
    if refresh_task:
        refresh_task.cancel()
        try:
            await refresh_task
        except asyncio.CancelledError:
            pass
    node_pool.close()
    logger.info("FlyGrid service shut down")


app = FastAPI(
    title="FlyGrid API",
    description="Node pool coordinator for browser automation fleets.",
    version=__version__,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Service status"},
        {"name": "Nodes", "description": "Node pool management and selection"},
    ],
)


# Exception handlers
@app.exception_handler(FlyGridError)
async def flygrid_exception_handler(request, exc: FlyGridError):
    """Render user-visible errors with their status; hide the rest."""
    if exc.user_visible:
        return JSONResponse(
            status_code=exc.status,
            content=ErrorResponse(error=exc.message).model_dump(),
        )
    logger.error(f"Unhandled FlyGrid error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Unknown error.").model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Unknown error.").model_dump(),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=time.time() - start_time,
        nodes=len(node_pool.node_ids()),
    )


@app.get("/nodes", response_model=NodeListResponse, tags=["Nodes"])
def list_nodes():
    """List every node in the pool."""
    views = node_pool.view_models()
    return NodeListResponse(
        nodes=[NodeResponse.from_view(v) for v in views],
        total=len(views),
    )


@app.post("/nodes", response_model=NodeResponse, tags=["Nodes"])
def create_node(request: NodeCreateRequest):
    """Register a node."""
    view = node_pool.create_node(
        request.url,
        tags=request.tags,
        max_sessions=request.max_sessions,
    )
    return NodeResponse.from_view(view)


@app.post("/nodes/refresh", response_model=RefreshResponse, tags=["Nodes"])
def refresh_nodes():
    """Sync the pool with the node provider."""
    node_pool.refresh_nodes()
    return RefreshResponse(success=True, total=len(node_pool.node_ids()))


@app.post("/nodes/select", response_model=NodeSelectResponse, tags=["Nodes"])
def select_node(request: NodeSelectRequest):
    """Pick a random node with spare capacity that matches the requirement."""
    requirement = requirement_from_json(request.requirement)
    view = node_pool.get_node(requirement)
    return NodeSelectResponse(node=NodeResponse.from_view(view) if view else None)


@app.get("/nodes/{node_id}", response_model=NodeResponse, tags=["Nodes"])
def get_node(node_id: str):
    """Get one node."""
    view = node_pool.view_model(node_id)
    if view is None:
        raise NodeNotFoundError(node_id)
    return NodeResponse.from_view(view)


@app.patch("/nodes/{node_id}", response_model=NodeResponse, tags=["Nodes"])
def modify_node(node_id: str, request: NodeModifyRequest):
    """Modify a node; omitted fields are left as they are."""
    view = node_pool.modify_node(
        node_id,
        url=request.url,
        tags=request.tags,
        max_sessions=request.max_sessions,
    )
    return NodeResponse.from_view(view)


@app.delete("/nodes/{node_id}", response_model=DeleteResponse, tags=["Nodes"])
def destroy_node(node_id: str):
    """Destroy a node, tearing down its infrastructure if it is live."""
    node_pool.destroy_node(node_id)
    return DeleteResponse(node_id=node_id)
