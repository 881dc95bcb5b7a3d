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
FlyGrid Admin CLI.

This module provides administrative CLI commands for a running FlyGrid
service:
- nodes list / show: Inspect the node pool
- nodes create / modify / destroy: Manage individual nodes
- nodes refresh: Reconcile the pool with its node provider
- nodes select: Pick an available node for a requirement

Usage:
    flygrid-admin nodes list
    flygrid-admin nodes create http://10.0.0.5:5555/wd/hub --tag chrome
    flygrid-admin nodes modify <node_id> --clear-tags --tag firefox
    flygrid-admin nodes select --requirement '["tag", "chrome"]'
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

import aiohttp

from flygrid.exceptions import FlyGridError


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def print_table(headers: List[str], rows: List[List[str]]) -> None:
    """Print data as a formatted table."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    print(header_line)
    print("-" * len(header_line))

    for row in rows:
        print(" | ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))


def node_rows(nodes: List[Dict[str, Any]]) -> List[List[str]]:
    return [
        [
            n.get("id", ""),
            n.get("url") or "",
            ",".join(n.get("tags") or []),
            str(n.get("max_sessions", "")),
        ]
        for n in nodes
    ]


NODE_HEADERS = ["Node ID", "Url", "Tags", "Max Sessions"]


async def api_request(
    endpoint: str,
    method: str = "GET",
    path: str = "/",
    data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Make an API request.

    Raises:
        FlyGridError: If the service answers with a non-2xx status
    """
    url = f"{endpoint.rstrip('/')}{path}"
    async with aiohttp.ClientSession() as session:
        async with session.request(method, url, json=data) as resp:
            if 200 <= resp.status < 300:
                return await resp.json()
            text = await resp.text()
            raise FlyGridError(f"API error {resp.status}: {text}", status=resp.status)


def run_request(
    args: argparse.Namespace,
    method: str,
    path: str,
    data: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Run one request, printing errors to stderr."""
    try:
        return asyncio.run(api_request(args.endpoint, method, path, data))
    except (FlyGridError, aiohttp.ClientError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return None


def show_node(args: argparse.Namespace, node: Dict[str, Any]) -> None:
    if args.json:
        print_json(node)
    else:
        print_table(NODE_HEADERS, node_rows([node]))


def cmd_nodes_list(args: argparse.Namespace) -> int:
    """List all nodes."""
    data = run_request(args, "GET", "/nodes")
    if data is None:
        return 1

    nodes = data.get("nodes", [])
    if args.json:
        print_json({"nodes": nodes, "total": len(nodes)})
    else:
        print(f"\n=== Nodes ({len(nodes)}) ===\n")
        if nodes:
            print_table(NODE_HEADERS, node_rows(nodes))
        else:
            print("No nodes registered.")
    return 0


def cmd_nodes_show(args: argparse.Namespace) -> int:
    """Show one node."""
    node = run_request(args, "GET", f"/nodes/{args.node_id}")
    if node is None:
        return 1
    show_node(args, node)
    return 0


def cmd_nodes_create(args: argparse.Namespace) -> int:
    """Register a node."""
    body: Dict[str, Any] = {"url": args.url, "tags": args.tag or []}
    if args.max_sessions is not None:
        body["max_sessions"] = args.max_sessions

    node = run_request(args, "POST", "/nodes", body)
    if node is None:
        return 1
    show_node(args, node)
    return 0


def cmd_nodes_modify(args: argparse.Namespace) -> int:
    """Modify a node."""
    body: Dict[str, Any] = {}
    if args.url:
        body["url"] = args.url
    if args.tag or args.clear_tags:
        body["tags"] = args.tag or []
    if args.max_sessions is not None:
        body["max_sessions"] = args.max_sessions

    if not body:
        print("Error: nothing to modify", file=sys.stderr)
        return 1

    node = run_request(args, "PATCH", f"/nodes/{args.node_id}", body)
    if node is None:
        return 1
    show_node(args, node)
    return 0


def cmd_nodes_destroy(args: argparse.Namespace) -> int:
    """Destroy a node."""
    if run_request(args, "DELETE", f"/nodes/{args.node_id}") is None:
        return 1
    print(f"Node {args.node_id} destroyed.")
    return 0


def cmd_nodes_refresh(args: argparse.Namespace) -> int:
    """Reconcile the pool with the node provider."""
    data = run_request(args, "POST", "/nodes/refresh")
    if data is None:
        return 1
    if args.json:
        print_json(data)
    else:
        print(f"Refresh complete, {data.get('total', 0)} nodes registered.")
    return 0


def cmd_nodes_select(args: argparse.Namespace) -> int:
    """Pick an available node."""
    requirement = None
    if args.requirement:
        try:
            requirement = json.loads(args.requirement)
        except ValueError as e:
            print(f"Error: requirement is not valid JSON: {e}", file=sys.stderr)
            return 1

    data = run_request(args, "POST", "/nodes/select", {"requirement": requirement})
    if data is None:
        return 1

    node = data.get("node")
    if node is None:
        print("No node available.")
        return 2
    show_node(args, node)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="flygrid-admin",
        description="FlyGrid Administrative CLI",
    )
    parser.add_argument(
        "--endpoint", "-e",
        default="http://localhost:5000",
        help="FlyGrid service url",
    )
    parser.add_argument(
        "--json", "-j",
        action="store_true",
        help="Output in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    nodes_parser = subparsers.add_parser("nodes", help="Manage nodes")
    nodes_sub = nodes_parser.add_subparsers(dest="nodes_command")

    nodes_list = nodes_sub.add_parser("list", help="List nodes")
    nodes_list.set_defaults(func=cmd_nodes_list)

    nodes_show = nodes_sub.add_parser("show", help="Show a node")
    nodes_show.add_argument("node_id", help="Node ID")
    nodes_show.set_defaults(func=cmd_nodes_show)

    nodes_create = nodes_sub.add_parser("create", help="Register a node")
    nodes_create.add_argument("url", help="Node endpoint url")
    nodes_create.add_argument("--tag", "-t", action="append", help="Tag (repeatable)")
    nodes_create.add_argument("--max-sessions", type=int, help="Session limit")
    nodes_create.set_defaults(func=cmd_nodes_create)

    nodes_modify = nodes_sub.add_parser("modify", help="Modify a node")
    nodes_modify.add_argument("node_id", help="Node ID")
    nodes_modify.add_argument("--url", help="New endpoint url")
    nodes_modify.add_argument("--tag", "-t", action="append", help="Replacement tag (repeatable)")
    nodes_modify.add_argument("--clear-tags", action="store_true", help="Remove all tags")
    nodes_modify.add_argument("--max-sessions", type=int, help="New session limit")
    nodes_modify.set_defaults(func=cmd_nodes_modify)

    nodes_destroy = nodes_sub.add_parser("destroy", help="Destroy a node")
    nodes_destroy.add_argument("node_id", help="Node ID")
    nodes_destroy.set_defaults(func=cmd_nodes_destroy)

    nodes_refresh = nodes_sub.add_parser("refresh", help="Sync nodes with the provider")
    nodes_refresh.set_defaults(func=cmd_nodes_refresh)

    nodes_select = nodes_sub.add_parser("select", help="Pick an available node")
    nodes_select.add_argument(
        "--requirement", "-r",
        help='Requirement in JSON pair form, e.g. \'["tag", "chrome"]\'',
    )
    nodes_select.set_defaults(func=cmd_nodes_select)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if hasattr(args, "func"):
        return args.func(args)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
