"""
Base types shared by the built-in node handlers
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.sandbox import Sandbox, sandbox as default_sandbox


@dataclass
class NodeServices:
    """
    External collaborators available to node handlers.

    proxy_client: integration proxy RPC (ProxyClient-like, async invoke)
    table_store: tabular store for the data-table node
    monitoring_sink: writes monitoring rows for the logger node
    http_transport: optional httpx transport for outbound calls (tests)
    """
    proxy_client: Any = None
    table_store: Any = None
    monitoring_sink: Any = None
    http_transport: Optional[httpx.AsyncBaseTransport] = None
    http_timeout: float = 30.0
    sandbox: Sandbox = field(default_factory=lambda: default_sandbox)


# handler(node, resolved_inputs, context, services) -> NodeResult
NodeHandler = Callable[[Dict[str, Any], Dict[str, Any], ExecutionContext, NodeServices], Awaitable[NodeResult]]


def parse_json_input(value: Any, default: Any = None) -> Any:
    """Parse a JSON string input; non-strings are returned untouched."""
    if value is None or value == '':
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return default


def is_truthy(value: Any) -> bool:
    """Input flags arrive either as booleans or as interpolated text."""
    if isinstance(value, str):
        return value.strip().lower() not in ('', 'false', '0', 'no', 'off', 'null', 'undefined')
    return bool(value)
