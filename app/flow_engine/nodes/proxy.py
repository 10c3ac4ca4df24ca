"""
Proxy nodes - ai-agent and the fallback for node types without a local handler
"""

import logging
import re
from typing import Any, Dict

import httpx

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.graph import node_type
from app.flow_engine.nodes.base import NodeServices

logger = logging.getLogger(__name__)

AI_AGENT_PROXY = 'ai-agent-proxy'

# Technical prefixes stripped from proxy errors before showing them to users
_ERROR_CLEANUPS = [
    (re.compile(r'(Edge Function|Proxy) returned a non-2xx status code( \(\d+\))?', re.IGNORECASE), 'Request failed'),
    (re.compile(r'^[\w .-]+ API error:\s*', re.IGNORECASE), ''),
    (re.compile(r'proxy error:\s*', re.IGNORECASE), ''),
]


def proxy_name_for(type_name: str) -> str:
    """"slack-send-message" -> "slack-proxy", "hubspot" -> "hubspot-proxy"."""
    prefix = type_name.split('-')[0] if '-' in type_name else type_name
    return f"{prefix}-proxy"


def clean_error_message(message: str) -> str:
    for pattern, replacement in _ERROR_CLEANUPS:
        message = pattern.sub(replacement, message)
    return message.strip() or 'Request failed'


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get('message') or error)
    return str(error)


async def execute_proxy(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    """Dispatch an unregistered node type to its integration proxy."""
    type_name = node_type(node) or 'unknown'
    proxy_name = proxy_name_for(type_name)

    if services.proxy_client is None:
        return NodeResult.fail(f'Node type "{type_name}" is not implemented server-side.')

    payload = {**inputs, 'action': inputs.get('action') or 'execute'}
    try:
        response = await services.proxy_client.invoke(proxy_name, payload)
    except httpx.HTTPError as e:
        return NodeResult.fail(f"Failed to invoke {proxy_name}: {e}")

    if not response.ok:
        if response.status_code == 404:
            return NodeResult.fail(
                f'Proxy function "{proxy_name}" not found. '
                f'Node type "{type_name}" is not implemented server-side.'
            )
        return NodeResult.fail(f"{type_name}: {clean_error_message(response.error or '')}")

    data = response.data
    if isinstance(data, dict) and data.get('error'):
        return NodeResult.fail(f"{type_name}: {_error_text(data['error'])}")

    output = dict(data) if isinstance(data, dict) else {'data': data}
    output['success'] = True
    return NodeResult.ok(output)


async def execute_ai_agent(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    """Delegate to the AI agent proxy."""
    if services.proxy_client is None:
        return NodeResult.fail("ai-agent: AI proxy is not configured")

    payload = {
        'apiKey': inputs.get('apiKey'),
        'model': inputs.get('model'),
        'instructions': inputs.get('instructions'),
        'inputData': inputs.get('inputData'),
        'temperature': inputs.get('temperature'),
        'knowledgeFiles': inputs.get('knowledgeFiles'),
        'flowProjectId': context.flow_project_id,
        'messages': inputs.get('messages'),
    }

    try:
        response = await services.proxy_client.invoke(AI_AGENT_PROXY, payload)
    except httpx.HTTPError as e:
        return NodeResult.fail(f"ai-agent: {e}")

    if not response.ok:
        return NodeResult.fail(f"ai-agent: {response.error or 'AI Agent proxy call failed'}")

    data = response.data
    if isinstance(data, dict) and data.get('error'):
        return NodeResult.fail(f"ai-agent: {_error_text(data['error'])}")

    output = dict(data) if isinstance(data, dict) else {'data': data}
    output['success'] = True
    return NodeResult.ok(output)
