"""
http-request node - outbound HTTP call via httpx
"""

import json
import logging
from typing import Any, Dict

import httpx

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.nodes.base import NodeServices, parse_json_input

logger = logging.getLogger(__name__)


def is_valid_url(url: str) -> bool:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.host)


async def execute_http_request(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    """
    Perform the configured request. Success means a 2xx status; the output
    always carries status, body (JSON when parseable) and headers.
    """
    request_url = str(inputs.get('url') or '').strip()
    if not request_url:
        return NodeResult.fail("HTTP Request failed: URL is empty or not configured.")

    if not is_valid_url(request_url):
        return NodeResult.fail(f'HTTP Request failed: Invalid URL format "{request_url}".')

    method = str(inputs.get('method') or 'GET').upper()

    headers = parse_json_input(inputs.get('headers'), default={})
    if not isinstance(headers, dict):
        headers = {}
    headers = {str(k): str(v) for k, v in headers.items()}

    if inputs.get('apiKey'):
        headers['Authorization'] = f"Bearer {inputs['apiKey']}"

    content = None
    body = inputs.get('body')
    if method != 'GET' and body not in (None, ''):
        if isinstance(body, (dict, list)):
            content = json.dumps(body)
            headers.setdefault('Content-Type', 'application/json')
        else:
            content = str(body)

    try:
        async with httpx.AsyncClient(transport=services.http_transport, timeout=services.http_timeout) as client:
            response = await client.request(method, request_url, headers=headers, content=content)
    except httpx.HTTPError as e:
        logger.warning(f"HTTP request from node {node.get('id')} failed: {e}")
        return NodeResult.fail(f"HTTP Request failed: {e}")

    try:
        response_data = response.json()
    except ValueError:
        response_data = response.text

    is_success = 200 <= response.status_code < 300
    error = None if is_success else (response.reason_phrase or f"HTTP {response.status_code}")
    output = {
        'success': is_success,
        'status': response.status_code,
        'statusText': response.reason_phrase,
        'data': response_data,
        'headers': dict(response.headers),
        'error': error,
    }

    if is_success:
        return NodeResult.ok(output)
    return NodeResult.fail(f"HTTP Request failed with status {response.status_code}: {error}", output=output)
