"""
response node - defines the HTTP response returned to the caller
"""

from typing import Any, Dict

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.nodes.base import NodeServices, parse_json_input

DEFAULT_CONTENT_TYPE = 'application/json'


def _status_code(value: Any) -> int:
    try:
        code = int(str(value).strip())
    except (TypeError, ValueError):
        return 200
    return code if 100 <= code <= 599 else 200


async def execute_response(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    body = inputs.get('body')
    if body in (None, ''):
        parsed_body = {}
    else:
        # Plain text stays text when it is not JSON
        parsed_body = parse_json_input(body, default=body)

    custom_headers = parse_json_input(inputs.get('customHeaders'), default={})
    if not isinstance(custom_headers, dict):
        custom_headers = {}

    return NodeResult.ok({
        'success': True,
        'statusCode': _status_code(inputs.get('statusCode')),
        'body': parsed_body,
        'contentType': inputs.get('contentType') or DEFAULT_CONTENT_TYPE,
        'headers': custom_headers,
    })
