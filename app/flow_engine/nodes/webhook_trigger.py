"""
webhook-trigger node - exposes the inbound request to the rest of the flow
"""

import asyncio
import logging
from typing import Any, Dict

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.nodes.base import NodeServices, is_truthy
from app.flow_engine.sandbox import SandboxError

logger = logging.getLogger(__name__)


async def execute_webhook_trigger(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    """
    Echo body/headers/query/method of the inbound request.

    When `transformPayload` is set, `transformCode` runs in the sandbox with
    (body, headers, query, method) and its return value is attached as
    `transformed`.
    """
    request = context.request or {}
    request_data = {
        'body': request.get('body') or {},
        'headers': request.get('headers') or {},
        'query': request.get('query') or {},
        'method': request.get('method') or 'POST',
    }

    transformed = None
    transform_code = inputs.get('transformCode')
    if is_truthy(inputs.get('transformPayload')) and transform_code:
        try:
            transformed = await asyncio.to_thread(
                services.sandbox.run,
                transform_code,
                {
                    'body': request_data['body'],
                    'headers': request_data['headers'],
                    'query': request_data['query'],
                    'method': request_data['method'],
                },
            )
        except SandboxError as e:
            logger.warning(f"Transform code failed on node {node.get('id')}: {e}")
            transformed = {'error': f"Transform error: {e}"}

    return NodeResult.ok({
        'success': True,
        'body': request_data['body'],
        'payload': request_data['body'],
        'headers': request_data['headers'],
        'query': request_data['query'],
        'method': request_data['method'],
        'transformed': transformed,
    })
