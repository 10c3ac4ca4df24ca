"""
Built-in node handlers

Every handler has the signature:
    async def handler(node, inputs, context, services) -> NodeResult

Node types without a built-in handler are dispatched to their integration
proxy (see nodes.proxy.execute_proxy).
"""

from typing import Dict

from app.flow_engine.nodes.base import NodeHandler, NodeServices
from app.flow_engine.nodes.condition import execute_condition
from app.flow_engine.nodes.data_table import execute_data_table
from app.flow_engine.nodes.http_request import execute_http_request
from app.flow_engine.nodes.logger import execute_logger
from app.flow_engine.nodes.proxy import execute_ai_agent, execute_proxy
from app.flow_engine.nodes.response import execute_response
from app.flow_engine.nodes.transform import execute_code, execute_data_filter, execute_set_variable
from app.flow_engine.nodes.webhook_trigger import execute_webhook_trigger


def default_handlers() -> Dict[str, NodeHandler]:
    """Fresh {node_type: handler} mapping of the built-in node types."""
    return {
        'webhook-trigger': execute_webhook_trigger,
        'http-request': execute_http_request,
        'condition': execute_condition,
        'set-variable': execute_set_variable,
        'data-filter': execute_data_filter,
        'code-execution': execute_code,
        'ai-agent': execute_ai_agent,
        'response': execute_response,
        'logger': execute_logger,
        'data-table': execute_data_table,
    }


__all__ = [
    'NodeHandler',
    'NodeServices',
    'default_handlers',
    'execute_proxy',
]
