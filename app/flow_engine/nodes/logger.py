"""
logger node - writes user-defined log entries to the monitoring dashboard
and/or the debugger payload
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from app.flow_engine.context import ExecutionContext, NodeResult, deep_clone
from app.flow_engine.nodes.base import NodeServices, parse_json_input
from app.flow_engine.variable_resolver import VariableResolver

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = 'Logger node executed'
NO_DATA_SOURCE = '__none__'


def _resolve_data_source(node: Dict[str, Any], context: ExecutionContext) -> Any:
    # The raw template is read before interpolation so objects keep their shape
    raw = ((node.get('data') or {}).get('inputs') or {}).get('dataSource')
    if not isinstance(raw, str) or raw == NO_DATA_SOURCE:
        return None
    raw = raw.strip()
    if not (raw.startswith('{{') and raw.endswith('}}')):
        return None
    return VariableResolver(context).get_value(raw)


async def execute_logger(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    enabled = inputs.get('enabled')
    if enabled is False or enabled == 'false':
        return NodeResult.ok({'success': True, 'logged': False, 'logId': None, 'message': 'Logging disabled'})

    data = _resolve_data_source(node, context)

    custom_data = None
    raw_custom = inputs.get('customData')
    if raw_custom:
        custom_data = parse_json_input(raw_custom, default={'raw': raw_custom})

    metadata = {
        'nodeId': node.get('id'),
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
    if data is not None:
        metadata['data'] = deep_clone(data)
    if custom_data is not None:
        metadata['customData'] = custom_data

    destination = inputs.get('destination') or 'dashboard'
    level = inputs.get('logLevel') or 'info'
    message = inputs.get('message') or DEFAULT_MESSAGE

    log_id = None
    if destination in ('dashboard', 'both') and context.flow_project_id and context.execution_id:
        if services.monitoring_sink is not None:
            log_id = services.monitoring_sink.insert_monitoring_log(
                flow_id=context.flow_project_id,
                execution_id=context.execution_id,
                node_id=node.get('id'),
                level=level,
                message=message,
                metadata=metadata,
            )

    debug_log = None
    if destination in ('debugger', 'both'):
        debug_log = {'level': level, 'message': message, 'metadata': metadata}

    return NodeResult.ok({
        'success': True,
        'logged': True,
        'logId': log_id,
        'message': message,
        'destination': destination,
        'data': deep_clone(data) if data is not None else None,
        '_debugLog': debug_log,
    })
