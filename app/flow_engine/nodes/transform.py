"""
Data nodes - set-variable, data-filter and code-execution
"""

import asyncio
import logging
from typing import Any, Dict

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.nodes.base import NodeServices
from app.flow_engine.nodes.condition import loose_equals, read_source_field
from app.flow_engine.sandbox import SandboxError
from app.flow_engine.variable_resolver import VariableResolver

logger = logging.getLogger(__name__)


async def execute_set_variable(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    """Output {variableName: value} and record it in the variables bag."""
    name = inputs.get('variableName') or 'value'
    value = inputs.get('value')
    context.variables[name] = value
    return NodeResult.ok({'success': True, name: value})


def _matches(item: Any, field: str, operation: str, expected: Any) -> bool:
    field_value = item.get(field) if isinstance(item, dict) else None
    if operation == 'eq':
        return loose_equals(field_value, expected)
    elif operation == 'neq':
        return not loose_equals(field_value, expected)
    elif operation == 'contains':
        return VariableResolver.stringify(expected) in VariableResolver.stringify(field_value)
    return True


async def execute_data_filter(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    """Filter a list from a previous node; non-list data passes through."""
    data = read_source_field(context, inputs.get('sourceNodeId'), inputs.get('outputField'))

    if not isinstance(data, list):
        return NodeResult.ok({'success': True, 'filtered': data, 'error': None})

    filtered = list(data)
    filter_field = inputs.get('filterField')
    filter_value = inputs.get('filterValue')
    if filter_field and filter_value not in (None, ''):
        operation = inputs.get('filterOperation') or 'eq'
        filtered = [item for item in filtered if _matches(item, filter_field, operation, filter_value)]

    return NodeResult.ok({'success': True, 'filtered': filtered, 'count': len(filtered), 'error': None})


async def execute_code(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    """
    Run the node's `code` in the sandbox with `inputs` and a snapshot of `context`.

    Example:
        total = sum(item['price'] for item in context['webhook']['body']['items'])
        return {'total': total}
    """
    code = inputs.get('code') or ''
    try:
        result = await asyncio.to_thread(
            services.sandbox.run,
            code,
            {'inputs': dict(inputs), 'context': context.snapshot()},
        )
    except SandboxError as e:
        return NodeResult.fail(f"Code execution error: {e}")

    return NodeResult.ok({'success': True, 'result': result, 'error': None})
