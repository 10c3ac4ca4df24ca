"""
condition node - compares a previous node's output field against a value

Operators (compatible with the flow editor):
    eq, neq, gt, lt, gte, lte, contains, not_contains, exists, not_exists

The node always succeeds; `result` selects the "true"/"false" edges.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.nodes.base import NodeServices
from app.flow_engine.variable_resolver import VariableResolver

logger = logging.getLogger(__name__)


class ConditionOperator(str, Enum):
    """Condition operators for branching"""
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


def to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def loose_equals(actual: Any, expected: Any) -> bool:
    """Equality that tolerates text vs number/boolean (values arrive interpolated as text)."""
    if actual == expected:
        return True
    if actual is None or expected is None:
        return actual is None and expected is None
    if isinstance(actual, bool) or isinstance(expected, bool):
        return VariableResolver.stringify(actual).lower() == VariableResolver.stringify(expected).lower()
    actual_number, expected_number = to_number(actual), to_number(expected)
    if actual_number is not None and expected_number is not None:
        return actual_number == expected_number
    if isinstance(actual, (dict, list)) or isinstance(expected, (dict, list)):
        return VariableResolver.stringify(actual) == VariableResolver.stringify(expected)
    return str(actual) == str(expected)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list):
        if any(loose_equals(item, expected) for item in actual):
            return True
    elif isinstance(actual, dict) and isinstance(expected, str) and expected in actual:
        return True
    return VariableResolver.stringify(expected) in VariableResolver.stringify(actual)


def _compare(actual: Any, expected: Any, op) -> bool:
    actual_number, expected_number = to_number(actual), to_number(expected)
    if actual_number is None or expected_number is None:
        return False
    return op(actual_number, expected_number)


def evaluate_condition(actual: Any, operation: str, expected: Any) -> bool:
    """
    Check a simple condition.

    Args:
        actual: Value read from the source node
        operation: One of ConditionOperator values
        expected: Configured comparison value

    Returns:
        True if condition matches (unknown operators never match)
    """
    if operation == ConditionOperator.EQ.value:
        return loose_equals(actual, expected)
    elif operation == ConditionOperator.NEQ.value:
        return not loose_equals(actual, expected)
    elif operation == ConditionOperator.GT.value:
        return _compare(actual, expected, lambda a, b: a > b)
    elif operation == ConditionOperator.LT.value:
        return _compare(actual, expected, lambda a, b: a < b)
    elif operation == ConditionOperator.GTE.value:
        return _compare(actual, expected, lambda a, b: a >= b)
    elif operation == ConditionOperator.LTE.value:
        return _compare(actual, expected, lambda a, b: a <= b)
    elif operation == ConditionOperator.CONTAINS.value:
        return _contains(actual, expected)
    elif operation == ConditionOperator.NOT_CONTAINS.value:
        return not _contains(actual, expected)
    elif operation == ConditionOperator.EXISTS.value:
        return actual is not None
    elif operation == ConditionOperator.NOT_EXISTS.value:
        return actual is None

    logger.warning(f"Unknown condition operator: {operation}")
    return False


def read_source_field(context: ExecutionContext, source_node_id: Any, output_field: Any) -> Any:
    """context[sourceNodeId][outputField]; dotted fields are walked as paths."""
    if not source_node_id:
        return None
    source = context.get(str(source_node_id))
    if not output_field:
        return source
    output_field = str(output_field)
    if isinstance(source, dict) and output_field in source:
        return source[output_field]
    return VariableResolver(context).get_value(f"{source_node_id}.{output_field}")


async def execute_condition(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    data = read_source_field(context, inputs.get('sourceNodeId'), inputs.get('outputField'))
    result = evaluate_condition(data, inputs.get('operation'), inputs.get('compareValue'))
    logger.debug(f"Condition {node.get('id')}: {inputs.get('operation')} -> {result}")
    return NodeResult.ok({'success': True, 'result': result, 'data': data})
