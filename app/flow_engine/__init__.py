"""
Flow Engine - Graph-based flow execution

A flow is a graph of typed nodes joined by edges. Nodes run one at a time
from a work queue; their outputs are stored in the execution context and
referenced by later nodes through {{nodeId.field}} templates.
"""

from app.flow_engine.context import ExecutionContext, ExecutionResult, NodeResult
from app.flow_engine.executor import FlowExecutor
from app.flow_engine.node_executor import NodeExecutor
from app.flow_engine.nodes import NodeServices
from app.flow_engine.variable_resolver import VariableResolver

__all__ = [
    'ExecutionContext',
    'ExecutionResult',
    'FlowExecutor',
    'NodeExecutor',
    'NodeResult',
    'NodeServices',
    'VariableResolver',
]
