"""
Flow Executor - Runs a flow graph against an execution context

Responsibilities:
- Reject cyclic graphs before running anything
- Drive the FIFO work queue seeded with every source node
- Apply the per-node error behavior (halt / continue)
- Route condition branches through "true"/"false" edges
- Track the ordered execution log, partial errors and the response output
- Enforce the per-request deadline
"""

import logging
import time
from collections import deque
from typing import Any, Dict, List, Optional

from app.flow_engine.context import (
    ExecutionContext,
    ExecutionLogEntry,
    ExecutionResult,
    PartialError,
    deep_clone,
)
from app.flow_engine.graph import (
    build_execution_order,
    collect_node_ids,
    edge_fires,
    find_cycle_nodes,
    node_label,
    node_type,
    valid_edges,
)
from app.flow_engine.node_executor import NodeExecutor

logger = logging.getLogger(__name__)

RESPONSE_NODE_TYPE = 'response'
CONDITION_NODE_TYPE = 'condition'


class FlowExecutor:
    """
    Executes a flow graph.

    A node becomes ready once every incoming edge has settled. Nodes whose
    incoming edges all settled without firing (pruned condition branches)
    are skipped and propagate the pruning to their successors.

    Usage:
        executor = FlowExecutor(NodeExecutor(services))
        result = await executor.run(nodes, edges, context)
    """

    def __init__(self, node_executor: Optional[NodeExecutor] = None, flow_timeout: Optional[float] = 120.0):
        """
        Args:
            node_executor: Executes individual nodes
            flow_timeout: Per-request budget in seconds (None disables it)
        """
        self.node_executor = node_executor or NodeExecutor()
        self.flow_timeout = flow_timeout

    async def run(
        self,
        nodes: List[Dict[str, Any]],
        edges: List[Dict[str, Any]],
        context: ExecutionContext,
    ) -> ExecutionResult:
        """
        Run the graph to completion or to the first halting failure.

        Never raises for graph-shape issues; a halting failure keeps the
        context entries already written.
        """
        result = ExecutionResult(context=context)
        nodes = nodes or []
        edges = edges or []

        cycle_nodes = find_cycle_nodes(nodes, edges)
        if cycle_nodes:
            message = f"Flow graph contains a cycle involving nodes: {', '.join(cycle_nodes)}"
            logger.warning(message)
            self._fail(result, cycle_nodes[0], cycle_nodes[0], message)
            return result

        node_map = {node.get('id'): node for node in nodes if node.get('id') is not None}
        node_ids = collect_node_ids(nodes)
        edges_in_graph = valid_edges(node_ids, edges)

        outgoing: Dict[str, List[Dict[str, Any]]] = {node_id: [] for node_id in node_ids}
        pending: Dict[str, int] = {node_id: 0 for node_id in node_ids}
        for edge in edges_in_graph:
            outgoing[edge['source']].append(edge)
            pending[edge['target']] += 1
        activated = set()

        queue = deque(node_id for node_id in build_execution_order(nodes, edges) if pending[node_id] == 0)
        executed = set()
        started = time.monotonic()

        def settle(source_id: str, condition_result: Optional[bool] = None, fire: bool = True):
            # Pruned nodes are resolved inline so their successors are never left waiting
            stack = [(source_id, condition_result, fire)]
            while stack:
                current, cond, fires = stack.pop()
                for edge in outgoing.get(current, []):
                    target = edge['target']
                    if fires and edge_fires(edge, cond):
                        activated.add(target)
                    pending[target] -= 1
                    if pending[target] == 0 and target not in executed:
                        if target in activated:
                            queue.append(target)
                        else:
                            executed.add(target)
                            logger.debug(f"Skipping node {target}: branch not taken")
                            stack.append((target, None, False))

        while queue and not result.has_error:
            node_id = queue.popleft()
            if node_id in executed:
                continue
            executed.add(node_id)

            node = node_map.get(node_id)
            data = (node or {}).get('data') or {}
            if node is None or data.get('disabled'):
                settle(node_id)
                continue

            label = node_label(node, node_id)
            timeout = self._remaining_budget(started)
            if timeout is not None and timeout <= 0:
                self._fail(result, node_id, label, f"Flow execution timed out after {self.flow_timeout:g}s")
                break

            result.logs.append(ExecutionLogEntry(
                node_id=node_id,
                node_name=label,
                type='info',
                message=f"Executing {data.get('label') or node_type(node)}",
            ))

            node_timeout = self.node_executor.node_timeout
            if timeout is not None:
                node_timeout = min(node_timeout, timeout)
            node_result = await self.node_executor.execute(node, context, timeout=node_timeout)

            if not node_result.success:
                error = node_result.error or 'Unknown error'
                if data.get('errorBehavior') != 'continue':
                    self._fail(result, node_id, label, error)
                    break

                result.logs.append(ExecutionLogEntry(node_id=node_id, node_name=label, type='error', message=error))
                result.partial_errors.append(PartialError(node_id=node_id, node_name=label, error=error))
                context.set_node_output(node_id, {'error': error, 'success': False, '_failedNode': True})
                settle(node_id)
                continue

            output = node_result.output if isinstance(node_result.output, dict) else {}
            context.set_node_output(node_id, {**output, 'success': True})

            type_name = node_type(node)
            if type_name == RESPONSE_NODE_TYPE:
                # Last response node executed wins
                result.final_output = deep_clone(output)

            result.logs.append(ExecutionLogEntry(
                node_id=node_id,
                node_name=label,
                type='success',
                message='Execution completed',
                data=deep_clone(node_result.output),
            ))

            condition_result = bool(output.get('result')) if type_name == CONDITION_NODE_TYPE else None
            settle(node_id, condition_result)

        logger.info(
            f"Flow run finished: {len(executed)} node(s) settled, "
            f"error={result.has_error}, partial_errors={len(result.partial_errors)}"
        )
        return result

    def _remaining_budget(self, started: float) -> Optional[float]:
        if not self.flow_timeout:
            return None
        return self.flow_timeout - (time.monotonic() - started)

    @staticmethod
    def _fail(result: ExecutionResult, node_id: str, label: str, message: str):
        result.has_error = True
        result.error_message = message
        result.logs.append(ExecutionLogEntry(node_id=node_id, node_name=label, type='error', message=message))
