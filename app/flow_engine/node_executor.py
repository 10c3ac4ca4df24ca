"""
Node Executor - Executes a single node

Handles:
- Resolving {{...}} references in the node inputs
- Dispatching to the handler registered for the node type
  (unregistered types go to the integration proxy)
- Per-node deadline
- Converting handler exceptions into failed results
"""

import asyncio
import logging
import traceback
from typing import Any, Dict, Optional

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.graph import node_type
from app.flow_engine.nodes import NodeHandler, NodeServices, default_handlers, execute_proxy
from app.flow_engine.variable_resolver import VariableResolver

logger = logging.getLogger(__name__)


class NodeExecutor:
    """
    Executes individual nodes of a flow graph.

    Usage:
        executor = NodeExecutor(services=NodeServices(proxy_client=client))
        result = await executor.execute(node, context)
    """

    def __init__(
        self,
        services: Optional[NodeServices] = None,
        node_timeout: float = 30.0,
        handlers: Optional[Dict[str, NodeHandler]] = None,
    ):
        """
        Args:
            services: Collaborators passed to the handlers
            node_timeout: Default per-node deadline in seconds
            handlers: Extra or overriding {node_type: handler} entries
        """
        self.services = services or NodeServices()
        self.node_timeout = node_timeout
        self.handlers: Dict[str, NodeHandler] = default_handlers()
        if handlers:
            self.handlers.update(handlers)
        self.fallback: NodeHandler = execute_proxy

    def register(self, type_name: str, handler: NodeHandler):
        """Register (or replace) the handler of a node type"""
        self.handlers[type_name] = handler

    def get_handler(self, type_name: Optional[str]) -> NodeHandler:
        return self.handlers.get(type_name or '', self.fallback)

    def resolve_inputs(self, node: Dict[str, Any], context: ExecutionContext) -> Dict[str, Any]:
        raw_inputs = (node.get('data') or {}).get('inputs') or {}
        resolved = VariableResolver(context).resolve(raw_inputs)
        return resolved if isinstance(resolved, dict) else {}

    async def execute(
        self,
        node: Dict[str, Any],
        context: ExecutionContext,
        timeout: Optional[float] = None,
    ) -> NodeResult:
        """
        Execute one node.

        Args:
            node: Node definition (never mutated)
            context: Execution context
            timeout: Deadline in seconds (defaults to node_timeout)

        Returns:
            NodeResult; never raises for handler failures
        """
        node_id = node.get('id')
        type_name = node_type(node)
        deadline = self.node_timeout if timeout is None else timeout

        try:
            inputs = self.resolve_inputs(node, context)
            handler = self.get_handler(type_name)
            logger.debug(f"Executing node {node_id} ({type_name})")
            result = await asyncio.wait_for(handler(node, inputs, context, self.services), timeout=deadline)
        except asyncio.TimeoutError:
            logger.warning(f"Node {node_id} ({type_name}) timed out after {deadline}s")
            return NodeResult.fail(f"Node timed out after {deadline:g}s")
        except Exception as e:
            logger.error(f"Exception in node {node_id} ({type_name}): {e}")
            logger.error(traceback.format_exc())
            return NodeResult.fail(str(e) or type(e).__name__)

        if not isinstance(result, NodeResult):
            return NodeResult.fail(f"Handler for {type_name} returned no result")
        return result
