"""
Execution Context - Per-request state shared by the nodes of one flow run

Holds the inbound request, merged env secrets, the variables bag and the
output of every executed node. Node outputs are write-once.
"""

import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

RESERVED_KEYS = ('request', 'env', 'variables', '_flowProjectId', '_executionId')


def safe_stringify(value: Any) -> str:
    """JSON-encode a value, falling back to str() for anything non-serializable."""
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        # Circular references
        return json.dumps(str(value))


def deep_clone(value: Any) -> Any:
    """
    Snapshot a JSON-like value through a serialize/parse cycle.

    Breaks shared references between node outputs; non-JSON values are
    stringified.
    """
    if value is None:
        return None
    return json.loads(safe_stringify(value))


class ContextWriteError(RuntimeError):
    """Raised when a node output is written twice in one execution"""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Context entry for node '{node_id}' was already written")


@dataclass
class NodeResult:
    """Result of executing one node"""
    success: bool
    output: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: Optional[Dict[str, Any]] = None) -> 'NodeResult':
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str, output: Optional[Dict[str, Any]] = None) -> 'NodeResult':
        return cls(success=False, output=output, error=error)


@dataclass
class ExecutionLogEntry:
    """One entry of the ordered execution log persisted with the execution record"""
    node_id: str
    node_name: str
    type: str  # info, success, error
    message: str
    data: Any = None
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> Dict[str, Any]:
        entry = {
            'nodeId': self.node_id,
            'nodeName': self.node_name,
            'type': self.type,
            'message': self.message,
            'timestamp': self.timestamp,
        }
        if self.data is not None:
            entry['data'] = self.data
        return entry


class ExecutionContext(Mapping):
    """
    Read-only mapping view over the execution state.

    Keys are the reserved entries (request, env, variables, _flowProjectId,
    _executionId) plus one key per executed node id. Node outputs are only
    added through `set_node_output`, once per node.
    """

    def __init__(
        self,
        request: Optional[Dict[str, Any]] = None,
        env: Optional[Dict[str, Any]] = None,
        variables: Optional[Dict[str, Any]] = None,
        flow_project_id: Optional[str] = None,
        execution_id: Optional[str] = None,
    ):
        self.request = request or {'method': 'POST', 'headers': {}, 'body': {}, 'query': {}}
        self.env = dict(env or {})
        self.variables = dict(variables or {})
        self.flow_project_id = flow_project_id
        self.execution_id = execution_id
        self._outputs: Dict[str, Any] = {}

    def _reserved(self) -> Dict[str, Any]:
        return {
            'request': self.request,
            'env': self.env,
            'variables': self.variables,
            '_flowProjectId': self.flow_project_id,
            '_executionId': self.execution_id,
        }

    def __getitem__(self, key: str) -> Any:
        if key in self._outputs:
            return self._outputs[key]
        reserved = self._reserved()
        if key in reserved:
            return reserved[key]
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        yield from RESERVED_KEYS
        for key in self._outputs:
            if key not in RESERVED_KEYS:
                yield key

    def __len__(self) -> int:
        return len(RESERVED_KEYS) + len([k for k in self._outputs if k not in RESERVED_KEYS])

    def has_output(self, node_id: str) -> bool:
        return node_id in self._outputs

    def set_node_output(self, node_id: str, output: Dict[str, Any]):
        """Store a node's output (deep-cloned). Raises ContextWriteError on a second write."""
        if node_id in self._outputs:
            raise ContextWriteError(node_id)
        if node_id in RESERVED_KEYS:
            logger.warning(f"Node id '{node_id}' shadows a reserved context key")
        self._outputs[node_id] = deep_clone(output)

    def node_outputs(self) -> Dict[str, Any]:
        return dict(self._outputs)

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict deep copy, safe to hand to sandboxed code."""
        return deep_clone(dict(self.items()))


@dataclass
class PartialError:
    """A tolerated node failure (errorBehavior=continue)"""
    node_id: str
    node_name: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {'nodeId': self.node_id, 'nodeName': self.node_name, 'error': self.error}


@dataclass
class ExecutionResult:
    """Outcome of one scheduler run"""
    context: ExecutionContext
    logs: List[ExecutionLogEntry] = field(default_factory=list)
    final_output: Optional[Dict[str, Any]] = None
    has_error: bool = False
    error_message: str = ''
    partial_errors: List[PartialError] = field(default_factory=list)

    @property
    def has_response_node(self) -> bool:
        return self.final_output is not None

    def logs_as_dicts(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.logs]
