"""
Graph helpers - Execution order and successor selection over nodes/edges

Edges that reference unknown node ids are ignored for ordering purposes.
"""

from collections import deque
from typing import Any, Dict, Iterable, List, Optional


def node_type(node: Dict[str, Any]) -> Optional[str]:
    """Node discriminator; editors store it either on the node or under data."""
    data = node.get('data') or {}
    return data.get('type') or node.get('type')


def node_label(node: Optional[Dict[str, Any]], node_id: str) -> str:
    if not node:
        return node_id
    data = node.get('data') or {}
    return data.get('label') or node_id


def collect_node_ids(nodes: Iterable[Dict[str, Any]]) -> List[str]:
    ids = []
    for node in nodes:
        node_id = node.get('id')
        if node_id is not None and node_id not in ids:
            ids.append(node_id)
    return ids


def valid_edges(node_ids: List[str], edges: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    known = set(node_ids)
    return [e for e in edges if e.get('source') in known and e.get('target') in known]


def build_execution_order(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]]) -> List[str]:
    """
    Topological order of node ids (Kahn's algorithm).

    Nodes that sit on a cycle never reach in-degree 0 and are left out.
    """
    node_ids = collect_node_ids(nodes)
    in_degree: Dict[str, int] = {node_id: 0 for node_id in node_ids}
    adjacency: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}

    for edge in valid_edges(node_ids, edges):
        adjacency[edge['source']].append(edge['target'])
        in_degree[edge['target']] += 1

    frontier = deque(node_id for node_id in node_ids if in_degree[node_id] == 0)
    order = []
    while frontier:
        current = frontier.popleft()
        order.append(current)
        for target in adjacency[current]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                frontier.append(target)

    return order


def find_cycle_nodes(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]]) -> List[str]:
    """Node ids that cannot be ordered because they are on (or behind) a cycle."""
    ordered = set(build_execution_order(nodes, edges))
    return [node_id for node_id in collect_node_ids(nodes) if node_id not in ordered]


def get_source_nodes(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]]) -> List[str]:
    """Node ids without any incoming edge, in topological (then declaration) order."""
    targets = {e['target'] for e in valid_edges(collect_node_ids(nodes), edges)}
    return [node_id for node_id in build_execution_order(nodes, edges) if node_id not in targets]


def edge_fires(edge: Dict[str, Any], condition_result: Optional[bool] = None) -> bool:
    """Whether an outgoing edge fires given the source's condition result (None for non-condition nodes)."""
    if condition_result is None:
        return True
    handle = edge.get('sourceHandle')
    if handle == 'true':
        return bool(condition_result)
    if handle == 'false':
        return not condition_result
    return False


def get_next_nodes(
    node_id: str,
    edges: List[Dict[str, Any]],
    condition_result: Optional[bool] = None,
) -> List[str]:
    """
    Successors of node_id.

    Args:
        node_id: Source node
        edges: All edges of the graph
        condition_result: Boolean result of a condition node, or None for any
            other node type. When set, only edges whose sourceHandle is
            "true"/"false" matching the result fire.
    """
    return [
        edge['target']
        for edge in edges
        if edge.get('source') == node_id
        and edge.get('target') is not None
        and edge_fires(edge, condition_result)
    ]
