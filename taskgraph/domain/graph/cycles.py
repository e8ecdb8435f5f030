"""Cycle detection over the combined dependency + hierarchy graph.

Edges are ``(source, target)`` pairs in combined-graph direction:

- ``dependency_edge(task, blocker)``  -> ``(task, blocker)``
- ``hierarchy_edge(child, parent)``   -> ``(child, parent)``

Adding ``u -> v`` closes a cycle exactly when ``u == v`` or ``u`` is already
reachable from ``v``. Both edge families are followed together, since a
parent link and a dependency can form a cycle that neither forms alone.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping

from .index import GraphIndex

Edge = tuple[str, str]


def dependency_edge(task_id: str, blocker_id: str) -> Edge:
    return (task_id, blocker_id)


def hierarchy_edge(child_id: str, parent_id: str) -> Edge:
    return (child_id, parent_id)


def is_reachable(
    index: GraphIndex,
    start: str,
    goal: str,
    extra: Mapping[str, set[str]] | None = None,
) -> bool:
    """Iterative DFS from ``start`` looking for ``goal``.

    Args:
        index: Current graph.
        start: Node to search from.
        goal: Node to look for.
        extra: Additional out-edges not yet in the index (edges accepted
            earlier in the same batch).
    """
    extra = extra or {}
    stack = [start]
    visited: set[str] = set()
    while stack:
        node = stack.pop()
        if node == goal:
            return True
        if node in visited:
            continue
        visited.add(node)
        stack.extend(index.successors(node))
        stack.extend(extra.get(node, ()))
    return False


def would_create_cycle(index: GraphIndex, proposed_edges: Iterable[Edge]) -> Edge | None:
    """Check a batch of edges against the current graph.

    Edges are checked in order, each one against the graph plus the edges of
    the batch accepted before it.

    Returns:
        The first edge that would close a cycle, or None if the whole batch
        keeps the graph acyclic.
    """
    pending: dict[str, set[str]] = defaultdict(set)
    for source, target in proposed_edges:
        if source == target or is_reachable(index, target, source, pending):
            return (source, target)
        pending[source].add(target)
    return None


def has_cycle(index: GraphIndex, proposed_edges: Iterable[Edge]) -> bool:
    return would_create_cycle(index, proposed_edges) is not None


def find_cycle(index: GraphIndex, within: set[str] | None = None) -> list[str] | None:
    """Find any cycle already present in the graph.

    Args:
        index: Graph to inspect.
        within: Restrict the search to these ids (edges leaving the set are
            ignored).

    Returns:
        The ids along one cycle, first id repeated at the end, or None.
    """
    nodes = [t.id for t in index if within is None or t.id in within]
    state: dict[str, int] = {}  # 1 = on the current path, 2 = finished

    for root in nodes:
        if root in state:
            continue
        path: list[str] = []
        stack: list[tuple[str, list[str]]] = [(root, _successors(index, root, within))]
        state[root] = 1
        path.append(root)
        while stack:
            node, pending = stack[-1]
            if not pending:
                state[node] = 2
                stack.pop()
                path.pop()
                continue
            nxt = pending.pop()
            if state.get(nxt) == 1:
                return path[path.index(nxt):] + [nxt]
            if nxt not in state:
                state[nxt] = 1
                path.append(nxt)
                stack.append((nxt, _successors(index, nxt, within)))
    return None


def _successors(index: GraphIndex, node: str, within: set[str] | None) -> list[str]:
    return [n for n in index.successors(node) if within is None or n in within]
