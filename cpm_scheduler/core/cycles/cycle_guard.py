from __future__ import annotations

import logging
from itertools import islice
from typing import Iterable, Iterator, Mapping, Optional, Sequence, Union

from cpm_scheduler.core.model import DependencyEdge, Task


logger = logging.getLogger(__name__)


# Edges run from a task to the tasks it depends on (successor -> predecessor).
# Nothing in the scheduling passes calls into this module; callers that draw or
# persist a network ask here first.


def would_create_cycle(
    source_id: str,
    candidate_target_id: str,
    all_edges: Mapping[str, Iterable[str]],
) -> bool:
    """True if adding source_id -> candidate_target_id would close a cycle.

    That is the case when candidate_target_id already reaches source_id.
    """

    if candidate_target_id == source_id:
        return True

    stack: list[str] = [candidate_target_id]
    visited: set[str] = set()
    while stack:
        cur = stack.pop()
        if cur == source_id:
            return True
        if cur in visited:
            continue
        visited.add(cur)
        for nxt in all_edges.get(cur, ()):
            if nxt not in visited:
                stack.append(nxt)
    return False


def filter_safe_edges(
    task_id: str,
    raw_edges: Sequence[Union[str, DependencyEdge]],
    all_tasks: Sequence[Task],
    warnings: Optional[list[str]] = None,
) -> list[str]:
    """Return the target ids of raw_edges that can be accepted for task_id.

    Missing targets are dropped quietly. Targets that would close a cycle are
    dropped with a warning (logged, and appended to ``warnings`` if given).
    task_id's current dependencies are ignored; raw_edges replaces them.
    """

    graph: dict[str, list[str]] = {
        t.id: [e.target_id for e in t.dependencies] for t in all_tasks if t.id != task_id
    }
    known = {t.id for t in all_tasks}

    accepted: list[str] = []
    graph[task_id] = accepted
    for raw in raw_edges:
        target = raw.target_id if isinstance(raw, DependencyEdge) else raw
        if target not in known:
            logger.debug("dropping dependency %s -> %s: target no longer exists", task_id, target)
            continue
        if target in accepted:
            continue
        if would_create_cycle(task_id, target, graph):
            msg = f"dependency {task_id} -> {target} would create a cycle; dropped"
            logger.warning(msg)
            if warnings is not None:
                warnings.append(msg)
            continue
        accepted.append(target)
    return accepted


# Upper bound on cycles reported by callers that surface them to a user; a
# dense cyclic network can hold exponentially many.
REPORT_LIMIT = 20


def find_cycles(tasks: Sequence[Task], limit: Optional[int] = None) -> list[tuple[str, ...]]:
    """Every elementary dependency cycle, at most ``limit`` of them.

    Each cycle is closed and starts at its first-listed task, e.g.
    ("A", "B", "A"). Loops over the same tasks in a different order are
    distinct cycles. Results are ordered by task position.
    """

    position = {t.id: i for i, t in enumerate(tasks)}
    graph: dict[str, list[str]] = {}
    for t in tasks:
        targets: list[str] = []
        for e in t.dependencies:
            if e.target_id in position and e.target_id not in targets:
                targets.append(e.target_id)
        graph[t.id] = targets

    found = list(islice(_elementary_cycles(graph, position), limit))
    found.sort(key=lambda c: [position[n] for n in c])
    return found


def describe_cycle(cycle: Sequence[str]) -> str:
    return "dependency cycle detected: " + " -> ".join(cycle)


def _elementary_cycles(graph: Mapping[str, list[str]], position: Mapping[str, int]) -> Iterator[tuple[str, ...]]:
    # Johnson: enumerate cycles through the first task of each strongly
    # connected component, then drop that task and split the rest again.
    for tid, targets in graph.items():
        if tid in targets:
            yield (tid, tid)

    pending = [c for c in _components(graph, set(graph)) if len(c) > 1]
    while pending:
        comp = pending.pop()
        first = min(comp, key=position.__getitem__)
        yield from _cycles_through(first, comp, graph)
        comp.discard(first)
        pending.extend(c for c in _components(graph, comp) if len(c) > 1)


def _cycles_through(first: str, comp: set[str], graph: Mapping[str, list[str]]) -> Iterator[tuple[str, ...]]:
    def inside(node: str) -> list[str]:
        return [n for n in graph[node] if n in comp and n != node]

    path = [first]
    blocked = {first}
    closed: set[str] = set()
    waiters: dict[str, set[str]] = {n: set() for n in comp}
    stack = [(first, inside(first)[::-1])]
    while stack:
        node, todo = stack[-1]
        if todo:
            nxt = todo.pop()
            if nxt == first:
                yield tuple(path) + (first,)
                closed.update(path)
            elif nxt not in blocked:
                path.append(nxt)
                blocked.add(nxt)
                closed.discard(nxt)
                stack.append((nxt, inside(nxt)[::-1]))
            continue
        if node in closed:
            _unblock(node, blocked, waiters)
        else:
            for n in inside(node):
                waiters[n].add(node)
        stack.pop()
        path.pop()


def _unblock(node: str, blocked: set[str], waiters: dict[str, set[str]]) -> None:
    todo = {node}
    while todo:
        n = todo.pop()
        if n in blocked:
            blocked.discard(n)
            todo.update(waiters[n])
            waiters[n].clear()


def _components(graph: Mapping[str, list[str]], nodes: set[str]) -> list[set[str]]:
    """Strongly connected components of the subgraph on ``nodes`` (Tarjan)."""

    index: dict[str, int] = {}
    low: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    out: list[set[str]] = []

    for root in graph:
        if root not in nodes or root in index:
            continue
        index[root] = low[root] = len(index)
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(graph[root]))]
        while work:
            node, targets = work[-1]
            nxt = next(targets, None)
            if nxt is not None:
                if nxt not in nodes:
                    continue
                if nxt not in index:
                    index[nxt] = low[nxt] = len(index)
                    stack.append(nxt)
                    on_stack.add(nxt)
                    work.append((nxt, iter(graph[nxt])))
                elif nxt in on_stack:
                    low[node] = min(low[node], index[nxt])
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])
            if low[node] == index[node]:
                comp: set[str] = set()
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    comp.add(member)
                    if member == node:
                        break
                out.append(comp)
    return out
