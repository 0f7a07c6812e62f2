from __future__ import annotations

from collections import deque
from typing import Sequence

from cpm_scheduler.core.model import Task


def sweep_order(tasks: Sequence[Task]) -> list[Task]:
    """Predecessors before successors (Kahn), ties kept in input order.

    Tasks that sit on or behind a cycle never reach indegree zero; they are
    appended afterwards in input order, so the result always covers every
    task. One sweep in this order settles any acyclic network.
    """

    index = {t.id: i for i, t in enumerate(tasks)}
    waiting: dict[str, int] = {}
    successors: dict[str, list[str]] = {t.id: [] for t in tasks}
    for t in tasks:
        preds = {e.target_id for e in t.dependencies if e.target_id in index}
        waiting[t.id] = len(preds)
        for p in preds:
            successors[p].append(t.id)

    ready: deque[str] = deque(t.id for t in tasks if waiting[t.id] == 0)
    placed: set[str] = set()
    order: list[Task] = []
    while ready:
        tid = ready.popleft()
        if tid in placed:
            continue
        placed.add(tid)
        order.append(tasks[index[tid]])
        for nxt in sorted(successors[tid], key=index.__getitem__):
            waiting[nxt] -= 1
            if waiting[nxt] == 0:
                ready.append(nxt)

    order.extend(t for t in tasks if t.id not in placed)
    return order
