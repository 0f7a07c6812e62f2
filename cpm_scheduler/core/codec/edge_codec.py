"""Compact precedence notation <-> dependency edges.

Two notations live at the boundary:

- compact, human-entry tokens addressing tasks by their 1-based position in the
  displayed ordering: ``"3FC+5"`` (row 3, finish-to-start, lag +5), ``"2CC"``,
  ``"4"``;
- canonical strings addressing tasks by id: ``"<target_id>:<code>:<lag>"``, plus
  the legacy bare ``"<target_id>"`` form (finish-to-start, lag 0).

Everything in here is pure; resolvers/indexers are supplied by the caller.
"""
from __future__ import annotations

import re
from typing import Callable, Iterable, Optional, Sequence

from cpm_scheduler.core.errors import InvalidToken, SelfReference, UnknownReference
from cpm_scheduler.core.model import DependencyEdge, Relation


TOKEN_RE = re.compile(r"^(\d+)(FC|CC|FF|CF)?([+-]\d+)?$", re.IGNORECASE)
LAG_RE = re.compile(r"^[+-]?\d+$")

Resolver = Callable[[int], Optional[str]]
Indexer = Callable[[str], Optional[int]]


def parse_edge(token: str, resolver: Resolver, source_id: Optional[str] = None) -> DependencyEdge:
    if not isinstance(token, str):
        raise InvalidToken(code="E_INVALID_TOKEN", message=f"dependency token must be a string: {token!r}")

    m = TOKEN_RE.match(token.strip())
    if m is None:
        raise InvalidToken(
            code="E_INVALID_TOKEN",
            message=f"invalid dependency token: {token!r} (expected e.g. 3, 2CC, 3FC+5)",
        )

    position = int(m.group(1))
    relation = Relation.from_code(m.group(2)) if m.group(2) else Relation.FINISH_TO_START
    lag = int(m.group(3)) if m.group(3) else 0

    target_id = resolver(position) if position >= 1 else None
    if target_id is None:
        raise UnknownReference(
            code="E_UNKNOWN_REFERENCE",
            message=f"dependency token {token!r} references unknown row {position}",
        )
    if source_id is not None and target_id == source_id:
        raise SelfReference(
            code="E_SELF_REFERENCE",
            message=f"task {source_id} cannot depend on itself (token {token!r})",
        )

    return DependencyEdge(target_id=target_id, relation=relation, lag=lag)


def parse_edges(
    tokens: Iterable[str], resolver: Resolver, source_id: Optional[str] = None
) -> list[DependencyEdge]:
    """Parse tokens in order; the first bad token raises."""
    return [parse_edge(tok, resolver, source_id) for tok in tokens]


def format_edge(edge: DependencyEdge, indexer: Indexer) -> str:
    position = indexer(edge.target_id)
    ref = str(position) if position is not None else "?"

    if edge.lag == 0:
        if edge.relation is Relation.FINISH_TO_START:
            return ref
        return f"{ref}{edge.relation.code}"
    return f"{ref}{edge.relation.code}{edge.lag:+d}"


def positional_resolver(task_ids: Sequence[str]) -> Resolver:
    ids = list(task_ids)

    def resolve(position: int) -> Optional[str]:
        if 1 <= position <= len(ids):
            return ids[position - 1]
        return None

    return resolve


def positional_indexer(task_ids: Sequence[str]) -> Indexer:
    index: dict[str, int] = {}
    for i, tid in enumerate(task_ids, start=1):
        index.setdefault(tid, i)
    return index.get


def parse_canonical(text: str) -> DependencyEdge:
    raw = text.strip()
    if not raw:
        raise InvalidToken(code="E_INVALID_TOKEN", message="empty dependency string")

    parts = raw.rsplit(":", 2)
    if len(parts) != 3:
        # Legacy bare id.
        return DependencyEdge(target_id=raw)

    target_id, code, lag_s = parts
    if not target_id:
        raise InvalidToken(code="E_INVALID_TOKEN", message=f"missing target id in {text!r}")
    try:
        relation = Relation.from_code(code)
    except ValueError:
        raise InvalidToken(
            code="E_INVALID_TOKEN",
            message=f"unknown relation code {code!r} in {text!r} (choose one of: FC, CC, FF, CF)",
        ) from None
    if not LAG_RE.match(lag_s.strip()):
        raise InvalidToken(code="E_INVALID_TOKEN", message=f"lag must be an integer in {text!r}")

    return DependencyEdge(target_id=target_id, relation=relation, lag=int(lag_s))


def format_canonical(edge: DependencyEdge) -> str:
    return f"{edge.target_id}:{edge.relation.code}:{edge.lag:+d}"
