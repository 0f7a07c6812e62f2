import pytest

from cpm_scheduler.core.codec.edge_codec import (
    format_canonical,
    format_edge,
    parse_canonical,
    parse_edge,
    parse_edges,
    positional_indexer,
    positional_resolver,
)
from cpm_scheduler.core.errors import InvalidToken, SelfReference, UnknownReference
from cpm_scheduler.core.model import DependencyEdge, Relation


IDS = ["T-A", "T-B", "T-C"]
resolver = positional_resolver(IDS)
indexer = positional_indexer(IDS)


def test_parse_full_token():
    edge = parse_edge("3FC+5", resolver, source_id="T-A")
    assert edge == DependencyEdge(target_id="T-C", relation=Relation.FINISH_TO_START, lag=5)


def test_parse_defaults_relation_and_lag():
    assert parse_edge("2", resolver) == DependencyEdge(target_id="T-B")
    edge = parse_edge("2CC", resolver)
    assert edge.relation is Relation.START_TO_START
    assert edge.lag == 0


def test_parse_negative_lag_and_lowercase_code():
    edge = parse_edge(" 1ff-3 ", resolver, source_id="T-C")
    assert edge == DependencyEdge(target_id="T-A", relation=Relation.FINISH_TO_FINISH, lag=-3)
    assert parse_edge("1cf", resolver).relation is Relation.START_TO_FINISH


@pytest.mark.parametrize("token", ["abc", "", "FC", "3XX", "3FC+", "3 FC", "-1", "3FC+5x"])
def test_parse_invalid_token(token):
    with pytest.raises(InvalidToken) as exc:
        parse_edge(token, resolver)
    assert exc.value.code == "E_INVALID_TOKEN"


def test_parse_out_of_range_position():
    with pytest.raises(UnknownReference) as exc:
        parse_edge("9FC+1", resolver)
    assert exc.value.code == "E_UNKNOWN_REFERENCE"

    with pytest.raises(UnknownReference):
        parse_edge("0", resolver)


def test_parse_self_reference_rejected():
    with pytest.raises(SelfReference) as exc:
        parse_edge("2", resolver, source_id="T-B")
    assert exc.value.code == "E_SELF_REFERENCE"


def test_parse_edges_reports_first_bad_token():
    with pytest.raises(InvalidToken):
        parse_edges(["1", "zz", "99"], resolver, source_id="T-C")
    with pytest.raises(UnknownReference):
        parse_edges(["1", "99", "zz"], resolver, source_id="T-C")


@pytest.mark.parametrize("token", ["3", "2CC", "3FC+5", "1FF-2", "2CF+10", "1CC-1"])
def test_format_round_trips_normalized_tokens(token):
    assert format_edge(parse_edge(token, resolver), indexer) == token


def test_format_normalizes_defaults():
    assert format_edge(parse_edge("3FC", resolver), indexer) == "3"
    assert format_edge(parse_edge("3fc+0", resolver), indexer) == "3"
    assert format_edge(parse_edge("3+4", resolver), indexer) == "3FC+4"
    assert format_edge(parse_edge("2cc", resolver), indexer) == "2CC"


def test_format_unknown_target_renders_question_mark():
    edge = DependencyEdge(target_id="gone", relation=Relation.START_TO_START, lag=2)
    assert format_edge(edge, indexer) == "?CC+2"
    assert format_edge(DependencyEdge(target_id="gone"), indexer) == "?"


def test_canonical_format_and_parse():
    edge = DependencyEdge(target_id="T-B", relation=Relation.FINISH_TO_FINISH, lag=-3)
    assert format_canonical(edge) == "T-B:FF:-3"
    assert format_canonical(DependencyEdge(target_id="x")) == "x:FC:+0"
    assert parse_canonical("T-B:FF:-3") == edge
    assert parse_canonical("T-B:cc:4") == DependencyEdge(target_id="T-B", relation=Relation.START_TO_START, lag=4)


def test_canonical_legacy_bare_id():
    assert parse_canonical("7f3c-uuid") == DependencyEdge(target_id="7f3c-uuid")


def test_canonical_ids_may_contain_colons():
    assert parse_canonical("ns:task:CC:+1") == DependencyEdge(
        target_id="ns:task", relation=Relation.START_TO_START, lag=1
    )


@pytest.mark.parametrize("text", ["", "T-B:XX:1", "T-B:FC:one", ":FC:1"])
def test_canonical_invalid(text):
    with pytest.raises(InvalidToken):
        parse_canonical(text)
