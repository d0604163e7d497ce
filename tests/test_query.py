import re

import pytest
from jsonkit import MISSING, QueryError, evaluate, matches, filter_documents, sort_documents, values_equal
from jsonkit.query import compile_pattern, execute, to_text
from jsonkit.errors import PatternError

DOCS = [
    {"id": 1, "name": "Alice", "age": 25, "tags": ["admin", "dev"], "address": {"city": "Wien", "zip": "1010"}},
    {"id": 2, "name": "Bob", "age": 30, "tags": ["dev"], "address": {"city": "Graz", "zip": "8010"}},
    {"id": 3, "name": "Charlie", "age": 28, "active": False},
    {"id": 4, "name": "Diana", "age": None, "tags": []},
]

QUERIES = [
    {},
    {"age": {"$gt": 26}},
    {"name": {"$startsWith": "A"}},
    {"tags": {"$contains": "dev"}},
    {"active": {"$exists": True}},
    {"address": {"city": "Wien", "zip": "1010"}},
]

def ids(docs):
    return [d["id"] for d in docs]

def test_comparison_operators():
    assert evaluate(5, "$eq", 5)
    assert not evaluate(5, "$eq", "5")
    assert evaluate(5, "$ne", 6)
    assert evaluate(5, "$gt", 4) and not evaluate(5, "$gt", 5)
    assert evaluate(5, "$gte", 5)
    assert evaluate(4.5, "$lt", 5)
    assert evaluate(5, "$lte", 5.0)
    assert evaluate("b", "$gt", "a")
    assert evaluate("B", "$lt", "a")  # code point order

def test_cross_type_ordering_is_false():
    for op in ("$gt", "$gte", "$lt", "$lte"):
        assert not evaluate("10", op, 5)
        assert not evaluate(5, op, "10")
        assert not evaluate(None, op, 0)
        assert not evaluate(MISSING, op, 0)
        assert not evaluate(True, op, 0)

def test_bool_is_not_a_number():
    assert not evaluate(True, "$eq", 1)
    assert not evaluate(0, "$eq", False)
    assert evaluate(1, "$eq", 1.0)

def test_in_and_nin():
    assert evaluate(2, "$in", [1, 2, 3])
    assert not evaluate(4, "$in", [1, 2, 3])
    assert not evaluate(2, "$in", 2)
    assert not evaluate("a", "$in", "abc")
    assert evaluate(4, "$nin", [1, 2, 3])
    assert not evaluate(2, "$nin", [1, 2, 3])
    assert not evaluate(4, "$nin", "xyz")
    assert evaluate(MISSING, "$nin", [1])

def test_exists():
    assert evaluate(None, "$exists", True)
    assert not evaluate(MISSING, "$exists", True)
    assert evaluate(MISSING, "$exists", False)
    assert not evaluate(0, "$exists", 0)

def test_regex():
    assert evaluate("Alice", "$regex", "^Al")
    assert evaluate("alice", "$regex", re.compile("ALI", re.IGNORECASE))
    assert evaluate(123, "$regex", r"^\d+$")
    assert evaluate(True, "$regex", "^true$")
    assert not evaluate(MISSING, "$regex", ".*")

def test_malformed_regex_is_a_non_match(caplog):
    with pytest.raises(PatternError):
        compile_pattern("(unclosed")
    assert not evaluate("anything", "$regex", "(unclosed")
    assert "invalid $regex pattern" in caplog.text

def test_bytes_pattern_is_a_non_match():
    with pytest.raises(PatternError):
        compile_pattern(re.compile(b"a"))
    assert not evaluate("a", "$regex", re.compile(b"a"))
    assert filter_documents([{"s": "a"}], {"s": {"$regex": re.compile(b"a")}}) == []

def test_string_operators():
    assert evaluate("hello world", "$contains", "lo w")
    assert evaluate(["a", "b"], "$contains", "b")
    assert not evaluate(["ab"], "$contains", "a")
    assert evaluate([{"x": 1}], "$contains", {"x": 1})
    assert not evaluate(42, "$contains", 4)
    assert evaluate("report.pdf", "$endsWith", ".pdf")
    assert evaluate(12345, "$startsWith", "12")
    assert not evaluate(MISSING, "$startsWith", "")

def test_unknown_operator_passes():
    assert evaluate(1, "$xyz", 2)
    got = filter_documents(DOCS, {"age": {"$xyz": "whatever"}})
    assert ids(got) == [1, 2, 3, 4]
    assert ids(filter_documents(DOCS, {"$whatever": 1})) == [1, 2, 3, 4]

def test_values_equal_structural():
    assert values_equal({"a": [1, {"b": 2}]}, {"a": [1.0, {"b": 2}]})
    assert not values_equal({"a": 1}, {"a": 1, "b": 2})
    assert not values_equal([1, 2], [2, 1])
    assert not values_equal(None, MISSING)
    assert values_equal(MISSING, MISSING)

def test_to_text():
    assert to_text(None) == "null"
    assert to_text(False) == "false"
    assert to_text(3.0) == "3"
    assert to_text(2.5) == "2.5"
    assert to_text([1, "a"]) == '[1,"a"]'

def test_empty_query_matches_everything():
    for d in DOCS + [{}, 5, None]:
        assert matches(d, {})
        assert matches(d, None)

def test_plain_equality_and_missing_fields():
    assert ids(filter_documents(DOCS, {"name": "Bob"})) == [2]
    assert ids(filter_documents(DOCS, {"age": None})) == [4]
    assert ids(filter_documents(DOCS, {"tags": ["dev"]})) == [2]
    assert ids(filter_documents(DOCS, {"active": {"$ne": False}})) == [1, 2, 4]

def test_nested_mapping_uses_structural_equality():
    assert ids(filter_documents(DOCS, {"address": {"zip": "1010", "city": "Wien"}})) == [1]
    # Partial nested mapping is not a match
    assert ids(filter_documents(DOCS, {"address": {"city": "Wien"}})) == []
    assert ids(filter_documents(DOCS, {"address": {}})) == []

def test_operator_set_is_anded():
    assert ids(filter_documents(DOCS, {"age": {"$gte": 25, "$lt": 30}})) == [1, 3]

@pytest.mark.parametrize("q1", QUERIES)
@pytest.mark.parametrize("q2", QUERIES)
def test_combinator_laws(q1, q2):
    for d in DOCS:
        assert matches(d, {"$and": [q1, q2]}) == (matches(d, q1) and matches(d, q2))
        assert matches(d, {"$or": [q1, q2]}) == (matches(d, q1) or matches(d, q2))
        assert matches(d, {"$not": q1}) == (not matches(d, q1))

def test_combinators_edge_cases():
    d = DOCS[0]
    assert matches(d, {"$and": []})
    assert not matches(d, {"$or": []})
    assert matches(d, {"$or": {"name": "Alice"}})
    with pytest.raises(QueryError):
        matches(d, {"$not": [{"name": "Alice"}]})
    with pytest.raises(QueryError):
        matches(d, {"$and": 5})
    with pytest.raises(QueryError):
        matches(d, ["name"])

def test_matching_does_not_mutate():
    import copy
    before = copy.deepcopy(DOCS)
    filter_documents(DOCS, {"$or": [{"age": {"$gt": 1}}, {"tags": {"$contains": "x"}}]})
    sort_documents(DOCS, [("age", "desc")])
    assert DOCS == before

def test_sort_is_stable_in_both_directions():
    docs = [{"k": 1, "i": 0}, {"k": 0, "i": 1}, {"k": 1, "i": 2}, {"k": 0, "i": 3}]
    asc = sort_documents(docs, "k")
    assert [d["i"] for d in asc] == [1, 3, 0, 2]
    desc = sort_documents(docs, [("k", "desc")])
    assert [d["i"] for d in desc] == [0, 2, 1, 3]

def test_sort_mixed_types_and_multi_key():
    docs = [{"v": "b"}, {"v": 2}, {}, {"v": None}, {"v": 1}, {"v": "a"}]
    got = sort_documents(docs, {"v": 1})
    assert got == [{}, {"v": None}, {"v": 1}, {"v": 2}, {"v": "a"}, {"v": "b"}]
    people = [{"g": "x", "n": 2}, {"g": "y", "n": 1}, {"g": "x", "n": 1}]
    got = sort_documents(people, [("g", "asc"), ("n", -1)])
    assert got == [{"g": "x", "n": 2}, {"g": "x", "n": 1}, {"g": "y", "n": 1}]

def test_pipeline_order():
    docs = [{"f": 3}, {"f": 1}, {"f": 2}]
    assert execute(docs, {}, order_by="f", skip=1, limit=1) == [{"f": 2}]
    assert execute(docs, None, skip=-3, limit=-1) == []
    assert execute(docs, None, skip=5) == []
