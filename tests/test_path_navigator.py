import pytest

from core.services.path_navigator import (
    map_display_lines_to_paths,
    parse_path_input,
    suggest_next_segments,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", ("$", "")),
        ("$", ("$", "")),
        ("$.da", ("$", "da")),
        ("$.data.", ("$.data", "")),
        ("$.data[*].na", ("$.data[*]", "na")),
        ("$.data[*]", ("$.data", "[*]")),
        ("$.data[*].", ("$.data[*]", "")),
        ("name", ("$", "name")),
    ],
)
def test_parse_path_input(text, expected):
    assert parse_path_input(text) == expected


def test_suggestions_are_the_union_across_hosts():
    samples = ['{"data": {"a": 1, "shared": 2}}', '{"data": {"b": 1, "shared": 3}}']

    assert suggest_next_segments(samples, "$.data") == ["a", "b", "shared"]


def test_suggestions_filter_on_partial_segment():
    samples = [{"data": 1, "Debug": 2, "meta": 3}]

    assert suggest_next_segments(samples, "$", "d") == ["Debug", "data"]


def test_arrays_suggest_wildcard_then_element_keys():
    samples = ['{"items": [{"id": 1}, {"name": "x"}]}']

    assert suggest_next_segments(samples, "$.items") == ["[*]"]
    assert suggest_next_segments(samples, "$.items[*]") == ["id", "name"]


def test_unstructured_and_unreachable_samples_are_ignored():
    samples = ["plain text", '{"a": {"b": 1}}', '{"x": 1}']

    assert suggest_next_segments(samples, "$.a") == ["b"]
    assert suggest_next_segments(samples, "$.a[") == []


def test_line_to_path_mapping():
    value = {"a": 1, "b": {"c": [1, 2]}, "d": [{"e": 1}]}
    # {
    #   "a": 1,
    #   "b": {
    #     "c": [
    #       1,
    #       2
    #     ]
    #   },
    #   "d": [
    #     {
    #       "e": 1
    #     }
    #   ]
    # }

    mapping = map_display_lines_to_paths(value)

    assert mapping[1] == "$"
    assert mapping[2] == "$.a"
    assert mapping[3] == "$.b"
    assert mapping[4] == "$.b.c"
    assert mapping[5] == "$.b.c[*]"
    assert mapping[7] == "$.b.c"
    assert mapping[8] == "$.b"
    assert mapping[9] == "$.d"
    assert mapping[10] == "$.d[*]"
    assert mapping[11] == "$.d[*].e"
    assert mapping[12] == "$.d[*]"
    assert mapping[13] == "$.d"
    assert mapping[14] == "$"
    assert len(mapping) == 14


def test_line_mapping_respects_base_path_and_escaped_keys():
    mapping = map_display_lines_to_paths('{"we\\"ird": 1}', base_path="$.scoped")

    assert mapping == {1: "$.scoped", 2: '$.scoped.we"ird', 3: "$.scoped"}
