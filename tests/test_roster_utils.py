# tests/test_roster_utils.py
import pytest

from portal.roster_utils import as_list, normalize_course, normalize_roster_ids, unique_ids


def test_json_array_string():
    assert normalize_roster_ids('["a","b","c"]') == ["a", "b", "c"]


def test_comma_separated_string():
    assert normalize_roster_ids("a,b,c") == ["a", "b", "c"]
    assert normalize_roster_ids(" a , b ,, c ") == ["a", "b", "c"]


def test_broken_json_falls_back_to_delimiter_parsing():
    assert normalize_roster_ids('["a", "b"]extra') == ["a", "bextra"]


def test_brace_and_quote_noise_is_stripped():
    assert normalize_roster_ids('{"s7","s8","s9"}') == ["s7", "s8", "s9"]
    assert normalize_roster_ids('[s1, s2]') == ["s1", "s2"]


def test_json_that_is_not_an_array_uses_delimiters():
    assert normalize_roster_ids('"s1"') == ["s1"]
    assert normalize_roster_ids("42") == ["42"]


def test_non_standard_json_constants_use_delimiters():
    assert normalize_roster_ids("[NaN]") == ["NaN"]
    assert normalize_roster_ids("[1, -Infinity]") == ["1", "-Infinity"]


def test_list_input_keeps_order_and_duplicates():
    assert normalize_roster_ids(["b", " a ", "", "b", 7]) == ["b", "a", "b", "7"]
    assert normalize_roster_ids(("x", "y")) == ["x", "y"]


def test_json_array_elements_are_stringified():
    assert normalize_roster_ids("[1, 2.0, true, \" s3 \"]") == ["1", "2", "true", "s3"]


@pytest.mark.parametrize("value", [None, "", "   ", 12, {"a": 1}, object()])
def test_other_inputs_give_empty_list(value):
    assert normalize_roster_ids(value) == []


def test_unique_ids_keeps_first_seen_order():
    assert unique_ids(["b", "a", "b", "", "c", "a"]) == ["b", "a", "c"]


def test_normalize_course_does_not_touch_the_input():
    course = {"id": "c1", "studentIds": "s1,s2"}
    out = normalize_course(course)
    assert out["studentIds"] == ["s1", "s2"]
    assert course["studentIds"] == "s1,s2"


def test_as_list_shape_boundary():
    assert as_list([1, 2]) == [1, 2]
    assert as_list({"students": [1]}, "students") == [1]
    assert as_list({"students": None}, "students") == []
    assert as_list({"other": [1]}, "students") == []
    assert as_list(None) == []
