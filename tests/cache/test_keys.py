"""Tests for cache key derivation."""

import hashlib
import pytest
from dataclasses import dataclass
from uuid import UUID
from pydantic import BaseModel

from academia_commons.cache.keys import (
    api_cache_key,
    make_key,
    method_cache_key,
    query_cache_key,
    serialize_argument,
)
from academia_commons.core.exceptions import CacheKeyError


@dataclass
class StudentFilter:
    grade: int
    section: str


class CourseQuery(BaseModel):
    term: str
    year: int


class TestMakeKey:

    def test_default_prefix(self):
        assert make_key("dashboard") == "cache:dashboard"

    def test_explicit_prefix(self):
        assert make_key("profile", "user:42") == "user:42:profile"

    @pytest.mark.parametrize("key", ["", None])
    def test_empty_key_rejected(self, key):
        with pytest.raises(CacheKeyError):
            make_key(key)


class TestMethodCacheKey:

    def test_reordered_dict_arguments_share_a_key(self):
        first = method_cache_key("list_students", ({"a": 1, "b": 2},))
        second = method_cache_key("list_students", ({"b": 2, "a": 1},))

        assert first == second
        assert first == 'list_students:{"args":[{"a":1,"b":2}],"kwargs":{}}'

    def test_nested_dicts_are_sorted(self):
        first = method_cache_key("search", ({"filters": {"z": 1, "a": 2}, "page": 1},))
        second = method_cache_key("search", ({"page": 1, "filters": {"a": 2, "z": 1}},))

        assert first == second

    def test_positional_arguments_in_order(self):
        assert method_cache_key("get_grade", ("student-1", 7)) == 'get_grade:{"args":["student-1",7],"kwargs":{}}'

    def test_keyword_arguments_sorted_by_name(self):
        first = method_cache_key("report", ("s1",), {"term": "fall", "year": 2024})
        second = method_cache_key("report", ("s1",), {"year": 2024, "term": "fall"})

        assert first == second == 'report:{"args":["s1"],"kwargs":{"term":"fall","year":2024}}'

    def test_no_arguments(self):
        assert method_cache_key("all_schools") == 'all_schools:{"args":[],"kwargs":{}}'

    def test_different_values_give_different_keys(self):
        assert method_cache_key("m", ({"a": 1},)) != method_cache_key("m", ({"a": 2},))

    def test_separator_inside_argument_does_not_collide(self):
        assert method_cache_key("find", ("a|b",)) != method_cache_key("find", ("a", "b"))

    def test_keyword_argument_does_not_collide_with_positional_text(self):
        assert method_cache_key("find", (), {"x": "1"}) != method_cache_key("find", ("x=1",))

    def test_int_and_string_arguments_do_not_collide(self):
        assert method_cache_key("get_grade", (1,)) != method_cache_key("get_grade", ("1",))

    def test_uuid_argument_uses_string_form(self):
        school_id = UUID("12345678-1234-5678-1234-567812345678")

        assert method_cache_key("get_school", (school_id,)) == method_cache_key("get_school", (str(school_id),))


class TestSerializeArgument:

    def test_dataclass_argument(self):
        assert serialize_argument(StudentFilter(grade=7, section="B")) == '{"grade":7,"section":"B"}'

    def test_pydantic_argument(self):
        assert serialize_argument(CourseQuery(term="fall", year=2024)) == '{"term":"fall","year":2024}'

    def test_set_argument_is_order_independent(self):
        assert serialize_argument({"b", "a"}) == serialize_argument({"a", "b"})

    def test_scalar_argument(self):
        assert serialize_argument(42) == "42"


class TestApiAndQueryKeys:

    def test_api_key_sorts_params(self):
        first = api_cache_key("GET", "/students", {"page": 2, "grade": 7})
        second = api_cache_key("GET", "/students", {"grade": 7, "page": 2})

        assert first == second == "GET:/students:grade:7|page:2"

    def test_api_key_without_params(self):
        assert api_cache_key("GET", "/schools", {}) == "GET:/schools:"

    def test_query_key_hashes_params(self):
        expected = hashlib.md5(b'[42,"active"]').hexdigest()

        assert query_cache_key("SELECT * FROM students WHERE school_id = $1 AND status = $2", [42, "active"]) == (
            f"SELECT * FROM students WHERE school_id = $1 AND status = $2:{expected}"
        )

    def test_query_key_differs_by_params(self):
        assert query_cache_key("q", [1]) != query_cache_key("q", [2])
