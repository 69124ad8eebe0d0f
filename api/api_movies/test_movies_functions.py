"""
Unit tests for the request parsing and serialization helpers.
"""

import pytest
from bson import ObjectId

from movies_functions import (
    build_insert_payload,
    build_movie_filter,
    build_update_payload,
    parse_csv_list,
    parse_rating,
    serialize_document,
    to_object_id,
)


class TestParsing:

    def test_parse_csv_list_splits_and_trims(self):
        assert parse_csv_list(" Drama, Comedy ,,Action ") == ["Drama", "Comedy", "Action"]

    def test_parse_csv_list_empty(self):
        assert parse_csv_list(None) == []
        assert parse_csv_list("") == []
        assert parse_csv_list(" , ") == []

    def test_parse_rating(self):
        assert parse_rating("7.5") == 7.5
        assert parse_rating(" 8 ") == 8.0
        assert parse_rating(None) is None
        assert parse_rating("") is None

    @pytest.mark.parametrize("raw", ["abc", "nan", "7,5"])
    def test_parse_rating_rejects_non_numbers(self, raw):
        with pytest.raises(ValueError):
            parse_rating(raw)

    def test_to_object_id(self):
        oid = ObjectId()
        assert to_object_id(str(oid)) == oid
        assert to_object_id(oid) is oid
        assert to_object_id("not-an-id") is None
        assert to_object_id("") is None
        assert to_object_id(None) is None


class TestMovieFilter:
    """Absent filters add nothing, present ones are combined."""

    def test_no_filters(self):
        assert build_movie_filter() == {}

    def test_genres_only(self):
        assert build_movie_filter(["Drama", "Comedy"]) == {"genre": {"$in": ["Drama", "Comedy"]}}

    def test_rating_bounds_share_one_condition(self):
        assert build_movie_filter(min_rating=8, max_rating=9) == {"rating": {"$gte": 8, "$lte": 9}}

    def test_zero_is_a_real_bound(self):
        assert build_movie_filter(min_rating=0) == {"rating": {"$gte": 0}}

    def test_all_filters(self):
        query = build_movie_filter(["Drama"], 7.0, None)
        assert query == {"genre": {"$in": ["Drama"]}, "rating": {"$gte": 7.0}}


class TestPayloads:

    def test_insert_payload_drops_client_id(self):
        payload = build_insert_payload({"_id": "abc", "title": "A", "addedBy": "u1"})
        assert payload == {"title": "A", "addedBy": "u1"}

    def test_insert_payload_takes_owner_from_user_id(self):
        payload = build_insert_payload({"title": "A", "userId": "u1"})
        assert payload == {"title": "A", "addedBy": "u1"}

    def test_insert_payload_keeps_explicit_owner(self):
        payload = build_insert_payload({"title": "A", "addedBy": "u1", "userId": "u2"})
        assert payload["addedBy"] == "u1"
        assert "userId" not in payload

    def test_insert_payload_dedupes_watchlist(self):
        payload = build_insert_payload({"title": "A", "watchlist": ["b", "a", "b"]})
        assert payload["watchlist"] == ["b", "a"]

    @pytest.mark.parametrize("watchlist", [None, "alice@x.com", {"a": 1}])
    def test_insert_payload_normalizes_bad_watchlist(self, watchlist):
        assert build_insert_payload({"title": "A", "watchlist": watchlist})["watchlist"] == []

    def test_insert_payload_requires_object(self):
        assert build_insert_payload(None) is None
        assert build_insert_payload(["title"]) is None

    def test_update_payload_strips_protected_fields(self):
        changes = build_update_payload({"_id": "x", "addedBy": "u2", "userId": "u1", "rating": 8})
        assert changes == {"rating": 8}

    def test_update_payload_normalizes_watchlist(self):
        assert build_update_payload({"watchlist": None}) == {"watchlist": []}
        assert build_update_payload({"watchlist": ["a", "a"]}) == {"watchlist": ["a"]}

    def test_update_payload_of_non_object(self):
        assert build_update_payload(None) == {}


def test_serialize_document_stringifies_id():
    oid = ObjectId()
    doc = {"_id": oid, "title": "A", "watchlist": ["x"]}
    assert serialize_document(doc) == {"_id": str(oid), "title": "A", "watchlist": ["x"]}
    assert doc["_id"] is oid
    assert serialize_document(None) == {}
