"""Tests for conditional retrieval."""

from datetime import datetime, timedelta, timezone

from facility_status.conditional import (
    evaluate_collection,
    evaluate_single,
    format_http_date,
    latest_modified,
    parse_http_date,
)
from facility_status.models import Resource


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_resources() -> list[Resource]:
    return [
        Resource(id="a", last_modified=utc(2025, 3, 3, 7, 51, 20)),
        Resource(id="b", last_modified=utc(2025, 3, 11, 7, 28, 24)),
        Resource(id="c", last_modified=utc(2025, 3, 5)),
    ]


def test_http_date_round_trip() -> None:
    """Test RFC 1123 dates parse and format in GMT."""
    value = format_http_date(utc(2025, 3, 11, 7, 28, 24))
    assert value == "Tue, 11 Mar 2025 07:28:24 GMT"
    assert parse_http_date(value) == utc(2025, 3, 11, 7, 28, 24)


def test_malformed_http_date_is_ignored() -> None:
    """Test a malformed header is treated as absent."""
    assert parse_http_date("not a date") is None
    assert parse_http_date("") is None
    assert parse_http_date(None) is None


def test_latest_modified() -> None:
    """Test the latest timestamp of a collection."""
    assert latest_modified(make_resources()) == utc(2025, 3, 11, 7, 28, 24)


def test_latest_modified_empty_is_now() -> None:
    """Test an empty collection is always freshly modified."""
    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    assert latest_modified([]) >= before


def test_single_equal_date_not_modified() -> None:
    """Test equality counts as not modified."""
    resource = Resource(id="a", last_modified=utc(2025, 3, 3, 7, 51, 20))
    result = evaluate_single(resource, "Mon, 03 Mar 2025 07:51:20 GMT")
    assert result.not_modified
    assert result.last_modified == utc(2025, 3, 3, 7, 51, 20)


def test_single_older_date_modified() -> None:
    """Test an older client date returns the resource."""
    resource = Resource(id="a", last_modified=utc(2025, 3, 3, 7, 51, 20))
    assert not evaluate_single(resource, "Mon, 03 Mar 2025 07:51:19 GMT").not_modified
    assert not evaluate_single(resource, None).not_modified
    assert not evaluate_single(resource, "garbage").not_modified


def test_collection_not_modified_at_latest() -> None:
    """Test the collection is not modified at its latest timestamp."""
    result = evaluate_collection(make_resources(), "Tue, 11 Mar 2025 07:28:24 GMT")
    assert result.not_modified
    assert result.items == []


def test_collection_narrowed_to_fresh_items() -> None:
    """Test only items strictly newer than the client date are returned."""
    result = evaluate_collection(make_resources(), "Wed, 05 Mar 2025 00:00:00 GMT")
    assert not result.not_modified
    assert [item.id for item in result.items] == ["b"]


def test_collection_without_header() -> None:
    """Test the whole collection is returned without a header."""
    result = evaluate_collection(make_resources(), None)
    assert not result.not_modified
    assert [item.id for item in result.items] == ["a", "b", "c"]


def test_empty_collection_is_modified() -> None:
    """Test an empty collection is never reported as unchanged."""
    result = evaluate_collection([], "Tue, 11 Mar 2025 07:28:24 GMT")
    assert not result.not_modified
    assert result.items == []
