import pytest

from kubetester.headers import MalformedHeaderError, parse_http_headers


def test_empty():
    assert parse_http_headers([]) == []


def test_single_valid_header():
    assert parse_http_headers(["Content-Type: application/json"]) == [
        ("Content-Type", "application/json")
    ]


def test_multiple_valid_headers():
    result = parse_http_headers(
        ["Content-Type: application/json", "Accept: application/json"]
    )
    assert result == [
        ("Content-Type", "application/json"),
        ("Accept", "application/json"),
    ]


def test_invalid_header():
    with pytest.raises(MalformedHeaderError) as excinfo:
        parse_http_headers(["Invalid header"])
    assert excinfo.value.header == "Invalid header"
    assert "Invalid header" in str(excinfo.value)


def test_value_may_contain_boundary():
    assert parse_http_headers(["X-Note: a: b"]) == [("X-Note", "a: b")]


def test_error_is_value_error():
    with pytest.raises(ValueError):
        parse_http_headers(["Accept: text/plain", "NoColon"])