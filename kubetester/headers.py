"""Parsing of curl-style HTTP header arguments."""

from __future__ import annotations

from collections.abc import Iterable

_BOUNDARY = ": "


class MalformedHeaderError(ValueError):
    """Raised when a header is not of the form ``Key: Value``."""

    def __init__(self, header: str) -> None:
        super().__init__(f"malformed HTTP header: '{header}'")
        self.header = header


def parse_http_headers(headers: Iterable[str]) -> list[tuple[str, str]]:
    """Split each ``Header-Key: Header-Value`` string into a key/value pair.

    The headers are returned in the order given, ready to be added to an
    outgoing API request.
    """
    parsed = []
    for header in headers:
        key, sep, value = header.partition(_BOUNDARY)
        if not sep:
            raise MalformedHeaderError(header)
        parsed.append((key, value))
    return parsed