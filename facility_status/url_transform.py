"""Rewrite stored URIs into externally reachable ones."""

import re

import structlog

from facility_status.errors import InvalidArgumentError

logger = structlog.get_logger()

FROM_PATTERN = re.compile(r"\((.*?)\|")
TO_PATTERN = re.compile(r"\|(.*?)\)")
URI_PATTERN = re.compile(r"^(https?|ftp|file)://[-a-zA-Z0-9+&@#/%?=~_|!:,.;]*[-a-zA-Z0-9+&@#/%=~_|]")
ROOT = "/"


def _parse_uri(pattern: re.Pattern[str], rule: str) -> str | None:
    match = pattern.search(rule)
    if not match:
        return None
    candidate = match.group(1).strip()
    if candidate == ROOT:
        return candidate
    uri = URI_PATTERN.match(candidate)
    return uri.group(0) if uri else None


class UrlTransform:
    """Applies a ``(<fromURI>|<toURI>)`` prefix substitution to URIs.

    A transform with no rule passes every URI through unchanged.
    """

    def __init__(self, rule: str | None = None) -> None:
        self.rule = rule.strip() if rule else None
        self.from_uri: str | None = None
        self.to_uri: str | None = None
        if self.rule:
            self.from_uri = _parse_uri(FROM_PATTERN, self.rule)
            self.to_uri = _parse_uri(TO_PATTERN, self.rule)
            if self.from_uri is None or self.to_uri is None:
                raise InvalidArgumentError(f"Invalid URL transform: {self.rule}")
            logger.debug("URL transform configured", from_uri=self.from_uri, to_uri=self.to_uri)

    @property
    def enabled(self) -> bool:
        return self.from_uri is not None

    def apply(self, uri: str | None) -> str | None:
        """Rewrite ``uri`` if it starts with the configured source prefix."""
        from_uri, to_uri = self.from_uri, self.to_uri
        if uri is None or from_uri is None or to_uri is None or from_uri == to_uri:
            return uri
        if not uri.startswith(from_uri):
            return uri
        rest = uri[len(from_uri) :]
        # Join on exactly one slash.
        if from_uri == ROOT and to_uri.endswith(ROOT):
            rest = rest.lstrip(ROOT)
        elif to_uri.endswith(ROOT) and rest.startswith(ROOT):
            rest = rest[1:]
        elif from_uri == ROOT:
            rest = ROOT + rest
        return to_uri + rest

    def __repr__(self) -> str:
        return f"UrlTransform({self.rule!r})"
