from __future__ import annotations

from typing import Any


class BatchValidationError(ValueError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


def validate_batch(urls: Any, *, max_urls: int = 20, max_url_length: int = 2048) -> list[str]:
    """Check a decoded batch before any Job exists; returns the URLs as a list."""
    if not isinstance(urls, list):
        raise BatchValidationError("Expected a JSON array of URL strings.", {"type": type(urls).__name__})
    if not urls:
        raise BatchValidationError("At least one URL is required.", {"count": 0})
    if len(urls) > max_urls:
        raise BatchValidationError(
            f"Too many URLs, please send no more than {max_urls}.",
            {"count": len(urls), "max_urls": max_urls},
        )
    for i, u in enumerate(urls):
        if not isinstance(u, str):
            raise BatchValidationError(f"URL at index {i} is not a string.", {"index": i})
        if not u.strip():
            raise BatchValidationError(f"URL at index {i} is empty.", {"index": i})
        if len(u) > max_url_length:
            raise BatchValidationError(
                f"URL at index {i} is longer than {max_url_length} characters.",
                {"index": i, "length": len(u), "max_url_length": max_url_length},
            )
    return list(urls)
