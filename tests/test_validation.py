from __future__ import annotations

import pytest

from batchfetch.runtime.validation import BatchValidationError, validate_batch


def test_validate_batch_accepts_up_to_max() -> None:
    urls = [f"https://h{i}.example/ok" for i in range(20)]
    assert validate_batch(urls) == urls


def test_validate_batch_rejects_21_urls() -> None:
    with pytest.raises(BatchValidationError) as e:
        validate_batch([f"https://h{i}.example/ok" for i in range(21)])
    assert e.value.details == {"count": 21, "max_urls": 20}


@pytest.mark.parametrize(
    "payload",
    [
        {"urls": ["https://a.example/ok"]},
        "https://a.example/ok",
        [],
        ["https://a.example/ok", 42],
        ["   "],
        ["https://a.example/" + "x" * 2048],
    ],
)
def test_validate_batch_rejects_bad_payloads(payload) -> None:
    with pytest.raises(BatchValidationError):
        validate_batch(payload)


def test_validate_batch_respects_custom_limits() -> None:
    with pytest.raises(BatchValidationError):
        validate_batch(["https://a.example/ok"] * 3, max_urls=2)
    with pytest.raises(BatchValidationError):
        validate_batch(["https://a.example/ok"], max_url_length=10)
