from __future__ import annotations

import time

import pytest
import requests

from connectors.models import ExpansionOutcome
from connectors.url_expander import (
    BROWSER_HEADERS,
    CODE_NOT_FOUND,
    EXPANSION_FAILED,
    URLExpander,
    extract_product_code,
    parse_url_list,
    unique_product_codes,
)
from tests.fake_http import FakeResponse, FakeSession
from utils.config import load_settings

SHORT_1 = "https://amzn.to/aaa"
SHORT_2 = "https://amzn.to/bbb"
SHORT_3 = "https://a.co/d/ccc"


def _settings(max_attempts: int = 3, base_delay_ms: int = 500) -> dict:
    settings = load_settings()
    settings["url_expander"].update(
        {"timeout_sec": 1, "max_attempts": max_attempts, "base_delay_ms": base_delay_ms}
    )
    return settings


@pytest.fixture
def sleeps(monkeypatch) -> list:
    recorded: list = []
    monkeypatch.setattr(
        "connectors.url_expander.sleep_with_backoff",
        lambda attempt, policy: recorded.append(policy.compute_delay(attempt)),
    )
    return recorded


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.amazon.com/dp/B0ABCDEFGH/ref=foo", "B0ABCDEFGH"),
        ("https://www.amazon.com/Some-Title/dp/b0abcdefgh?th=1", "B0ABCDEFGH"),
        ("https://www.amazon.com/gp/product/B0ABCDEFGH", "B0ABCDEFGH"),
        ("https://www.amazon.com/gp/aw/d/B0ABCDEFGH/", "B0ABCDEFGH"),
        ("https://www.amazon.de/product/B0ABCDEFGH?x=1", "B0ABCDEFGH"),
        ("https://www.amazon.com/B0ABCDEFGH", "B0ABCDEFGH"),
        ("https://www.amazon.com/s?k=widgets", None),
        ("https://www.amazon.com/dp/B0ABCDEFGHIJ", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_product_code(url, expected) -> None:
    assert extract_product_code(url) == expected


def test_marker_patterns_take_precedence_over_fallback() -> None:
    url = "https://www.amazon.com/ZZZZZZZZZZ/dp/B0ABCDEFGH"
    assert extract_product_code(url) == "B0ABCDEFGH"


def test_parse_url_list_normalises_free_text() -> None:
    text = "amzn.to/aaa, https://a.co/d/ccc;\n junk https://amzn.to/aaa  A.CO/d/x http://x.test/p"
    assert parse_url_list(text) == [
        "https://amzn.to/aaa",
        "https://a.co/d/ccc",
        "https://A.CO/d/x",
        "http://x.test/p",
    ]
    assert parse_url_list("   ") == []


def test_expand_follows_redirects_with_browser_headers(sleeps) -> None:
    final = "https://www.amazon.com/dp/B0ABCDEFGH?tag=x"
    session = FakeSession({SHORT_1: [FakeResponse(url=final)]})
    expander = URLExpander(settings=_settings(), session=session)

    outcome = expander.expand(SHORT_1)

    assert outcome == ExpansionOutcome(url=SHORT_1, final_url=final, product_code="B0ABCDEFGH", error=None)
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["allow_redirects"] is True
    assert call["headers"] == BROWSER_HEADERS
    assert "Mozilla/5.0" in call["headers"]["User-Agent"]
    assert call["timeout"] == 1.0
    assert session.responses[0].closed
    assert sleeps == []


def test_non_2xx_response_is_not_retried(sleeps) -> None:
    final = "https://www.amazon.com/errors/validateCaptcha"
    session = FakeSession({SHORT_1: [FakeResponse(url=final, status_code=503)]})
    outcome = URLExpander(settings=_settings(), session=session).expand(SHORT_1)

    assert session.calls_to(SHORT_1) == 1
    assert outcome.final_url == final
    assert outcome.product_code is None
    assert outcome.error == CODE_NOT_FOUND


def test_transient_failures_retry_then_succeed(sleeps) -> None:
    final = "https://www.amazon.com/dp/B0ABCDEFGH"
    session = FakeSession(
        {
            SHORT_1: [
                requests.exceptions.ConnectTimeout("timed out"),
                requests.exceptions.ConnectionError("connection reset by peer"),
                FakeResponse(url=final),
            ]
        }
    )
    outcome = URLExpander(settings=_settings(max_attempts=3), session=session).expand(SHORT_1)

    assert outcome.product_code == "B0ABCDEFGH"
    assert session.calls_to(SHORT_1) == 3
    assert sleeps == [0.5, 1.0]


def test_exhausted_retries_fall_back_to_original_url(sleeps) -> None:
    session = FakeSession({SHORT_1: [requests.exceptions.ReadTimeout("slow")]})
    outcome = URLExpander(settings=_settings(max_attempts=4, base_delay_ms=800), session=session).expand(SHORT_1)

    assert session.calls_to(SHORT_1) == 4
    assert sleeps == [0.8, 1.6, 2.4]
    assert outcome.final_url == SHORT_1
    assert outcome.error == CODE_NOT_FOUND


def test_non_transient_error_is_not_retried(sleeps) -> None:
    session = FakeSession({SHORT_1: [requests.exceptions.TooManyRedirects("loop")]})
    outcome = URLExpander(settings=_settings(), session=session).expand(SHORT_1)

    assert session.calls_to(SHORT_1) == 1
    assert sleeps == []
    assert outcome.final_url == SHORT_1


def test_batch_outcomes_are_independent_and_ordered(sleeps) -> None:
    session = FakeSession(
        {
            SHORT_1: [FakeResponse(url="https://www.amazon.com/dp/B000000001")],
            SHORT_2: [requests.exceptions.Timeout("always times out")],
            SHORT_3: [FakeResponse(url="https://www.amazon.com/gp/product/B000000003")],
        }
    )
    outcomes = URLExpander(settings=_settings(), session=session).expand_batch([SHORT_1, SHORT_2, SHORT_3])

    assert [outcome.url for outcome in outcomes] == [SHORT_1, SHORT_2, SHORT_3]
    assert [outcome.ok for outcome in outcomes] == [True, False, True]
    assert outcomes[1].final_url == SHORT_2
    assert outcomes[1].error is not None
    assert outcomes[1].product_code is None
    assert unique_product_codes(outcomes) == ["B000000001", "B000000003"]


def test_invalid_entries_report_errors(sleeps) -> None:
    outcomes = URLExpander(settings=_settings(), session=FakeSession()).expand_batch(["", None])
    assert all(outcome.error and outcome.product_code is None for outcome in outcomes)
    assert outcomes[0].final_url is None


def test_outcome_requires_exactly_one_of_code_or_error() -> None:
    with pytest.raises(ValueError):
        ExpansionOutcome(url="u", final_url="u", product_code="B0ABCDEFGH", error="x")
    with pytest.raises(ValueError):
        ExpansionOutcome(url="u", final_url="u", product_code=None, error=None)


def test_outcome_wire_format() -> None:
    outcome = ExpansionOutcome(url="u", final_url="f", product_code=None, error=CODE_NOT_FOUND)
    assert outcome.to_dict() == {"url": "u", "finalUrl": "f", "asin": None, "error": "ASIN not found"}


def test_backoff_schedule_wall_clock() -> None:
    session = FakeSession({SHORT_1: [requests.exceptions.ConnectionError("dns failure")]})
    expander = URLExpander(settings=_settings(max_attempts=4, base_delay_ms=40), session=session)

    start = time.perf_counter()
    outcome = expander.expand(SHORT_1)
    elapsed = time.perf_counter() - start

    # 40 + 80 + 120 ms; a doubling schedule would sleep 40 + 80 + 160 ms.
    expected = expander.retry_policy.total_delay()
    assert expected == pytest.approx(0.24)
    assert expected <= elapsed < expected + 0.2
    assert outcome.final_url == SHORT_1


def test_unexpected_error_is_contained_to_its_entry(sleeps) -> None:
    session = FakeSession(
        {
            SHORT_1: [FakeResponse(url="https://www.amazon.com/dp/B000000001")],
            SHORT_2: [ValueError("Invalid IPv6 URL")],
            SHORT_3: [FakeResponse(url="https://www.amazon.com/dp/B000000003")],
        }
    )
    outcomes = URLExpander(settings=_settings(), session=session).expand_batch([SHORT_1, SHORT_2, SHORT_3])

    assert [outcome.ok for outcome in outcomes] == [True, False, True]
    assert outcomes[1].url == SHORT_2
    assert outcomes[1].final_url is None
    assert outcomes[1].error == "Invalid IPv6 URL"
    assert session.calls_to(SHORT_2) == 1
    assert sleeps == []


def test_unexpected_error_without_message_uses_generic_marker(sleeps) -> None:
    session = FakeSession({SHORT_1: [RuntimeError()]})
    outcome = URLExpander(settings=_settings(), session=session).expand(SHORT_1)
    assert outcome.error == EXPANSION_FAILED
    assert outcome.product_code is None
