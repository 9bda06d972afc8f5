from datetime import date

import pytest

from money import MAX_AMOUNT_CENTS, cents_to_amount, parse_amount
from periods import month_key, month_period, trailing_months


def test_month_period_spans_whole_month() -> None:
    period = month_period("2024-02")
    assert period.slug == "2024-02"
    assert period.start == date(2024, 2, 1)
    assert period.end == date(2024, 2, 29)

    december = month_period("2025-12")
    assert december.end == date(2025, 12, 31)


@pytest.mark.parametrize("raw", ["2025-13", "2025", "abc", "2025-01-01", ""])
def test_month_period_rejects_malformed_keys(raw) -> None:
    with pytest.raises(ValueError):
        month_period(raw)


def test_trailing_months_cross_year_boundary() -> None:
    periods = trailing_months(6, today=date(2025, 3, 15))
    assert [p.slug for p in periods] == [
        "2024-10",
        "2024-11",
        "2024-12",
        "2025-01",
        "2025-02",
        "2025-03",
    ]
    assert month_key(date(2025, 3, 15)) == periods[-1].slug


@pytest.mark.parametrize(
    "raw, cents",
    [
        (12.5, 1250),
        ("12.345", 1235),
        (" 7 ", 700),
        (0.01, 1),
        (0.005, 1),
        ("1e3", 100_000),
        (3, 300),
    ],
)
def test_parse_amount_to_cents(raw, cents) -> None:
    assert parse_amount(raw) == cents


@pytest.mark.parametrize(
    "raw", [0, -5, "0.004", "", "abc", None, True, "Infinity", float("nan"), [1]]
)
def test_parse_amount_rejects_non_positive_or_non_numeric(raw) -> None:
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_cents_to_amount() -> None:
    assert cents_to_amount(1250) == 12.5
    assert cents_to_amount(-25_000) == -250.0


def test_parse_amount_caps_at_storable_cents() -> None:
    assert parse_amount("92233720368547758.07") == MAX_AMOUNT_CENTS

    for raw in ("92233720368547758.08", 1e17, "1e30"):
        with pytest.raises(ValueError):
            parse_amount(raw)
