from datetime import date

import pytest

from kakeibo.services.finance_service import FinanceService


def test_parse_month_accepts_month_and_day_forms():
    assert FinanceService.parse_month("2024-06") == date(2024, 6, 1)
    assert FinanceService.parse_month(" 2024-06-17 ") == date(2024, 6, 1)


@pytest.mark.parametrize("value", ["2024", "june", "2024-13"])
def test_parse_month_rejects_garbage(value):
    with pytest.raises(ValueError):
        FinanceService.parse_month(value)


def test_month_window_handles_leap_february():
    assert FinanceService.month_window(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert FinanceService.month_window(date(2023, 2, 1)) == (date(2023, 2, 1), date(2023, 2, 28))


def test_summarize_totals_and_breakdown():
    transactions = [
        {"type": "income", "amount": 300000, "category_id": 1},
        {"type": "expense", "amount": 60000, "category_id": 2},
        {"type": "expense", "amount": 20000, "category": "fun"},
        {"type": "expense", "amount": 20000},
    ]

    summary = FinanceService.summarize(transactions, budget_amount=250000, category_names={2: "rent"})

    assert summary["total_income"] == 300000
    assert summary["total_expense"] == 100000
    assert summary["balance"] == 200000
    assert summary["remaining"] == 150000
    assert summary["category_breakdown"][0] == {"category": "rent", "amount": 60000, "percentage": 60.0}
    assert {c["category"] for c in summary["category_breakdown"]} == {"rent", "fun", "uncategorized"}


def test_remaining_never_goes_negative():
    summary = FinanceService.summarize([{"type": "expense", "amount": 900}], budget_amount=500)
    assert summary["remaining"] == 0
    assert summary["balance"] == -900


def test_no_budget_means_no_remaining():
    summary = FinanceService.summarize([])
    assert summary["budget"] is None
    assert summary["remaining"] is None
    assert summary["category_breakdown"] == []
