"""
finance_service.py: Monthly aggregation
Pure reducers over transactions already fetched from the store: month
windows, income/expense totals, expense breakdown by category and the
remaining budget.
"""

import calendar
from datetime import date


class FinanceService:
    @staticmethod
    def parse_month(value: str) -> date:
        """'2024-06' or '2024-06-01' → date(2024, 6, 1). Raises ValueError."""
        parts = value.strip().split("-")
        if len(parts) < 2:
            raise ValueError(f"Invalid month: {value!r}")
        return date(int(parts[0]), int(parts[1]), 1)

    @staticmethod
    def month_window(month: date) -> tuple[date, date]:
        """[first day, last day] of the month containing `month`."""
        last = calendar.monthrange(month.year, month.month)[1]
        return month.replace(day=1), month.replace(day=last)

    @staticmethod
    def category_name(tx: dict, category_names: dict) -> str:
        name = category_names.get(tx.get("category_id"))
        return name or tx.get("category") or "uncategorized"

    @staticmethod
    def summarize(
        transactions: list,
        budget_amount: int | None = None,
        category_names: dict | None = None,
    ) -> dict:
        """Totals, expense breakdown and remaining = max(0, budget − expense)."""
        category_names = category_names or {}
        income = sum(t.get("amount") or 0 for t in transactions if t.get("type") == "income")
        expenses = sum(t.get("amount") or 0 for t in transactions if t.get("type") == "expense")

        # Category breakdown (expenses only)
        cats = {}
        for t in transactions:
            if t.get("type") == "expense":
                name = FinanceService.category_name(t, category_names)
                cats[name] = cats.get(name, 0) + (t.get("amount") or 0)

        breakdown = [
            {"category": k, "amount": v, "percentage": round((v / expenses) * 100, 1) if expenses else 0}
            for k, v in cats.items()
        ]

        return {
            "total_income": income,
            "total_expense": expenses,
            "balance": income - expenses,
            "budget": budget_amount,
            "remaining": max(0, budget_amount - expenses) if budget_amount is not None else None,
            "category_breakdown": sorted(breakdown, key=lambda x: x["amount"], reverse=True),
        }
