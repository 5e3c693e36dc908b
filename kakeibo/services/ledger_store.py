"""
ledger_store.py: Storage seam for the salary distribution job
One interface, two backends: Supabase PostgREST (production) and the local
SQLAlchemy mirror (development and tests). Rows are plain dicts with ISO
dates in both cases.
"""

from abc import ABC, abstractmethod
from datetime import date

from sqlalchemy import update

from kakeibo.models.budget import Budget
from kakeibo.models.group import GroupBudget, GroupMember
from kakeibo.models.salary import Salary
from kakeibo.models.salary_addition import SalaryAddition
from kakeibo.models.transaction import Transaction
from kakeibo.supabase_rest import (
    SupabaseError, sb_select, sb_select_one, sb_insert, sb_update, sb_upsert,
)


class LedgerStore(ABC):
    """Reads and writes the salary job needs. Every method raises on failure."""

    @abstractmethod
    def find_salaries_by_payday(self, paydays: list[int]) -> list[dict]:
        """Salary rules whose payday is one of paydays."""
        ...

    @abstractmethod
    def get_budget(self, user_id: str, month: date) -> dict | None:
        """The user's personal budget row for month, or None when absent."""
        ...

    @abstractmethod
    def save_budget(self, user_id: str, month: date, amount: int, budget_id: int | None = None) -> dict:
        """Create (budget_id None) or overwrite the personal budget amount."""
        ...

    @abstractmethod
    def list_group_ids(self, user_id: str) -> list[int]:
        ...

    @abstractmethod
    def increment_group_budget(self, group_id: int, month: date, amount: int) -> int:
        """Add amount to the group's running budget for month; returns the new total."""
        ...

    @abstractmethod
    def insert_transaction(self, data: dict) -> dict:
        ...

    @abstractmethod
    def list_salary_additions(self, user_id: str, day: date) -> list[dict]:
        """Audit rows already recorded for the user on day."""
        ...

    @abstractmethod
    def insert_salary_addition(self, user_id: str, amount: int, day: date) -> dict:
        ...

    @abstractmethod
    def mark_salary_paid(self, salary_id: int, day: date) -> None:
        ...


# ══════════════════════════════════════════════════════════════════════
#  Supabase (PostgREST)
# ══════════════════════════════════════════════════════════════════════
class RestLedgerStore(LedgerStore):
    def find_salaries_by_payday(self, paydays: list[int]) -> list[dict]:
        if len(paydays) == 1:
            return sb_select("salaries", filters={"payday": paydays[0]}, order="id.asc")
        days = ",".join(str(d) for d in sorted(paydays))
        return sb_select("salaries", query_string=f"payday=in.({days})", order="id.asc")

    def get_budget(self, user_id: str, month: date) -> dict | None:
        try:
            return sb_select_one("budgets", {"user_id": user_id, "month": month.isoformat()})
        except SupabaseError as e:
            if e.is_not_found:
                return None
            raise

    def save_budget(self, user_id: str, month: date, amount: int, budget_id: int | None = None) -> dict:
        if budget_id is not None:
            return sb_update("budgets", {"id": budget_id}, {"amount": amount})
        # (user_id, month) is unique; a row created since the fetch is overwritten, not duplicated
        return sb_upsert(
            "budgets",
            {"user_id": user_id, "month": month.isoformat(), "amount": amount},
            on_conflict="user_id,month",
        )

    def list_group_ids(self, user_id: str) -> list[int]:
        rows = sb_select("group_members", filters={"user_id": user_id}, columns="group_id")
        return [r["group_id"] for r in rows]

    def increment_group_budget(self, group_id: int, month: date, amount: int) -> int:
        row = sb_select_one("group_budgets", {"group_id": group_id, "month": month.isoformat(), "category": None})
        if row:
            total = (row.get("amount") or 0) + amount
            sb_update("group_budgets", {"id": row["id"]}, {"amount": total})
            return total
        sb_insert("group_budgets", {"group_id": group_id, "month": month.isoformat(), "amount": amount})
        return amount

    def insert_transaction(self, data: dict) -> dict:
        return sb_insert("transactions", data)

    def list_salary_additions(self, user_id: str, day: date) -> list[dict]:
        return sb_select("salary_additions", filters={"user_id": user_id, "date": day.isoformat()}, order="id.asc")

    def insert_salary_addition(self, user_id: str, amount: int, day: date) -> dict:
        return sb_insert("salary_additions", {"user_id": user_id, "amount": amount, "date": day.isoformat()})

    def mark_salary_paid(self, salary_id: int, day: date) -> None:
        sb_update("salaries", {"id": salary_id}, {"last_paid": day.isoformat()})


# ══════════════════════════════════════════════════════════════════════
#  Local SQLAlchemy mirror
# ══════════════════════════════════════════════════════════════════════
def _as_dict(obj) -> dict:
    out = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.name)
        out[column.name] = value.isoformat() if isinstance(value, date) else value
    return out


class SqlLedgerStore(LedgerStore):
    """Opens one short session per call so worker threads never share one."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def find_salaries_by_payday(self, paydays: list[int]) -> list[dict]:
        with self._session_factory() as db:
            rows = db.query(Salary).filter(Salary.payday.in_(paydays)).order_by(Salary.id).all()
            return [_as_dict(r) for r in rows]

    def get_budget(self, user_id: str, month: date) -> dict | None:
        with self._session_factory() as db:
            row = db.query(Budget).filter_by(user_id=user_id, month=month).first()
            return _as_dict(row) if row else None

    def save_budget(self, user_id: str, month: date, amount: int, budget_id: int | None = None) -> dict:
        with self._session_factory() as db:
            if budget_id is not None:
                row = db.get(Budget, budget_id)
                if row is None:
                    raise LookupError(f"Budget {budget_id} disappeared")
                row.amount = amount
            else:
                row = db.query(Budget).filter_by(user_id=user_id, month=month).first()
                if row is None:
                    row = Budget(user_id=user_id, month=month)
                    db.add(row)
                row.amount = amount
            db.commit()
            db.refresh(row)
            return _as_dict(row)

    def list_group_ids(self, user_id: str) -> list[int]:
        with self._session_factory() as db:
            return [m.group_id for m in db.query(GroupMember).filter_by(user_id=user_id).all()]

    def increment_group_budget(self, group_id: int, month: date, amount: int) -> int:
        with self._session_factory() as db:
            result = db.execute(
                update(GroupBudget)
                .where(GroupBudget.group_id == group_id, GroupBudget.month == month, GroupBudget.category.is_(None))
                .values(amount=GroupBudget.amount + amount)
            )
            if result.rowcount == 0:
                db.add(GroupBudget(group_id=group_id, month=month, amount=amount))
            db.commit()
            row = db.query(GroupBudget).filter_by(group_id=group_id, month=month, category=None).first()
            return row.amount

    def insert_transaction(self, data: dict) -> dict:
        with self._session_factory() as db:
            values = dict(data)
            if isinstance(values.get("date"), str):
                values["date"] = date.fromisoformat(values["date"])
            row = Transaction(**values)
            db.add(row)
            db.commit()
            db.refresh(row)
            return _as_dict(row)

    def list_salary_additions(self, user_id: str, day: date) -> list[dict]:
        with self._session_factory() as db:
            rows = db.query(SalaryAddition).filter_by(user_id=user_id, date=day).order_by(SalaryAddition.id).all()
            return [_as_dict(r) for r in rows]

    def insert_salary_addition(self, user_id: str, amount: int, day: date) -> dict:
        with self._session_factory() as db:
            row = SalaryAddition(user_id=user_id, amount=amount, date=day)
            db.add(row)
            db.commit()
            db.refresh(row)
            return _as_dict(row)

    def mark_salary_paid(self, salary_id: int, day: date) -> None:
        with self._session_factory() as db:
            row = db.get(Salary, salary_id)
            if row is None:
                raise LookupError(f"Salary {salary_id} not found")
            row.last_paid = day
            db.commit()


def get_ledger_store() -> LedgerStore:
    """Supabase when configured, otherwise the local database."""
    from kakeibo.supabase_client import is_supabase_configured

    if is_supabase_configured():
        return RestLedgerStore()
    from kakeibo.database import SessionLocal
    return SqlLedgerStore(SessionLocal)
