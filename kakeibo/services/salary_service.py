"""
salary_service.py: Payday salary distribution
Finds every salary rule due on the target day and, per rule, adds the salary
to the user's monthly budget, to each of the user's group budgets, to the
transaction ledger and to the salary_additions audit trail. Rules are isolated
from each other; inside a rule, groups are isolated from each other.
"""

import calendar
import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from kakeibo import config
from kakeibo.services.clock import Clock, SystemClock
from kakeibo.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class SalaryRunError(Exception):
    """The run could not start: the salary rules themselves could not be read."""


class RuleStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"  # salary booked, some group or follow-up write failed
    FAILED = "failed"
    SKIPPED = "skipped"  # already disbursed for this date


@dataclass(frozen=True)
class GroupError:
    group_id: int
    error: str


@dataclass(frozen=True)
class RuleOutcome:
    salary_id: int | None
    user_id: str | None
    amount: int | None
    status: RuleStatus
    error: str | None = None
    group_errors: tuple[GroupError, ...] = ()

    def to_dict(self) -> dict:
        out = {"status": self.status.value, "user_id": self.user_id, "salary_id": self.salary_id}
        if self.error:
            out["error"] = self.error
        if self.group_errors:
            out["group_errors"] = [{"group_id": g.group_id, "error": g.error} for g in self.group_errors]
        return out


@dataclass(frozen=True)
class SalaryRunResult:
    target_date: date
    outcomes: tuple[RuleOutcome, ...] = field(default_factory=tuple)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status == RuleStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status in (RuleStatus.FAILED, RuleStatus.PARTIAL))

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == RuleStatus.SKIPPED)

    @property
    def message(self) -> str:
        if not self.outcomes:
            return "No salaries due"
        msg = f"Salary distribution finished: {self.succeeded} succeeded, {self.failed} failed"
        if self.skipped:
            msg += f", {self.skipped} already paid"
        return msg

    def details(self) -> list[dict]:
        return [o.to_dict() for o in self.outcomes]

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "date": self.target_date.isoformat(),
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "details": self.details(),
        }


def month_start(day: date) -> date:
    return day.replace(day=1)


def due_paydays(day: date, clamp_month_end: bool = False) -> list[int]:
    """
    Paydays processed on `day`. Strictly the day of month, unless clamping is
    on and `day` is the last day of a short month, in which case the paydays
    that do not exist this month are included too (payday 31 pays on Feb 28).
    """
    last = calendar.monthrange(day.year, day.month)[1]
    if clamp_month_end and day.day == last:
        return list(range(day.day, 32))
    return [day.day]


class _KeyedLocks:
    """One lock per key, created on demand."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict = {}

    def __call__(self, key) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class SalaryDistributionJob:
    """
    Contract:
        run() never raises for per-rule problems; they come back as
        RuleOutcome entries. Only a failed rule lookup raises SalaryRunError.
        There is no transaction across the writes of one rule: a failure after
        the budget update leaves the budget incremented.
    """

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock | None = None,
        max_workers: int = config.SALARY_MAX_WORKERS,
        category_id: int = config.SALARY_CATEGORY_ID,
        description: str = config.SALARY_DESCRIPTION,
        clamp_month_end: bool = config.SALARY_CLAMP_MONTH_END,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.max_workers = max(1, max_workers)
        self.category_id = category_id
        self.description = description
        self.clamp_month_end = clamp_month_end
        self._user_locks = _KeyedLocks()
        self._group_locks = _KeyedLocks()

    # ------------------------------------------------------------------
    def run(self, target_date: date | datetime | None = None, mark_paid: bool = False) -> SalaryRunResult:
        """Distribute every salary due on target_date (default: today)."""
        if target_date is None:
            target = self.clock.today()
        elif isinstance(target_date, datetime):
            target = target_date.date()
        else:
            target = target_date
        paydays = due_paydays(target, self.clamp_month_end)

        try:
            rules = self.store.find_salaries_by_payday(paydays)
        except Exception as e:
            logger.exception(f"Salary lookup failed for {target.isoformat()}")
            raise SalaryRunError(f"Failed to fetch salaries: {e}") from e

        if not rules:
            logger.info(f"No salaries due on {target.isoformat()} (paydays {paydays})")
            return SalaryRunResult(target_date=target)

        # user_id -> [(position in rules, rule)], each user's rules stay in lookup order
        batches: dict = {}
        for position, rule in enumerate(rules):
            batches.setdefault(rule.get("user_id"), []).append((position, rule))

        logger.info(f"Distributing {len(rules)} salaries for {len(batches)} users on {target.isoformat()}")
        workers = min(self.max_workers, len(batches))
        if workers == 1:
            done = [self._process_user(user_id, batch, target, mark_paid) for user_id, batch in batches.items()]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="salary") as pool:
                futures = [pool.submit(self._process_user, user_id, batch, target, mark_paid)
                           for user_id, batch in batches.items()]
                done = [f.result() for f in futures]

        ordered = sorted((pair for chunk in done for pair in chunk), key=lambda pair: pair[0])
        result = SalaryRunResult(target_date=target, outcomes=tuple(outcome for _, outcome in ordered))
        logger.info(result.message)
        return result

    # ------------------------------------------------------------------
    @staticmethod
    def _failed(rule: dict, step: str, error) -> RuleOutcome:
        salary_id, user_id = rule.get("id"), rule.get("user_id")
        logger.error(f"Salary {salary_id} for user {user_id} failed at {step}: {error}")
        return RuleOutcome(salary_id, user_id, rule.get("amount"), RuleStatus.FAILED, error=f"{step}: {error}")

    def _process_user(self, user_id, batch: list, target: date, mark_paid: bool) -> list[tuple[int, RuleOutcome]]:
        """
        Run one user's due rules in order. Each audit row already recorded for
        (user, target) covers one rule of the same amount, so a rerun skips
        exactly the rules that were paid and pays the rest.
        """
        if not user_id:
            return [(position, self._failed(rule, "validate", "salary has no user_id")) for position, rule in batch]

        with self._user_locks(user_id):
            try:
                recorded = Counter(a.get("amount") for a in self.store.list_salary_additions(user_id, target))
            except Exception as e:
                return [(position, self._failed(rule, "salary_additions lookup", e)) for position, rule in batch]

            outcomes = []
            for position, rule in batch:
                amount = rule.get("amount")
                if recorded[amount] > 0:
                    recorded[amount] -= 1
                    logger.info(f"Salary {rule.get('id')} for user {user_id} already added on "
                                f"{target.isoformat()}, skipping")
                    outcome = RuleOutcome(rule.get("id"), user_id, amount, RuleStatus.SKIPPED,
                                          error="already paid for this date")
                else:
                    outcome = self._process_rule(rule, target, mark_paid)
                outcomes.append((position, outcome))
            return outcomes

    def _process_rule(self, rule: dict, target: date, mark_paid: bool) -> RuleOutcome:
        salary_id = rule.get("id")
        user_id = rule.get("user_id")
        amount = rule.get("amount")

        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            return self._failed(rule, "validate", f"invalid amount {amount!r}")

        month = month_start(target)

        # a. current personal budget; absent means start from zero
        try:
            budget = self.store.get_budget(user_id, month)
        except Exception as e:
            return self._failed(rule, "budget fetch", e)

        # b. accumulate
        try:
            base = (budget or {}).get("amount") or 0
            self.store.save_budget(user_id, month, base + amount, budget_id=(budget or {}).get("id"))
        except Exception as e:
            return self._failed(rule, "budget upsert", e)

        # c. every group the user belongs to
        try:
            group_ids = self.store.list_group_ids(user_id)
        except Exception as e:
            return self._failed(rule, "group members fetch", e)
        group_errors = self._fan_out_groups(user_id, group_ids, month, amount)

        # d. ledger entry
        try:
            self.store.insert_transaction({
                "user_id": user_id,
                "group_id": None,
                "type": "income",
                "amount": amount,
                "category_id": self.category_id,
                "date": target.isoformat(),
                "description": self.description,
            })
        except Exception as e:
            return self._failed(rule, "transaction insert", e)

        # e. audit trail
        try:
            self.store.insert_salary_addition(user_id, amount, target)
        except Exception as e:
            return self._failed(rule, "salary_additions insert", e)

        # f. manual runs record the payment on the rule itself
        followup_error = None
        if mark_paid and salary_id is not None:
            try:
                self.store.mark_salary_paid(salary_id, target)
            except Exception as e:
                logger.error(f"Could not set last_paid on salary {salary_id}: {e}")
                followup_error = f"last_paid update: {e}"

        if group_errors or followup_error:
            problems = []
            if group_errors:
                problems.append("group budget update failed for group(s) "
                                + ", ".join(str(g.group_id) for g in group_errors))
            if followup_error:
                problems.append(followup_error)
            return RuleOutcome(salary_id, user_id, amount, RuleStatus.PARTIAL,
                               error="; ".join(problems), group_errors=tuple(group_errors))

        return RuleOutcome(salary_id, user_id, amount, RuleStatus.SUCCESS)

    # ------------------------------------------------------------------
    def _fan_out_groups(self, user_id: str, group_ids: list[int], month: date, amount: int) -> list[GroupError]:
        errors = []
        for group_id in group_ids:
            try:
                with self._group_locks(group_id):
                    total = self.store.increment_group_budget(group_id, month, amount)
                logger.debug(f"Group {group_id} budget for {month.isoformat()} is now {total}")
            except Exception as e:
                logger.error(f"Error updating group budget for group {group_id} (user {user_id}): {e}")
                errors.append(GroupError(group_id=group_id, error=str(e)))
        return errors
