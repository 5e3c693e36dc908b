from datetime import date, datetime, timezone

import pytest

from kakeibo import config
from kakeibo.main import app
from kakeibo.models import Salary, SalaryAddition
from kakeibo.routes import cron_routes
from kakeibo.services.clock import FixedClock
from kakeibo.services.ledger_store import SqlLedgerStore
from kakeibo.services.salary_service import SalaryDistributionJob

from conftest import make_salary


class DownStore(SqlLedgerStore):
    def find_salaries_by_payday(self, paydays):
        raise ConnectionError("store unavailable")


@pytest.fixture
def use_store(client, session_factory):
    """Point the cron endpoints at a job over the given store class."""
    def _use(store_cls=SqlLedgerStore, now=datetime(2024, 6, 25, 0, 5, tzinfo=timezone.utc)):
        def job():
            return SalaryDistributionJob(store_cls(session_factory), clock=FixedClock(now), max_workers=2)
        app.dependency_overrides[cron_routes.get_salary_job] = job
    return _use


def _salary(session_factory, salary_id):
    with session_factory() as db:
        return db.get(Salary, salary_id)


def test_daily_run_reports_summary(client, use_store, seed, family, session_factory):
    seed(make_salary("U1", 300000, 25, id=1), make_salary("U2", 50000, 25, id=2), make_salary("U3", 1, 10, id=3))
    use_store()

    resp = client.get("/api/cron/salary")

    assert resp.status_code == 200
    body = resp.json()
    assert body["date"] == "2024-06-25"
    assert (body["processed"], body["succeeded"], body["failed"], body["skipped"]) == (2, 2, 0, 0)
    assert {d["salary_id"] for d in body["details"]} == {1, 2}
    assert all(d["status"] == "success" for d in body["details"])
    # scheduled runs leave last_paid alone
    assert _salary(session_factory, 1).last_paid is None


def test_daily_run_with_nothing_due(client, use_store):
    use_store()

    body = client.get("/api/cron/salary").json()

    assert body["message"] == "No salaries due"
    assert body["processed"] == 0
    assert body["details"] == []


def test_second_run_same_day_is_skipped(client, use_store, seed, family, session_factory):
    seed(make_salary("U1", 1000, 25, id=1))
    use_store()

    client.get("/api/cron/salary")
    body = client.get("/api/cron/salary").json()

    assert body["skipped"] == 1
    with session_factory() as db:
        assert db.query(SalaryAddition).count() == 1


def test_manual_run_for_date(client, use_store, seed, family, session_factory):
    seed(make_salary("U1", 300000, 10, id=1))
    use_store()

    resp = client.get("/api/cron/salary/test", params={"date": "2024-07-10T08:30:00Z"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["testDate"] == "2024-07-10"
    assert [d["salary_id"] for d in body["processedSalaries"]] == [1]
    assert _salary(session_factory, 1).last_paid == date(2024, 7, 10)


def test_manual_run_rejects_bad_date(client, use_store):
    use_store()
    resp = client.get("/api/cron/salary/test", params={"date": "next tuesday"})
    assert resp.status_code == 400


def test_manual_run_requires_date(client, use_store):
    use_store()
    assert client.get("/api/cron/salary/test").status_code == 422


def test_lookup_failure_is_500(client, use_store):
    use_store(DownStore)

    assert client.get("/api/cron/salary").status_code == 500
    resp = client.get("/api/cron/salary/test", params={"date": "2024-06-25"})
    assert resp.status_code == 500
    assert "store unavailable" in resp.json()["detail"]


def test_cron_secret_is_enforced_when_set(client, use_store, monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")
    use_store()

    assert client.get("/api/cron/salary").status_code == 401
    assert client.get("/api/cron/salary", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/api/cron/salary", headers={"Authorization": "Bearer s3cret"}).status_code == 200
