import json

import httpx
import pytest

from kakeibo import config, supabase_rest
from kakeibo.supabase_rest import (
    SupabaseError, sb_delete, sb_insert, sb_select, sb_select_one, sb_update, sb_upsert,
)


class _Seen(list):
    """Recorded requests, plus a hook to swap the canned response."""


@pytest.fixture
def requests_seen(monkeypatch):
    """Route every helper call through a MockTransport driven by `responder`."""
    seen = _Seen()
    state = {"responder": lambda request: httpx.Response(200, json=[])}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return state["responder"](request)

    monkeypatch.setattr(config, "SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.setattr(config, "SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.setattr(supabase_rest, "_transport", httpx.MockTransport(handler))
    seen.respond = lambda fn: state.update(responder=fn)
    return seen


def test_select_builds_postgrest_query(requests_seen):
    sb_select(
        "transactions",
        filters={"user_id": "U1", "group_id": None},
        ranges={"date": ("2024-06-01", "2024-06-30")},
        order="date.desc",
    )

    request = requests_seen[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/transactions"
    params = request.url.params
    assert params["select"] == "*"
    assert params["user_id"] == "eq.U1"
    assert params["group_id"] == "is.null"
    assert params.get_list("date") == ["gte.2024-06-01", "lte.2024-06-30"]
    assert params["order"] == "date.desc"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["Authorization"] == "Bearer service-key"


def test_select_one_returns_first_row_or_none(requests_seen):
    requests_seen.respond(lambda r: httpx.Response(200, json=[{"id": 1}]))
    assert sb_select_one("budgets", {"id": 1}) == {"id": 1}
    assert requests_seen[-1].url.params["limit"] == "1"

    requests_seen.respond(lambda r: httpx.Response(200, json=[]))
    assert sb_select_one("budgets", {"id": 2}) is None


def test_insert_returns_created_row(requests_seen):
    requests_seen.respond(lambda r: httpx.Response(201, json=[{"id": 9, **json.loads(r.content)}]))
    row = sb_insert("salary_additions", {"user_id": "U1", "amount": 5, "date": "2024-06-25"})

    assert row == {"id": 9, "user_id": "U1", "amount": 5, "date": "2024-06-25"}
    assert requests_seen[0].method == "POST"
    assert requests_seen[0].headers["Prefer"] == "return=representation"


def test_upsert_merges_on_conflict(requests_seen):
    requests_seen.respond(lambda r: httpx.Response(201, json=[{"id": 1}]))
    sb_upsert("budgets", {"user_id": "U1", "month": "2024-06-01", "amount": 1}, on_conflict="user_id,month")

    request = requests_seen[0]
    assert request.url.params["on_conflict"] == "user_id,month"
    assert "resolution=merge-duplicates" in request.headers["Prefer"]


def test_update_and_delete_apply_filters(requests_seen):
    requests_seen.respond(lambda r: httpx.Response(200, json=[{"id": 3, "amount": 10}]))
    assert sb_update("budgets", {"id": 3}, {"amount": 10}) == {"id": 3, "amount": 10}
    assert requests_seen[0].method == "PATCH"
    assert requests_seen[0].url.params["id"] == "eq.3"

    requests_seen.respond(lambda r: httpx.Response(204))
    sb_delete("group_members", {"group_id": 4})
    assert requests_seen[1].method == "DELETE"
    assert requests_seen[1].url.params["group_id"] == "eq.4"


def test_delete_without_filter_is_refused(requests_seen):
    with pytest.raises(ValueError):
        sb_delete("transactions")
    assert requests_seen == []


def test_error_response_becomes_supabase_error(requests_seen):
    requests_seen.respond(lambda r: httpx.Response(
        406,
        json={"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned", "details": None},
    ))
    with pytest.raises(SupabaseError) as excinfo:
        sb_select("budgets")

    err = excinfo.value
    assert err.status_code == 406
    assert err.code == "PGRST116"
    assert err.is_not_found
    assert str(err).startswith("[PGRST116]")


def test_server_error_is_not_not_found(requests_seen):
    requests_seen.respond(lambda r: httpx.Response(503, text="upstream unavailable"))
    with pytest.raises(SupabaseError) as excinfo:
        sb_insert("transactions", {"amount": 1})
    assert excinfo.value.status_code == 503
    assert not excinfo.value.is_not_found
    assert "upstream unavailable" in str(excinfo.value)
