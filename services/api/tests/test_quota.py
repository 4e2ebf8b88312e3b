from chefsync.sync.quota import LimitCheck, PlanQuotaChecker, ensure_capacity
from chefsync.errors import QuotaExceeded

import pytest


def _create(client, headers, entity, data):
    return client.post(f"/api/sync/{entity}", json={"operation": "create", "data": data}, headers=headers)


def _fill_cookware(client, headers, n):
    items = [{"id": f"c{i}", "name": f"Pan {i}"} for i in range(n)]
    res = client.post("/api/sync", json={"data": {"cookware": items}}, headers=headers)
    assert res.status_code == 200, res.text


def test_cookware_create_blocked_at_limit(client, auth_headers, quota_limits):
    quota_limits(cookware=50)
    _fill_cookware(client, auth_headers, 50)

    res = _create(client, auth_headers, "cookware", {"id": "c50", "name": "One too many"})
    assert res.status_code == 403
    body = res.json()
    assert body["code"] == "COOKWARE_LIMIT_REACHED"
    assert body["details"]["limit"] == 50
    assert body["details"]["count"] == 50
    assert body["details"]["remaining"] == 0


def test_existing_item_can_still_be_written_at_limit(client, auth_headers, quota_limits):
    quota_limits(cookware=2)
    _fill_cookware(client, auth_headers, 2)

    assert _create(client, auth_headers, "cookware", {"id": "c0", "name": "Renamed"}).status_code == 200
    res = client.put("/api/sync/cookware", json={"data": {"id": "c1", "name": "Also renamed"}}, headers=auth_headers)
    assert res.status_code == 200


def test_update_of_missing_item_is_quota_checked(client, auth_headers, quota_limits):
    quota_limits(inventory=1)
    _create(client, auth_headers, "inventory", {"id": "a1", "name": "Oats"})

    res = client.put("/api/sync/inventory", json={"data": {"id": "a2", "name": "Rice"}}, headers=auth_headers)
    assert res.status_code == 403
    assert res.json()["code"] == "PANTRY_LIMIT_REACHED"


def test_soft_deleted_inventory_does_not_count(client, auth_headers, quota_limits):
    quota_limits(inventory=1)
    _create(client, auth_headers, "inventory", {"id": "a1", "name": "Oats", "deletedAt": "2026-01-01T00:00:00Z"})

    assert _create(client, auth_headers, "inventory", {"id": "a2", "name": "Rice"}).status_code == 200


def test_ungated_collections_ignore_limits(client, auth_headers, quota_limits):
    quota_limits(cookware=0, inventory=0)
    assert _create(client, auth_headers, "recipes", {"id": "r1", "title": "Soup"}).status_code == 200


def test_bulk_sync_over_limit_rejected(client, auth_headers, quota_limits):
    quota_limits(cookware=2)
    items = [{"id": f"c{i}", "name": "Pan"} for i in range(3)]

    res = client.post("/api/sync", json={"data": {"cookware": items}}, headers=auth_headers)
    assert res.status_code == 403
    body = res.json()
    assert body["code"] == "COOKWARE_LIMIT_REACHED"
    assert body["details"]["count"] == 3
    assert body["details"]["limit"] == 2


def test_unbounded_by_default(client, auth_headers):
    _fill_cookware(client, auth_headers, 60)
    assert _create(client, auth_headers, "cookware", {"id": "extra", "name": "Wok"}).status_code == 200


class _FixedChecker:
    def __init__(self, check):
        self.check = check

    def check_limit(self, user_id, section):
        return self.check


def test_ensure_capacity_reports_unlimited():
    check = ensure_capacity(_FixedChecker(LimitCheck(None, None, 500)), "u1", "cookware", "COOKWARE_LIMIT_REACHED")
    assert check.details() == {"limit": "unlimited", "count": 500, "remaining": "unlimited"}


def test_ensure_capacity_raises_when_full():
    with pytest.raises(QuotaExceeded) as exc:
        ensure_capacity(_FixedChecker(LimitCheck(5, 0, 5)), "u1", "inventory", "PANTRY_LIMIT_REACHED")
    assert exc.value.status_code == 403
    assert exc.value.code == "PANTRY_LIMIT_REACHED"


def test_plan_checker_counts_rows(db_session):
    checker = PlanQuotaChecker(db_session, limits={"cookware": 10})
    check = checker.check_limit("nobody", "cookware")
    assert check == LimitCheck(limit=10, remaining=10, count=0)
    assert checker.check_limit("nobody", "recipes").limit is None
