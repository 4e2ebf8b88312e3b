from chefsync.sync.cursor import decode_cursor


def _seed(client, headers, n, section="recipes"):
    items = [{"id": f"r{i}", "title": f"Recipe {i}"} for i in range(n)]
    res = client.post("/api/sync", json={"data": {section: items}}, headers=headers)
    assert res.status_code == 200, res.text


def _walk(client, headers, entity, limit, on_page=None):
    seen, cursor, pages = [], None, 0
    while True:
        params = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        body = client.get(f"/api/sync/{entity}", params=params, headers=headers).json()
        pages += 1
        seen.extend(i["id"] for i in body["items"])
        if on_page:
            on_page(pages)
        cursor = body.get("nextCursor")
        if not cursor:
            return seen, pages


def test_pages_cover_every_item_once(client, auth_headers):
    # bulk sync stamps every row with the same time, so ordering falls to the id tiebreak
    _seed(client, auth_headers, 7)

    seen, pages = _walk(client, auth_headers, "recipes", limit=3)
    assert pages == 3
    assert sorted(seen) == sorted(f"r{i}" for i in range(7))
    assert len(seen) == len(set(seen))


def test_last_page_has_no_cursor(client, auth_headers):
    _seed(client, auth_headers, 2)
    body = client.get("/api/sync/recipes", params={"limit": 2}, headers=auth_headers).json()
    assert len(body["items"]) == 2
    assert body.get("nextCursor") is None


def test_cursor_names_last_row_of_page(client, auth_headers):
    _seed(client, auth_headers, 4)
    body = client.get("/api/sync/recipes", params={"limit": 2}, headers=auth_headers).json()
    cursor = decode_cursor(body["nextCursor"])
    assert cursor.updated_at.isoformat() == body["items"][-1]["updatedAt"]


def test_writes_during_enumeration_are_not_lost(client, auth_headers):
    _seed(client, auth_headers, 6)

    def touch_first_item(page):
        if page == 1:
            client.put("/api/sync/recipes", json={"data": {"id": "r0", "title": "Edited"}}, headers=auth_headers)
            client.post("/api/sync/recipes", json={"operation": "create", "data": {"id": "new", "title": "New"}},
                        headers=auth_headers)

    seen, _ = _walk(client, auth_headers, "recipes", limit=2, on_page=touch_first_item)
    assert set(seen) >= {f"r{i}" for i in range(6)} | {"new"}


def test_default_and_max_limits(client, auth_headers, monkeypatch):
    from chefsync.settings import settings
    monkeypatch.setattr(settings, "sync_page_default", 2)
    monkeypatch.setattr(settings, "sync_page_max", 3)
    _seed(client, auth_headers, 5)

    assert len(client.get("/api/sync/recipes", headers=auth_headers).json()["items"]) == 2
    assert len(client.get("/api/sync/recipes", params={"limit": 500}, headers=auth_headers).json()["items"]) == 3


def test_invalid_cursor_is_400(client, auth_headers):
    res = client.get("/api/sync/recipes", params={"cursor": "garbage!"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_CURSOR"


def test_soft_deleted_inventory_skipped_across_pages(client, auth_headers):
    items = [{"id": f"i{i}", "name": f"Item {i}"} for i in range(4)]
    items[1]["deletedAt"] = "2026-01-01T00:00:00Z"
    client.post("/api/sync", json={"data": {"inventory": items}}, headers=auth_headers)

    seen, _ = _walk(client, auth_headers, "inventory", limit=2)
    assert sorted(seen) == ["i0", "i2", "i3"]
