def test_ready_reports_backends(client):
    res = client.get("/api/ready")
    assert res.status_code == 200
    assert res.json() == {"ok": True, "db_ok": True, "redis_ok": True}
