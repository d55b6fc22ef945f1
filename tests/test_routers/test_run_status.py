"""Integration tests for GET /runs."""

import pytest


@pytest.mark.asyncio
async def test_run_is_listed_after_a_trigger(client, auth_headers):
    trigger = await client.post("/cron/apply-pricing", headers=auth_headers)
    run_id = trigger.json()["run_id"]

    response = await client.get(f"/runs/{run_id}", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["run_id"] == run_id
    assert body["kind"] == "pricing"
    assert body["status"] == "completed"
    assert body["finished_at"] is not None
    assert body["result"]["summary"]["hotels_processed"] == 0


@pytest.mark.asyncio
async def test_list_runs_filters_by_kind(client, auth_headers):
    await client.post("/cron/apply-pricing", headers=auth_headers)
    await client.post("/cron/sync-channels", headers=auth_headers)

    everything = await client.get("/runs", headers=auth_headers)
    syncs = await client.get("/runs", params={"kind": "sync"}, headers=auth_headers)

    assert len(everything.json()) == 2
    (sync_run,) = syncs.json()
    assert sync_run["kind"] == "sync"
    assert "total_connections" in sync_run["result"]["summary"]


@pytest.mark.asyncio
async def test_unknown_run_is_404(client, auth_headers):
    response = await client.get("/runs/does-not-exist", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Run not found"


@pytest.mark.asyncio
async def test_runs_require_the_cron_secret(client):
    response = await client.get("/runs")

    assert response.status_code == 401
