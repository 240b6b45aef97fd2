"""Unit tests for the status API."""

import inspect

import pytest
from fastapi.testclient import TestClient

from conftest import make_event
from mailpulse.api.main import create_app
from mailpulse.api.routes import ready


@pytest.fixture
def client(pipeline):
    with TestClient(create_app(pipeline=pipeline)) as test_client:
        yield test_client


class TestStatusApi:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        body = client.get("/ready").json()
        assert body["status"] == "ready"
        assert body["services"] == {"store": "healthy"}

    def test_ready_runs_off_the_event_loop(self):
        # store.ping blocks; sync handlers run in the threadpool
        assert not inspect.iscoroutinefunction(ready)

    def test_ready_reports_degraded_store(self, client, pipeline, monkeypatch):
        monkeypatch.setattr(pipeline.accumulator.store, "ping", lambda: False)
        body = client.get("/ready").json()
        assert body["status"] == "degraded"
        assert body["services"] == {"store": "unhealthy"}

    def test_scope_status(self, client, pipeline):
        pipeline.use_case.execute(make_event())

        body = client.get("/scopes/global").json()

        assert body["total"] == 5
        assert body["threshold"] == 10
        assert body["locked"] is False
        assert body["pending_events"] == 1

    def test_scope_status_reports_lock(self, client, pipeline):
        pipeline.use_case.execute(make_event())
        pipeline.use_case.execute(make_event())

        body = client.get("/scopes/global").json()

        assert body["total"] == 0
        assert body["locked"] is True
        assert body["lock_ttl_seconds"] == 60

    def test_reset(self, client, pipeline):
        pipeline.use_case.execute(make_event())

        response = client.post("/scopes/global/reset")

        assert response.status_code == 200
        assert response.json() == {"scope": "global", "previous_total": 5}
        assert pipeline.accumulator.get("global") == 0

    def test_uninitialized_pipeline_is_503(self):
        app = create_app()
        # no lifespan: state never populated
        response = TestClient(app).get("/scopes/global")
        assert response.status_code == 503
