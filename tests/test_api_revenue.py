import importlib
import json
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from agency_crm.store.db import build_engine, get_db, init_db


@pytest.fixture
def revenue_client(tmp_path, monkeypatch):
    ledger_path = tmp_path / "ledger.jsonl"
    monkeypatch.setenv("HIST_LEDGER", str(ledger_path))

    from agency_crm.api import app as app_module

    importlib.reload(app_module)

    engine = build_engine(f"sqlite:///{tmp_path / 'crm.db'}")
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app_module.app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app_module.app), ledger_path
    app_module.app.dependency_overrides.clear()
    engine.dispose()


def test_target_progress_and_forecast(revenue_client):
    client, ledger_path = revenue_client
    today = date.today()

    sale = client.post(
        "/sales",
        json={"amount": 37500, "status": "ACTIVE", "sale_date": today.isoformat()},
    )
    assert sale.status_code == 201
    assert sale.json()["status"] == "ACTIVE"

    offer = client.post("/sales", json={"amount": 9999, "status": "OFFER"})
    assert offer.status_code == 201

    target = client.put(
        "/revenue/targets",
        json={"month": today.month, "year": today.year, "amount": 50000},
    )
    assert target.status_code == 200

    progress = client.get(
        "/revenue/targets/progress", params={"month": today.month, "year": today.year}
    )
    assert progress.status_code == 200
    assert progress.json() == {
        "month": today.month,
        "year": today.year,
        "target": 50000.0,
        "achieved": 37500.0,
        "percentage": 75,
    }

    forecast = client.get("/revenue/forecast")
    assert forecast.status_code == 200
    assert forecast.json() == {
        "forecasted_amount": 37500.0,
        "confidence": "MEDIUM",
        "growth_rate": 0,
    }

    event = json.loads(ledger_path.read_text(encoding="utf-8").splitlines()[-1])
    assert event["kind"] == "forecast"
    assert event["confidence"] == "MEDIUM"


def test_target_upsert_is_idempotent_per_scope(revenue_client):
    client, _ledger_path = revenue_client
    body = {"month": 3, "year": 2026, "amount": 50000, "branch_id": "b1"}

    first = client.put("/revenue/targets", json=body)
    second = client.put("/revenue/targets", json={**body, "amount": 75000})

    assert first.json()["id"] == second.json()["id"]
    assert second.json()["amount"] == 75000.0

    progress = client.get(
        "/revenue/targets/progress", params={"month": 3, "year": 2026, "branch_id": "b1"}
    )
    assert progress.json()["target"] == 75000.0
    assert progress.json()["percentage"] == 0


def test_missing_target_reports_zero_percent(revenue_client):
    client, _ledger_path = revenue_client
    client.post("/sales", json={"amount": 500, "status": "ACTIVE", "sale_date": "2026-02-14"})

    progress = client.get("/revenue/targets/progress", params={"month": 2, "year": 2026})

    assert progress.json()["achieved"] == 500.0
    assert progress.json()["percentage"] == 0


def test_revenue_trends(revenue_client):
    client, _ledger_path = revenue_client
    today = date.today()
    client.post(
        "/sales", json={"amount": 1200, "status": "ACTIVE", "sale_date": today.isoformat()}
    )

    response = client.get("/revenue/trends")

    assert response.status_code == 200
    trends = response.json()
    assert len(trends) == today.month
    assert trends[-1] == {"month": today.strftime("%Y-%m"), "revenue": 1200.0}


def test_invalid_sale_and_target_payloads(revenue_client):
    client, _ledger_path = revenue_client

    assert client.post("/sales", json={"amount": 10, "status": "WON"}).status_code == 422
    assert client.post("/sales", json={"amount": -1}).status_code == 422
    assert (
        client.put("/revenue/targets", json={"month": 13, "year": 2026, "amount": 1}).status_code
        == 422
    )


def test_customer_profitability_segments(revenue_client):
    client, _ledger_path = revenue_client
    for index, amount in enumerate([5000, 4000, 3000, 2000, 1000]):
        customer = client.post("/customers", json={"name": f"Müşteri {index}"}).json()
        response = client.post(
            "/sales", json={"amount": amount, "status": "ACTIVE", "customer_id": customer["id"]}
        )
        assert response.status_code == 201
        assert response.json()["customer_id"] == customer["id"]

    response = client.get("/revenue/profitability")

    assert response.status_code == 200
    rows = response.json()
    assert [row["total_revenue"] for row in rows] == [5000.0, 4000.0, 3000.0, 2000.0, 1000.0]
    assert [row["segment"] for row in rows] == ["Gold", "Silver", "Bronze", "Bronze", "Bronze"]
    assert rows[0]["average_order_value"] == 5000.0
    assert len(client.get("/revenue/profitability", params={"limit": 2}).json()) == 2


def test_churn_risks_endpoint(revenue_client):
    client, _ledger_path = revenue_client
    today = date.today()

    quiet = client.post(
        "/sales",
        json={
            "amount": 1500,
            "status": "ACTIVE",
            "end_date": (today + timedelta(days=12)).isoformat(),
            "customer_name": "AYŞE KAYA",
        },
    ).json()
    busy = client.post(
        "/sales",
        json={
            "amount": 900,
            "status": "ACTIVE",
            "end_date": (today + timedelta(days=3)).isoformat(),
        },
    ).json()
    client.post(
        "/sales",
        json={
            "amount": 700,
            "status": "ACTIVE",
            "end_date": (today + timedelta(days=45)).isoformat(),
        },
    )
    task = client.post("/tasks", json={"sale_id": busy["id"], "title": "Yenileme araması"})
    assert task.status_code == 201

    response = client.get("/revenue/churn")

    assert response.status_code == 200
    risks = response.json()
    assert [risk["id"] for risk in risks] == [quiet["id"]]
    assert risks[0]["days_left"] == 12
    assert risks[0]["risk_level"] == "HIGH"
    assert risks[0]["customer_name"] == "AYŞE KAYA"
    assert len(client.get("/revenue/churn", params={"days": 60}).json()) == 2


def test_unknown_references_return_404(revenue_client):
    client, _ledger_path = revenue_client

    assert client.post("/tasks", json={"sale_id": "missing", "title": "Ara"}).status_code == 404
    assert (
        client.post("/sales", json={"amount": 10, "customer_id": "missing"}).status_code == 404
    )
