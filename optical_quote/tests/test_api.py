"""
Tests: HTTP API (FastAPI TestClient).

Run with:
    pytest optical_quote/tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from optical_quote.api import create_app
from optical_quote.api.routes import get_quote_service
from optical_quote.services.quote_service import QuoteService


@pytest.fixture
def client(clock):
    app = create_app()
    service = QuoteService(clock=clock)
    app.dependency_overrides[get_quote_service] = lambda: service
    return TestClient(app)


def _new_quote(client) -> str:
    resp = client.post(
        "/api/quotes",
        json={"location": "Downtown", "patient": {"customer_id": "C-9", "name": "Pat", "email": "pat@example.com"}},
    )
    assert resp.status_code == 201
    return resp.json()["quote_id"]


def _build_eyeglasses(client, qid: str) -> None:
    client.put(f"/api/quotes/{qid}/insurance", json={"carrier": "VSP", "plan_name": "VSP Choice"})
    resp = client.put(
        f"/api/quotes/{qid}/eyeglasses",
        json={"frame_id": "ray-ban-rb5154", "lens_type": "single-vision", "material": "plastic"},
    )
    assert resp.status_code == 200


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestQuoteRoutes:
    def test_create_and_fetch(self, client):
        qid = _new_quote(client)
        resp = client.get(f"/api/quotes/{qid}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "building"
        assert body["patient"]["name"] == "Pat"

    def test_list_filters_by_status(self, client):
        qid = _new_quote(client)
        assert [q["quote_id"] for q in client.get("/api/quotes", params={"status": "building"}).json()] == [qid]
        assert client.get("/api/quotes", params={"status": "draft"}).json() == []

    def test_unknown_quote_is_404(self, client):
        assert client.get("/api/quotes/Q-NOPE").status_code == 404
        assert client.get("/api/quotes/Q-NOPE/pricing").status_code == 404

    def test_unknown_product_is_422(self, client):
        qid = _new_quote(client)
        resp = client.put(f"/api/quotes/{qid}/exam", json={"service_ids": ["laser-surgery"]})
        assert resp.status_code == 422

    def test_live_pricing(self, client):
        qid = _new_quote(client)
        _build_eyeglasses(client, qid)
        body = client.get(f"/api/quotes/{qid}/pricing").json()
        assert body["display"]["layers"]["eyeglasses"]["insurance"] == "279.00"
        assert body["display"]["layers"]["eyeglasses"]["patient_responsibility"] == "0.00"
        assert body["warnings"] == []


class TestTransitionRoute:
    def test_invalid_transition_is_409(self, client):
        qid = _new_quote(client)
        resp = client.post(f"/api/quotes/{qid}/transition", json={"to": "signed"})
        assert resp.status_code == 409
        assert client.get(f"/api/quotes/{qid}").json()["status"] == "building"

    def test_transition_returns_status_and_breakdown(self, client):
        qid = _new_quote(client)
        _build_eyeglasses(client, qid)
        resp = client.post(f"/api/quotes/{qid}/transition", json={"to": "draft", "payload": {"actor": "opt-1"}})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "draft"
        assert body["pricing"]["display"]["grand_total"] == "0.00"
        assert body["warnings"] == []

    def test_cancel_requires_reason(self, client):
        qid = _new_quote(client)
        _build_eyeglasses(client, qid)
        client.post(f"/api/quotes/{qid}/transition", json={"to": "draft"})
        client.post(
            f"/api/quotes/{qid}/transition",
            json={"to": "presented", "payload": {"presentation_method": "tablet"}},
        )

        resp = client.post(f"/api/quotes/{qid}/transition", json={"to": "cancelled", "payload": {"reason": ""}})
        assert resp.status_code == 409
        resp = client.post(
            f"/api/quotes/{qid}/transition",
            json={"to": "cancelled", "payload": {"reason": "customer changed mind"}},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        history = client.get(f"/api/quotes/{qid}/history").json()
        assert [h["to_status"] for h in history] == ["draft", "presented", "cancelled"]

    def test_edit_after_presenting_is_409(self, client):
        qid = _new_quote(client)
        _build_eyeglasses(client, qid)
        client.post(f"/api/quotes/{qid}/transition", json={"to": "draft"})
        client.post(
            f"/api/quotes/{qid}/transition",
            json={"to": "presented", "payload": {"presentation_method": "printed"}},
        )
        resp = client.put(f"/api/quotes/{qid}/contacts", json={"product_id": "acuvue-daily"})
        assert resp.status_code == 409

    def test_stale_version_is_409(self, client):
        qid = _new_quote(client)
        _build_eyeglasses(client, qid)
        resp = client.post(
            f"/api/quotes/{qid}/transition",
            json={"to": "draft", "payload": {"expected_version": 0}},
        )
        assert resp.status_code == 409

    def test_sign_and_complete(self, client):
        qid = _new_quote(client)
        _build_eyeglasses(client, qid)
        client.post(f"/api/quotes/{qid}/transition", json={"to": "draft"})
        client.post(
            f"/api/quotes/{qid}/transition",
            json={"to": "presented", "payload": {"presentation_method": "in_person"}},
        )
        client.post(f"/api/quotes/{qid}/signatures", json={"slot": "customer", "signer": "Pat"})
        client.post(f"/api/quotes/{qid}/signatures", json={"slot": "staff", "signer": "Opt"})
        assert client.post(f"/api/quotes/{qid}/transition", json={"to": "signed"}).status_code == 200
        assert client.post(f"/api/quotes/{qid}/transition", json={"to": "completed"}).json()["status"] == "completed"

        eligibility = client.get(f"/api/quotes/{qid}/second-pair/eligibility").json()
        assert eligibility["eligible"]
        assert eligibility["discount_type"] == "SAME_DAY_50"


class TestReferenceRoutes:
    def test_lists_default_plans(self, client):
        plans = client.get("/api/reference/plans").json()
        assert {p["plan_name"] for p in plans} == {"VSP Choice", "EyeMed Insight", "Spectera Vision Plus"}

    def test_products_filtered_by_category(self, client):
        frames = client.get("/api/reference/products", params={"category": "frame"}).json()
        assert frames
        assert all(p["category"] == "frame" for p in frames)

    def test_price_change_reaches_new_quotes(self, client):
        resp = client.put("/api/reference/products/ray-ban-rb5154/price", json={"price_cents": 250_00})
        assert resp.status_code == 200
        assert resp.json()["price_cents"] == 250_00

        qid = _new_quote(client)
        client.put(
            f"/api/quotes/{qid}/eyeglasses",
            json={"frame_id": "ray-ban-rb5154", "lens_type": "single-vision", "material": "plastic"},
        )
        body = client.get(f"/api/quotes/{qid}/pricing").json()
        assert body["display"]["layers"]["eyeglasses"]["subtotal"] == "349.00"

    def test_unknown_product_price_is_404(self, client):
        resp = client.put("/api/reference/products/no-such-frame/price", json={"price_cents": 100})
        assert resp.status_code == 404

    def test_plan_save_needs_mongo(self, client):
        resp = client.put(
            "/api/reference/plans",
            json={"carrier": "VSP", "plan_name": "Lite", "benefits": {"frame": {"allowance": 75}}},
        )
        assert resp.status_code == 503

    def test_plan_with_unknown_carrier_is_422(self, client):
        resp = client.put(
            "/api/reference/plans",
            json={"carrier": "Davis", "plan_name": "Gold", "benefits": {"frame": {"allowance": 100}}},
        )
        assert resp.status_code == 422

    def test_plan_with_bad_frequency_is_422(self, client):
        resp = client.put(
            "/api/reference/plans",
            json={"carrier": "VSP", "plan_name": "Lite", "benefits": {"frame": {"frequency": "monthly"}}},
        )
        assert resp.status_code == 422
        assert "frame" in resp.json()["detail"]


class TestEventsRoute:
    def test_presented_event_replayed(self, client):
        qid = _new_quote(client)
        _build_eyeglasses(client, qid)
        client.post(f"/api/quotes/{qid}/transition", json={"to": "draft"})
        client.post(
            f"/api/quotes/{qid}/transition",
            json={"to": "presented", "payload": {"presentation_method": "email"}},
        )
        events = client.get(f"/api/quotes/{qid}/events").json()
        assert [e["event"] for e in events] == ["quote_presented"]
        assert events[0]["recipient_email"] == "pat@example.com"

    def test_unknown_quote_is_404(self, client):
        assert client.get("/api/quotes/Q-NOPE/events").status_code == 404
