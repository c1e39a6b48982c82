import base64
import json

import httpx
import pytest

from conftest import bearer_header
from core.card import PaymeCardClient, get_card_client
from crud.receipt import get_receipt_by_id, get_receipts_by_user
from main import app


@pytest.fixture
def payme_api():
    """Records calls to the Payme card API and answers from ``responses``

    Values are ``(status, json)`` pairs or a ready ``httpx.Response``.
    """
    calls = []
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append({"headers": request.headers, "body": body})
        answer = responses.get(body["method"], (200, {"result": {}}))
        if isinstance(answer, httpx.Response):
            return answer
        status_code, payload = answer
        return httpx.Response(status_code, json=payload)

    client = PaymeCardClient(
        merchant_id="test-merchant",
        merchant_key="test-key",
        api_url="https://checkout.test.paycom.uz/api",
        transport=httpx.MockTransport(handler),
    )
    app.dependency_overrides[get_card_client] = lambda: client
    yield calls, responses
    app.dependency_overrides.pop(get_card_client, None)


# ---------------- Checkout ----------------

def test_checkout_requires_authentication(client):
    response = client.post("/api/payment/checkout", json={"product_id": "p1", "amount": 1000})

    assert response.status_code in (401, 403)
    assert response.json()["success"] is False


def test_checkout_rejects_unknown_user(client):
    response = client.post(
        "/api/payment/checkout", json={"product_id": "p1", "amount": 1000}, headers=bearer_header("ghost")
    )

    assert response.status_code == 401


def test_checkout_returns_hosted_payment_url(client):
    response = client.post(
        "/api/payment/checkout", json={"product_id": "p1", "amount": 1000}, headers=bearer_header("u1")
    )

    assert response.status_code == 200
    url = response.json()["url"]
    prefix, encoded = url.rsplit("/", 1)
    assert prefix == "https://checkout.paycom.uz"
    assert base64.b64decode(encoded).decode() == "m=test-merchant;ac.user_id=u1;ac.product_id=p1;a=100000"


def test_checkout_validates_amount(client):
    response = client.post(
        "/api/payment/checkout", json={"product_id": "p1", "amount": 0}, headers=bearer_header("u1")
    )

    assert response.status_code == 422


# ---------------- Card proxy ----------------

def test_card_methods_authenticate_with_merchant_id(client, payme_api):
    calls, responses = payme_api
    responses["cards.create"] = (200, {"result": {"card": {"number": "860006******6311", "token": "tok"}}})

    response = client.post(
        "/api/payment/card",
        json={"method": "cards.create", "params": {"card": {"number": "8600069195406311", "expire": "0399"}}},
        headers=bearer_header("u1"),
    )

    assert response.status_code == 200
    assert response.json()["result"]["card"]["token"] == "tok"
    assert calls[0]["headers"]["x-auth"] == "test-merchant"
    assert calls[0]["body"]["method"] == "cards.create"
    assert calls[0]["body"]["params"]["card"]["expire"] == "0399"


def test_receipt_pay_is_persisted_for_user(client, payme_api, seeded):
    calls, responses = payme_api
    receipt = {"_id": "rcpt-1", "state": 4, "amount": 100000, "account": [{"name": "product_id", "value": "p1"}]}
    responses["receipts.pay"] = (200, {"result": {"receipt": receipt}})

    response = client.post(
        "/api/payment/card",
        json={"method": "receipts.pay", "params": {"id": "rcpt-1", "token": "tok"}},
        headers=bearer_header("u1"),
    )

    assert response.status_code == 200
    assert calls[0]["headers"]["x-auth"] == "test-merchant:test-key"
    stored = get_receipt_by_id(seeded, "rcpt-1")
    assert stored.user_id == "u1"
    assert stored.state == 4
    assert stored.order_id == "p1"
    assert [r.id for r in get_receipts_by_user(seeded, "u1")] == ["rcpt-1"]


def test_provider_error_is_passed_through_without_persisting(client, payme_api, seeded):
    _, responses = payme_api
    responses["receipts.pay"] = (200, {"error": {"code": -31630, "message": "Insufficient funds"}})

    response = client.post(
        "/api/payment/card",
        json={"method": "receipts.pay", "params": {"id": "rcpt-2", "token": "tok"}},
        headers=bearer_header("u1"),
    )

    assert response.status_code == 200
    assert response.json()["error"]["code"] == -31630
    assert get_receipts_by_user(seeded, "u1") == []


def test_unsupported_card_method(client, payme_api):
    calls, _ = payme_api

    response = client.post(
        "/api/payment/card", json={"method": "receipts.check", "params": {}}, headers=bearer_header("u1")
    )

    assert response.status_code == 400
    assert calls == []


def test_provider_outage_returns_bad_gateway(client, payme_api):
    _, responses = payme_api
    responses["cards.verify"] = (500, {"message": "boom"})

    response = client.post(
        "/api/payment/card",
        json={"method": "cards.verify", "params": {"token": "tok", "code": "666666"}},
        headers=bearer_header("u1"),
    )

    assert response.status_code == 502
    assert response.json()["success"] is False


def test_non_json_provider_body_returns_bad_gateway(client, payme_api, seeded):
    _, responses = payme_api
    responses["receipts.pay"] = httpx.Response(200, text="<html>maintenance</html>")

    response = client.post(
        "/api/payment/card",
        json={"method": "receipts.pay", "params": {"id": "rcpt-3", "token": "tok"}},
        headers=bearer_header("u1"),
    )

    assert response.status_code == 502
    assert response.json() == {"success": False, "message": "Payme API error"}
    assert get_receipts_by_user(seeded, "u1") == []
