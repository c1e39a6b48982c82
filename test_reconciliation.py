import json

import httpx

from core.card import PaymeCardClient
from core.reconciliation import ReceiptReconciler
from crud.receipt import get_receipt_by_id, save_receipt
from db.session import SessionLocal


def _client(states):
    """Card client answering receipts.check from a receipt id -> state map"""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        receipt_id = body["params"]["id"]
        if receipt_id not in states:
            return httpx.Response(500, json={})
        return httpx.Response(200, json={"result": {"state": states[receipt_id]}})

    return PaymeCardClient(
        merchant_id="test-merchant",
        merchant_key="test-key",
        api_url="https://checkout.test.paycom.uz/api",
        transport=httpx.MockTransport(handler),
    )


def test_tick_updates_unsettled_receipts(seeded):
    save_receipt(seeded, "u1", {"_id": "r-open", "state": 0, "amount": 100000})
    save_receipt(seeded, "u1", {"_id": "r-paid", "state": 4, "amount": 100000})
    save_receipt(seeded, "u2", {"_id": "r-broken", "state": 0, "amount": 250000})

    reconciler = ReceiptReconciler(
        client=_client({"r-open": 4, "r-paid": 50}),
        session_factory=SessionLocal,
        interval_seconds=60,
    )

    assert reconciler.tick() == 1

    seeded.expire_all()
    assert get_receipt_by_id(seeded, "r-open").state == 4
    # Final receipts are not re-checked
    assert get_receipt_by_id(seeded, "r-paid").state == 4
    # A failed check leaves the receipt for the next tick
    assert get_receipt_by_id(seeded, "r-broken").state == 0


def test_tick_without_changes(seeded):
    save_receipt(seeded, "u1", {"_id": "r-open", "state": 0, "amount": 100000})
    reconciler = ReceiptReconciler(client=_client({"r-open": 0}), interval_seconds=60)

    assert reconciler.tick() == 0


def test_scheduler_lifecycle(seeded):
    reconciler = ReceiptReconciler(client=_client({}), interval_seconds=3600)

    assert not reconciler.running
    reconciler.start()
    try:
        assert reconciler.running
        assert reconciler.start() is reconciler._scheduler
    finally:
        reconciler.shutdown()
    assert not reconciler.running
