"""HTTP behaviour of the payments endpoints."""
from decimal import Decimal
from uuid import uuid4

import pytest

from payment_service.services import payment_queries


def _body(**overrides):
    body = {
        "amount": "100.50",
        "currency": "USD",
        "idempotency_key": uuid4().hex,
        "description": "Invoice 42",
        "merchant_id": "merchant-001",
    }
    body.update(overrides)
    return body


@pytest.mark.anyio
async def test_create_payment_returns_success(client):
    response = await client.post("/api/v1/payments", json=_body(idempotency_key="k1"))

    assert response.status_code == 201
    payload = response.json()
    assert payload["status"] == "SUCCESS"
    assert payload["version"] == 1
    assert Decimal(payload["amount"]) == Decimal("100.50")
    assert payload["currency"] == "USD"
    assert payload["idempotency_key"] == "k1"
    assert payload["transaction_reference"].startswith("TXN-")
    assert payload["created_at"]
    assert payload["updated_at"]
    assert payload["message"] == "Payment processed successfully"


@pytest.mark.anyio
async def test_replayed_key_is_rejected_without_new_record(client, count_payments):
    first = await client.post("/api/v1/payments", json=_body(idempotency_key="k1"))
    assert first.status_code == 201
    assert count_payments() == 1

    replay = await client.post(
        "/api/v1/payments", json=_body(idempotency_key="k1", amount="999.99", currency="EUR")
    )

    assert replay.status_code == 409
    error = replay.json()["error"]
    assert error["code"] == "DUPLICATE_PAYMENT"
    assert error["message"] == "Payment already processed."
    assert count_payments() == 1


@pytest.mark.anyio
async def test_negative_amount_fails_and_leaves_key_available(client, count_payments):
    rejected = await client.post("/api/v1/payments", json=_body(amount="-5", idempotency_key="k2"))

    assert rejected.status_code == 400
    assert rejected.json()["error"]["code"] == "VALIDATION_FAILED"
    assert count_payments() == 0

    accepted = await client.post("/api/v1/payments", json=_body(amount="10.00", idempotency_key="k2"))
    assert accepted.status_code == 201
    assert accepted.json()["status"] == "SUCCESS"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "overrides",
    [
        {"currency": "usd"},
        {"currency": "US"},
        {"amount": "0"},
        {"amount": "1.005"},
        {"amount": None},
        {"idempotency_key": "   "},
        {"idempotency_key": None},
    ],
)
async def test_invalid_payloads_are_rejected(client, count_payments, overrides):
    response = await client.post("/api/v1/payments", json=_body(**overrides))

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_FAILED"
    assert body["error"]["details"]["errors"]
    assert count_payments() == 0


@pytest.mark.anyio
async def test_malformed_amount_type_is_a_validation_error(client):
    response = await client.post("/api/v1/payments", json=_body(amount="not-a-number"))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.anyio
async def test_idempotency_key_can_come_from_header(client):
    body = _body()
    body.pop("idempotency_key")
    key = uuid4().hex

    first = await client.post("/api/v1/payments", json=body, headers={"Idempotency-Key": key})
    second = await client.post("/api/v1/payments", json=body, headers={"Idempotency-Key": key})

    assert first.status_code == 201
    assert first.json()["idempotency_key"] == key
    assert second.status_code == 409


@pytest.mark.anyio
async def test_header_and_body_keys_must_match(client):
    response = await client.post(
        "/api/v1/payments",
        json=_body(idempotency_key="body-key"),
        headers={"Idempotency-Key": "header-key"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.anyio
async def test_get_payment_by_id(client):
    created = await client.post("/api/v1/payments", json=_body())
    payment_id = created.json()["id"]

    response = await client.get(f"/api/v1/payments/{payment_id}")

    assert response.status_code == 200
    expected = created.json()
    expected.pop("message")
    assert response.json() == expected


@pytest.mark.anyio
async def test_get_unknown_payment_returns_not_found(client):
    response = await client.get("/api/v1/payments/999999")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PAYMENT_NOT_FOUND"


@pytest.mark.anyio
async def test_list_payments_defaults_to_newest_first(client):
    ids = []
    for amount in ("10.00", "20.00", "30.00"):
        created = await client.post("/api/v1/payments", json=_body(amount=amount))
        ids.append(created.json()["id"])

    response = await client.get("/api/v1/payments")

    assert response.status_code == 200
    page = response.json()
    assert page["total_count"] == 3
    assert page["page"] == 0
    assert page["size"] == 20
    assert page["total_pages"] == 1
    assert [item["id"] for item in page["items"]] == list(reversed(ids))


@pytest.mark.anyio
async def test_list_payments_paginates_and_sorts(client):
    for amount in ("30.00", "10.00", "20.00"):
        await client.post("/api/v1/payments", json=_body(amount=amount))

    first = await client.get(
        "/api/v1/payments", params={"page": 0, "size": 2, "sort_by": "amount", "direction": "asc"}
    )
    second = await client.get(
        "/api/v1/payments", params={"page": 1, "size": 2, "sort_by": "amount", "direction": "asc"}
    )

    assert [Decimal(i["amount"]) for i in first.json()["items"]] == [Decimal("10.00"), Decimal("20.00")]
    assert [Decimal(i["amount"]) for i in second.json()["items"]] == [Decimal("30.00")]
    assert first.json()["total_pages"] == 2


@pytest.mark.anyio
@pytest.mark.parametrize(
    "params",
    [
        {"sort_by": "idempotency_key"},
        {"direction": "sideways"},
        {"page": -1},
        {"size": 0},
        {"size": 101},
    ],
)
async def test_list_payments_rejects_bad_query(client, params):
    response = await client.get("/api/v1/payments", params=params)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.anyio
async def test_largest_amount_is_stored_exactly(client, session_factory):
    created = await client.post("/api/v1/payments", json=_body(amount="9999999999999999.99"))

    assert created.status_code == 201
    assert created.json()["amount"] == "9999999999999999.99"

    with session_factory() as fresh:
        stored = payment_queries.get_payment(fresh, created.json()["id"])
        assert stored.amount == Decimal("9999999999999999.99")


@pytest.mark.anyio
async def test_amount_beyond_storable_precision_is_rejected(client, count_payments):
    response = await client.post("/api/v1/payments", json=_body(amount="12345678901234567.89"))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"
    assert count_payments() == 0


@pytest.mark.anyio
@pytest.mark.parametrize("payment_id", ["100000000000000000000", str(2**63), "0", "-1"])
async def test_out_of_range_payment_id_is_not_found(client, payment_id):
    response = await client.get(f"/api/v1/payments/{payment_id}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PAYMENT_NOT_FOUND"


@pytest.mark.anyio
async def test_page_beyond_storable_offset_is_rejected(client):
    response = await client.get("/api/v1/payments", params={"page": 10**18, "size": 20})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"
