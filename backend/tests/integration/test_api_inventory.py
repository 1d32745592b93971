"""Integration tests for inventory and context API endpoints."""

from tests.fixtures import ISSUER, OTHER_ISSUER


def _register(client, mock_chain, tx="mint-api-1", quantity=2, issuer=ISSUER, **extra):
    mock_chain.record_transfer(tx, f"0x{tx}00", issuer)
    payload = {
        "issuer": issuer,
        "transaction_reference": tx,
        "quantity": quantity,
        "minted_object_ids": [f"0x{tx}{i:02d}" for i in range(quantity)],
        "template_ref": "template-gold",
        **extra,
    }
    return client.post("/api/inventory/batches", json=payload)


class TestRegisterBatch:
    def test_register(self, client, mock_chain):
        response = _register(client, mock_chain)

        assert response.status_code == 201
        data = response.json()
        assert data["quantity"] == 2
        assert data["awarded_count"] == 0
        assert data["available_count"] == 2
        assert data["chain_status"] == "confirmed"
        assert data["is_custom_minted"] is False
        assert [t["position"] for t in data["tokens"]] == [0, 1]
        assert mock_chain.lookups == ["mint-api-1"]

    def test_register_is_idempotent(self, client, mock_chain):
        first = _register(client, mock_chain).json()
        second = _register(client, mock_chain)

        assert second.status_code == 201
        assert second.json()["id"] == first["id"]

    def test_custom_mint(self, client, mock_chain):
        response = _register(
            client, mock_chain, template_ref=None, custom_name="Hackathon 2026"
        )
        assert response.json()["is_custom_minted"] is True
        assert response.json()["custom_name"] == "Hackathon 2026"

    def test_too_few_object_ids(self, client, mock_chain):
        mock_chain.record_transfer("mint-short", "0xa", ISSUER)
        response = client.post(
            "/api/inventory/batches",
            json={
                "issuer": ISSUER,
                "transaction_reference": "mint-short",
                "quantity": 3,
                "minted_object_ids": ["0xa"],
            },
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_request"

    def test_zero_quantity_rejected(self, client):
        response = client.post(
            "/api/inventory/batches",
            json={
                "issuer": ISSUER,
                "transaction_reference": "mint-zero",
                "quantity": 0,
                "minted_object_ids": [],
            },
        )
        assert response.status_code == 422

    def test_unconfirmed_transaction(self, client):
        """A mint the chain does not know about is a chain failure."""
        response = client.post(
            "/api/inventory/batches",
            json={
                "issuer": ISSUER,
                "transaction_reference": "mint-unknown",
                "quantity": 1,
                "minted_object_ids": ["0xa"],
            },
        )
        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "chain_failed"
        assert response.json()["detail"]["kind"] == "rejected"


class TestListBatches:
    def test_list_for_issuer(self, client, batch, single_batch):
        response = client.get("/api/inventory/batches", params={"issuer": ISSUER})

        assert response.status_code == 200
        assert {b["id"] for b in response.json()} == {batch.id, single_batch.id}

    def test_other_issuer_sees_nothing(self, client, batch):
        response = client.get("/api/inventory/batches", params={"issuer": OTHER_ISSUER})
        assert response.json() == []

    def test_issuer_required(self, client):
        assert client.get("/api/inventory/batches").status_code == 422

    def test_get_batch(self, client, batch):
        response = client.get(f"/api/inventory/batches/{batch.id}")
        assert response.status_code == 200
        assert len(response.json()["tokens"]) == 3

    def test_get_missing_batch(self, client):
        response = client.get("/api/inventory/batches/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Inventory batch not found"


class TestContexts:
    def test_create_and_get(self, client):
        response = client.post(
            "/api/contexts", json={"issuer": ISSUER, "name": "Launch", "kind": "event"}
        )
        assert response.status_code == 201
        context_id = response.json()["id"]

        fetched = client.get(f"/api/contexts/{context_id}")
        assert fetched.json()["status"] == "open"
        assert fetched.json()["kind"] == "event"

    def test_invalid_kind(self, client):
        response = client.post(
            "/api/contexts", json={"issuer": ISSUER, "name": "Launch", "kind": "raffle"}
        )
        assert response.status_code == 422

    def test_assign_batch(self, client, award_context, batch):
        response = client.post(
            f"/api/contexts/{award_context.id}/batches",
            json={"batch_id": batch.id, "issuer": ISSUER},
        )
        assert response.status_code == 200
        assert response.json()["context_id"] == award_context.id

    def test_assign_bound_batch_conflicts(self, client, award_context, bound_batch, batch):
        other = client.post("/api/contexts", json={"issuer": ISSUER, "name": "Other"}).json()
        response = client.post(
            f"/api/contexts/{other['id']}/batches",
            json={"batch_id": bound_batch.id, "issuer": ISSUER},
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "batch_assigned"

    def test_assign_forbidden(self, client, award_context, batch):
        response = client.post(
            f"/api/contexts/{award_context.id}/batches",
            json={"batch_id": batch.id, "issuer": OTHER_ISSUER},
        )
        assert response.status_code == 403
