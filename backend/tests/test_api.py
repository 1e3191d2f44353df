"""HTTP tests for routing, envelopes, tenancy and authentication."""

from decimal import Decimal

from fastapi.testclient import TestClient
from jose import jwt

from conftest import OTHER_TENANT, TENANT
from main import app
from utils.auth_utils import JWT_ALGORITHM, JWT_SECRET_KEY


def create_warehouse(client, code="WH1", name="Main"):
    response = client.post("/warehouses/", json={"code": code, "name": name})
    assert response.status_code == 201, response.text
    return response.json()


def create_item(client, code="ITM1", **kwargs):
    response = client.post("/items/", json={"code": code, "name": f"Item {code}", **kwargs})
    assert response.status_code == 201, response.text
    return response.json()


class TestMasterData:
    """Tests for warehouse, item and partner endpoints."""

    def test_create_and_read_item(self, client):
        item = create_item(client, starting_price="2.5")

        response = client.get(f"/items/{item['id']}")

        assert response.status_code == 200
        assert response.json()["tenant_id"] == TENANT
        assert Decimal(response.json()["starting_price"]) == Decimal("2.5")

    def test_duplicate_warehouse_code(self, client):
        create_warehouse(client)

        response = client.post("/warehouses/", json={"code": "WH1", "name": "Again"})

        assert response.status_code == 409

    def test_list_envelope(self, client):
        for n in range(3):
            create_item(client, code=f"ITM{n}")

        body = client.get("/items/", params={"per_page": 2, "sort_by": "code", "sort_direction": "asc"}).json()

        assert [item["code"] for item in body["data"]] == ["ITM0", "ITM1"]
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["has_more_pages"] is True

    def test_search(self, client):
        create_item(client, code="BOLT")
        create_item(client, code="NUT")

        body = client.get("/items/", params={"search": "bol"}).json()

        assert [item["code"] for item in body["data"]] == ["BOLT"]

    def test_partner_with_documents_is_deactivated(self, client):
        warehouse = create_warehouse(client)
        item = create_item(client)
        partner = client.post("/business-partners/", json={"code": "SUP1", "name": "Acme",
                                                           "is_supplier": True, "is_customer": False}).json()
        response = client.post("/purchases/", json={
            "supplier_id": partner["id"], "warehouse_id": warehouse["id"], "date": "2024-03-01",
            "items": [{"item_id": item["id"], "quantity": "1", "price": "1"}],
        })
        assert response.status_code == 201, response.text

        response = client.delete(f"/business-partners/{partner['id']}")

        assert response.status_code == 409
        assert client.get(f"/business-partners/{partner['id']}").json()["status"] == "Inactive"


class TestErrorEnvelopes:
    """Tests for the error bodies."""

    def test_validation_envelope(self, client):
        response = client.post("/items/", json={"name": "No code"})

        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "The given data was invalid."
        assert "code" in body["errors"]

    def test_business_error_envelope(self, client):
        """Subtracting more than is on hand is a 422 with a machine-readable code."""
        warehouse = create_warehouse(client)
        item = create_item(client)

        response = client.post("/inventory/quantity", json={"item_id": item["id"], "warehouse_id": warehouse["id"],
                                                           "quantity": "5", "operation": "subtract"})

        assert response.status_code == 422
        assert response.json()["errors"]["code"] == "INSUFFICIENT_INVENTORY"

    def test_unknown_item_is_404(self, client):
        warehouse = create_warehouse(client)

        response = client.post("/inventory/quantity", json={"item_id": 999, "warehouse_id": warehouse["id"],
                                                           "quantity": "5", "operation": "add"})

        assert response.status_code == 404


class TestTenancy:
    """Tests for tenant scoping."""

    def test_tenant_header_required(self, client):
        response = client.get("/items/", headers={"X-Tenant-ID": ""})

        assert response.status_code == 400

    def test_missing_tenant_header(self, client):
        del client.headers["X-Tenant-ID"]

        assert client.get("/items/").status_code == 422

    def test_other_tenant_cannot_see_records(self, client):
        item = create_item(client)

        response = client.get(f"/items/{item['id']}", headers={"X-Tenant-ID": OTHER_TENANT})

        assert response.status_code == 404
        assert client.get("/items/", headers={"X-Tenant-ID": OTHER_TENANT}).json()["data"] == []

    def test_inventory_round_trip(self, client):
        warehouse = create_warehouse(client)
        item = create_item(client)
        client.post("/inventory/quantity", json={"item_id": item["id"], "warehouse_id": warehouse["id"],
                                                 "quantity": "7", "operation": "add"})

        body = client.get("/inventory/quantity", params={"item_id": item["id"], "warehouse_id": warehouse["id"]}).json()

        assert Decimal(body["quantity"]) == Decimal("7")


class TestAuthentication:
    """Tests for bearer token checks."""

    def test_write_without_token_is_rejected(self):
        client = TestClient(app)

        response = client.post("/warehouses/", json={"code": "WH1", "name": "Main"},
                               headers={"X-Tenant-ID": TENANT})

        assert response.status_code == 401

    def test_valid_token_accepted(self):
        token = jwt.encode({"sub": "42", "email": "owner@example.com"}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
        client = TestClient(app)

        response = client.post("/warehouses/", json={"code": "WH1", "name": "Main"},
                               headers={"X-Tenant-ID": TENANT, "Authorization": f"Bearer {token}"})

        assert response.status_code == 201

    def test_bad_signature_rejected(self):
        token = jwt.encode({"sub": "42"}, "not-the-secret", algorithm="HS256")
        client = TestClient(app)

        response = client.post("/warehouses/", json={"code": "WH1", "name": "Main"},
                               headers={"X-Tenant-ID": TENANT, "Authorization": f"Bearer {token}"})

        assert response.status_code == 401


class TestAccountMovementsApi:
    """Tests for the account transfer and statement endpoints."""

    def test_transfer_and_statement(self, client):
        """Fixed paths under /accounts are not taken for an account id."""
        bank = client.post("/accounts/", json={"name": "Bank", "current_balance": "100"}).json()
        cash = client.post("/accounts/", json={"name": "Cash"}).json()

        response = client.post("/accounts/transfers", json={"date": "2024-06-01", "from_account_id": bank["id"],
                                                            "to_account_id": cash["id"], "sent_amount": "30"})

        assert response.status_code == 201, response.text
        assert response.json()["code"] == "ATR-000001"
        assert client.get("/accounts/transfers").json()["pagination"]["total"] == 1
        assert Decimal(str(client.get(f"/accounts/{bank['id']}").json()["current_balance"])) == Decimal("70")

        statement = client.get(f"/accounts/statements/{bank['id']}").json()
        assert Decimal(str(statement["opening_balance"])) == Decimal("100")
        assert Decimal(str(statement["closing_balance"])) == Decimal("70")
        assert [row["type"] for row in statement["transactions"]] == ["Account Transfer (Sent)"]

    def test_transfer_to_same_account_is_422(self, client):
        bank = client.post("/accounts/", json={"name": "Bank"}).json()

        response = client.post("/accounts/transfers", json={"date": "2024-06-01", "from_account_id": bank["id"],
                                                            "to_account_id": bank["id"], "sent_amount": "30"})

        assert response.status_code == 422

    def test_partner_statement_endpoint(self, client):
        partner = client.post("/business-partners/", json={"code": "CUS1", "name": "Bolt Ltd", "is_customer": True,
                                                           "opening_balance": "12"}).json()

        response = client.get(f"/business-partners/{partner['id']}/statement", params={"role": "customer"})

        assert response.status_code == 200, response.text
        assert Decimal(str(response.json()["closing_balance"])) == Decimal("12")
        assert client.get(f"/business-partners/{partner['id']}/statement",
                          params={"role": "supplier"}).status_code == 422
