from decimal import Decimal

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.auth.dependencies import get_current_user
from src.common.database.database import get_db_session
from src.main import app
from src.models.models import ChargeCategory, HMOCategory, ProviderTier


@pytest_asyncio.fixture
async def client(session, factory):
    user = await factory.user()

    async def override_session():
        yield session

    async def override_user():
        return user

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_current_user] = override_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def test_billing_flow_end_to_end(client, factory):
    hmo = await factory.hmo(HMOCategory.NHIA)
    patient = await factory.patient(ProviderTier.NHIA, hmo)
    encounter = await factory.encounter(patient)
    encounter_id, patient_id = str(encounter.id), str(patient.id)

    created = await client.post("/charges", json={
        "name": "Amoxicillin 500mg", "type": "drugs", "base_price": "25",
        "nhia_fee": "20", "department": "Pharmacy",
    })
    assert created.status_code == 201
    charge_id = created.json()["id"]

    line = await client.post("/encounter-charges", json={
        "encounter_id": encounter_id, "patient_id": patient_id,
        "charge_id": charge_id, "quantity": 3,
    })
    assert line.status_code == 201
    assert Decimal(line.json()["patient_portion"]) == Decimal("6.00")
    assert Decimal(line.json()["hmo_portion"]) == Decimal("54.00")

    paid = await client.post("/receipts/encounter", json={
        "encounter_id": encounter_id, "charge_ids": [line.json()["id"]], "payment_method": "insurance",
    })
    assert paid.status_code == 201
    receipt = paid.json()
    assert Decimal(receipt["amount_paid"]) == Decimal("60.00")

    validated = await client.post("/receipts/validate", json={
        "receipt_number": receipt["receipt_number"], "department": "pharmacy",
    })
    assert validated.status_code == 200
    assert validated.json()["validated"] is True

    claim = await client.post(f"/claims/generate/{encounter_id}")
    assert claim.status_code == 201
    assert Decimal(claim.json()["total_claim_amount"]) == Decimal("54.00")

    for status in ("submitted", "approved", "paid"):
        moved = await client.put(f"/claims/{claim.json()['id']}/status", json={"status": status})
        assert moved.status_code == 200

    report = await client.get("/reports/revenue")
    assert report.status_code == 200
    assert Decimal(report.json()["summary"]["recognised_revenue"]) == Decimal("60.00")

    services = await client.get("/reports/services/pharmacy")
    assert services.json()["services"][0]["service_name"] == "Amoxicillin 500mg"

    stats = await client.get("/reports/dashboard-stats")
    assert stats.status_code == 200
    assert stats.json()["total_receipts"] == 1


async def test_resent_payment_is_409(client, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())
    body = {"encounter_id": str(encounter.id), "charge_ids": [str(line.id)], "payment_method": "cash"}

    first = await client.post("/receipts/encounter", json=body)
    second = await client.post("/receipts/encounter", json=body)

    assert first.status_code == 201
    assert second.status_code == 409


async def test_short_deposit_reports_balance(client, factory):
    patient = await factory.patient(deposit="50")
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(base="100"))

    response = await client.post("/receipts/encounter", json={
        "encounter_id": str(encounter.id), "charge_ids": [str(line.id)], "payment_method": "deposit",
    })

    assert response.status_code == 400
    assert response.json()["detail"]["balance"] == "50.00"
    assert response.json()["detail"]["required"] == "100.00"


async def test_missing_records_are_404(client, factory):
    patient = await factory.patient()
    patient_id = str(patient.id)

    assert (await client.get(f"/charges/{patient_id}")).status_code == 404
    assert (await client.get(f"/claims/{patient_id}")).status_code == 404
    assert (await client.get("/receipts/number/RCP-000000-0000")).status_code == 404
    assert (await client.post(f"/claims/generate/{patient_id}")).status_code == 404


async def test_line_needs_exactly_one_item_source(client, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    charge = await factory.charge(ChargeCategory.LAB)

    response = await client.post("/encounter-charges", json={
        "encounter_id": str(encounter.id),
        "patient_id": str(patient.id),
        "charge_id": str(charge.id),
        "adhoc": {"name": "Extra swab", "category": "lab", "unit_price": "5"},
    })

    assert response.status_code == 422


async def test_deposit_and_hmo_balance_routes(client, factory):
    patient = await factory.patient()
    hmo = await factory.hmo(HMOCategory.RETAINERSHIP)
    hmo_id = hmo.id

    topped = await client.post(f"/deposits/{patient.id}", json={"amount": "7500"})
    funded = await client.post(f"/hmos/{hmo_id}/deposits", json={"amount": "20000", "description": "Q1 retainer"})
    balance = await client.get(f"/hmos/{hmo_id}/balance")

    assert topped.status_code == 200
    assert Decimal(topped.json()["deposit_balance"]) == Decimal("7500.00")
    assert topped.json()["is_low"] is False
    assert funded.status_code == 201
    assert Decimal(balance.json()["balance"]) == Decimal("20000.00")


async def test_routes_require_a_bearer_token(client):
    app.dependency_overrides.pop(get_current_user)

    missing = await client.get("/charges")
    garbage = await client.get("/charges", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code in (401, 403)
    assert garbage.status_code == 401


async def test_invoice_routes(client, factory):
    patient = await factory.patient(deposit="1000")
    patient_id = str(patient.id)

    created = await client.post("/invoices", json={
        "patient_id": patient_id,
        "items": [{"description": "Registration", "cost": "500"}, {"description": "Card", "cost": "200"}],
        "fee_type": "consultation",
    })
    assert created.status_code == 201
    invoice_id = created.json()["id"]
    assert Decimal(created.json()["total_amount"]) == Decimal("700.00")

    paid = await client.put(f"/invoices/{invoice_id}/pay", json={"payment_method": "deposit"})
    assert paid.status_code == 200
    assert paid.json()["receipt_number"].startswith("RCP-")

    reversed_invoice = await client.put(f"/invoices/{invoice_id}/reverse", json={"reason": "Duplicate"})
    assert reversed_invoice.json()["status"] == "reversed"
    balance = await client.get(f"/deposits/{patient_id}")
    assert Decimal(balance.json()["deposit_balance"]) == Decimal("1000.00")

    pending = await client.post("/invoices", json={
        "patient_id": patient_id, "items": [{"description": "Dressing", "cost": "50"}],
    })
    bulk = await client.post("/invoices/bulk-pay-insurance", json={"invoice_ids": [pending.json()["id"]]})
    listed = await client.get("/invoices", params={"patient_id": patient_id})
    assert bulk.json()["updated"] == 1
    assert listed.json()["total"] == 2
    assert (await client.post("/invoices/bulk-pay-insurance", json={"invoice_ids": []})).status_code == 422

    again = await client.put(f"/invoices/{pending.json()['id']}/pay", json={"payment_method": "cash"})
    assert again.status_code == 409


async def test_hmo_directory_routes(client, factory):
    hmo = await factory.hmo(HMOCategory.RETAINERSHIP, deposit="300")
    other = await factory.hmo()
    hmo_id, taken_name = hmo.id, other.name

    fetched = await client.get(f"/hmos/{hmo_id}")
    renamed = await client.put(f"/hmos/{hmo_id}", json={"contact_person": "Claims desk"})
    clash = await client.put(f"/hmos/{hmo_id}", json={"name": taken_name})
    toggled = await client.patch(f"/hmos/{hmo_id}/toggle-status")
    statement = await client.get(f"/hmos/{hmo_id}/statement")

    assert fetched.status_code == 200
    assert renamed.json()["contact_person"] == "Claims desk"
    assert clash.status_code == 409
    assert toggled.json()["active"] is False
    assert statement.status_code == 200
    assert Decimal(statement.json()["balance"]) == Decimal("300.00")
    assert statement.json()["entries"][0]["type"] == "credit"
