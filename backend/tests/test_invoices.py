"""
Tests for invoicing and payments.
"""
from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient

from cafirm.schemas.invoice import InvoiceItemIn
from cafirm.services.invoice_service import (
    InvoiceService,
    compute_totals,
    format_invoice_number,
    next_sequence,
)
from tests.conftest import Seed, auth_headers

INVOICES = "/api/v1/invoices"


async def create_invoice(api: AsyncClient, seed: Seed, account=None, **overrides) -> dict:
    body = {
        "client_id": str(seed.client.id),
        "invoice_date": "2025-04-10",
        "due_date": "2025-05-10",
        "items": [{"description": "ITR filing FY 2024-25", "quantity": "1", "unit_price": "1000"}],
        **overrides,
    }
    response = await api.post(INVOICES, json=body, headers=auth_headers(account or seed.admin))
    assert response.status_code == 201, response.text
    return response.json()["data"]


# === CALCULATIONS ===


def test_compute_totals_default_rate():
    totals = compute_totals(
        [
            InvoiceItemIn(description="GST return", quantity=Decimal("3"), unit_price=Decimal("500")),
            InvoiceItemIn(description="Audit", quantity=Decimal("1"), unit_price=Decimal("2000.50")),
        ],
        discount=Decimal("500"),
    )
    assert totals.item_amounts == [Decimal("1500.00"), Decimal("2000.50")]
    assert totals.subtotal == Decimal("3500.50")
    assert totals.tax_rate == Decimal("18")
    # 18% of (3500.50 - 500)
    assert totals.tax_amount == Decimal("540.09")
    assert totals.total_amount == Decimal("3540.59")


def test_compute_totals_uses_first_item_rate():
    totals = compute_totals(
        [
            InvoiceItemIn(description="Consulting", unit_price=Decimal("100"), tax_rate=Decimal("5")),
            InvoiceItemIn(description="Filing", unit_price=Decimal("100"), tax_rate=Decimal("28")),
        ]
    )
    assert totals.tax_rate == Decimal("5")
    assert totals.tax_amount == Decimal("10.00")


def test_discount_is_capped_at_subtotal():
    totals = compute_totals(
        [InvoiceItemIn(description="Filing", unit_price=Decimal("100"))],
        discount=Decimal("250"),
    )
    assert totals.discount == Decimal("100.00")
    assert totals.total_amount == Decimal("0.00")


def test_invoice_numbering():
    assert format_invoice_number(2025, 7) == "INV-2025-00007"
    assert next_sequence(None) == 1
    assert next_sequence("INV-2025-00041") == 42


# === LIFECYCLE ===


@pytest.mark.asyncio
async def test_create_invoice_as_draft(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed)
    assert invoice["status"] == "draft"
    assert invoice["invoice_number"] == "INV-2025-00001"
    assert Decimal(invoice["subtotal"]) == Decimal("1000")
    assert Decimal(invoice["tax_amount"]) == Decimal("180")
    assert Decimal(invoice["total_amount"]) == Decimal("1180")
    assert Decimal(invoice["balance_due"]) == Decimal("1180")
    assert len(invoice["items"]) == 1

    second = await create_invoice(api, seed)
    assert second["invoice_number"] == "INV-2025-00002"

    next_year = await create_invoice(api, seed, invoice_date="2026-01-05", due_date="2026-02-05")
    assert next_year["invoice_number"] == "INV-2026-00001"


@pytest.mark.asyncio
async def test_due_date_defaults_from_invoice_date(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed, due_date=None)
    assert invoice["due_date"] == "2025-05-10"


@pytest.mark.asyncio
async def test_team_member_cannot_create_invoice(api: AsyncClient, seed: Seed):
    response = await api.post(
        INVOICES,
        json={"client_id": str(seed.client.id), "items": [{"description": "Fee", "unit_price": "10"}]},
        headers=auth_headers(seed.team_member),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_draft_recomputes_totals(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed)
    response = await api.patch(
        f"{INVOICES}/{invoice['id']}",
        json={"discount": "100", "items": [{"description": "Audit", "quantity": "2", "unit_price": "750"}]},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert Decimal(data["subtotal"]) == Decimal("1500")
    assert Decimal(data["tax_amount"]) == Decimal("252")
    assert Decimal(data["total_amount"]) == Decimal("1652")
    assert [item["description"] for item in data["items"]] == ["Audit"]


@pytest.mark.asyncio
async def test_sent_invoice_is_not_editable(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed)
    response = await api.post(f"{INVOICES}/{invoice['id']}/send", headers=auth_headers(seed.admin))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "sent"
    assert response.json()["data"]["sent_at"] is not None

    response = await api.patch(
        f"{INVOICES}/{invoice['id']}",
        json={"notes": "late edit"},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVOICE_NOT_EDITABLE"


@pytest.mark.asyncio
async def test_payments_settle_invoice(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed)
    url = f"{INVOICES}/{invoice['id']}/payments"

    # Drafts do not take payments
    response = await api.post(url, json={"amount": "100"}, headers=auth_headers(seed.admin))
    assert response.status_code == 400

    await api.post(f"{INVOICES}/{invoice['id']}/send", headers=auth_headers(seed.admin))

    response = await api.post(
        url,
        json={"amount": "500", "method": "upi", "reference": "UTR123"},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "partially_paid"
    assert Decimal(data["balance_due"]) == Decimal("680")

    response = await api.post(url, json={"amount": "700"}, headers=auth_headers(seed.admin))
    assert response.status_code == 422

    response = await api.post(url, json={"amount": "680"}, headers=auth_headers(seed.admin))
    data = response.json()["data"]
    assert data["status"] == "paid"
    assert data["paid_at"] is not None
    assert len(data["payments"]) == 2

    response = await api.post(f"{INVOICES}/{invoice['id']}/cancel", headers=auth_headers(seed.admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cancel_invoice(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed)
    response = await api.post(
        f"{INVOICES}/{invoice['id']}/cancel",
        json={"reason": "Raised twice"},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "cancelled"
    assert "Raised twice" in data["notes"]


@pytest.mark.asyncio
async def test_mark_overdue_and_resend(api: AsyncClient, seed: Seed, db_session):
    invoice = await create_invoice(api, seed)
    await api.post(f"{INVOICES}/{invoice['id']}/send", headers=auth_headers(seed.admin))
    await api.post(
        f"{INVOICES}/{invoice['id']}/payments",
        json={"amount": "180"},
        headers=auth_headers(seed.admin),
    )
    draft = await create_invoice(api, seed)

    service = InvoiceService(db_session, seed.firm.id)
    assert await service.mark_overdue(today=date(2025, 5, 10)) == 0
    assert await service.mark_overdue(today=date(2025, 6, 1)) == 1

    response = await api.get(f"{INVOICES}/{invoice['id']}", headers=auth_headers(seed.admin))
    assert response.json()["data"]["status"] == "overdue"
    response = await api.get(f"{INVOICES}/{draft['id']}", headers=auth_headers(seed.admin))
    assert response.json()["data"]["status"] == "draft"

    # Resending a part paid reminder keeps the payment state
    response = await api.post(f"{INVOICES}/{invoice['id']}/send", headers=auth_headers(seed.admin))
    assert response.json()["data"]["status"] == "partially_paid"


# === VISIBILITY ===


@pytest.mark.asyncio
async def test_invoice_visibility(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed)
    await create_invoice(api, seed, client_id=str(seed.other_client.id))

    client = await api.get(INVOICES, headers=auth_headers(seed.client))
    assert client.json()["total"] == 1

    team_member = await api.get(INVOICES, headers=auth_headers(seed.team_member))
    assert team_member.json()["total"] == 1

    # Project manager only sees invoices of managed clients
    project_manager = await api.get(INVOICES, headers=auth_headers(seed.project_manager))
    assert project_manager.json()["total"] == 1

    response = await api.get(f"{INVOICES}/{invoice['id']}", headers=auth_headers(seed.other_client))
    assert response.status_code == 404

    admin = await api.get(INVOICES, params={"status": "draft"}, headers=auth_headers(seed.admin))
    assert admin.json()["total"] == 2


@pytest.mark.asyncio
async def test_invoice_stats(api: AsyncClient, seed: Seed):
    invoice = await create_invoice(api, seed)
    await create_invoice(api, seed)
    await api.post(f"{INVOICES}/{invoice['id']}/send", headers=auth_headers(seed.admin))
    await api.post(
        f"{INVOICES}/{invoice['id']}/payments",
        json={"amount": "180"},
        headers=auth_headers(seed.admin),
    )

    response = await api.get(f"{INVOICES}/stats", headers=auth_headers(seed.admin))
    stats = response.json()["data"]
    assert stats["total"] == 2
    assert stats["by_status"]["draft"] == 1
    assert stats["by_status"]["partially_paid"] == 1
    assert Decimal(stats["outstanding_amount"]) == Decimal("1000")
    assert Decimal(stats["collected_amount"]) == Decimal("180")
