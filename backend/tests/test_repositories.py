"""
Tests for the shared repository base classes.
"""
import pytest
from sqlalchemy import select

from cafirm.models import Firm, ServiceRequest
from cafirm.repositories.account_repository import ClientRepository
from cafirm.repositories.base import BaseRepository, MultiTenantRepository
from cafirm.repositories.service_request_repository import ServiceRequestRepository
from tests.conftest import Seed


def test_no_unscoped_bulk_helpers():
    for name in ("get_all", "count", "delete"):
        assert not hasattr(BaseRepository, name)
        assert not hasattr(MultiTenantRepository, name)


@pytest.mark.asyncio
async def test_get_by_id_stays_inside_firm(db_session, seed: Seed):
    other_firm = Firm(name="Mehta & Co", email="office@mehtaco.in")
    db_session.add(other_firm)
    await db_session.commit()

    assert await ClientRepository(db_session, seed.firm.id).get_by_id(seed.client.id) is not None
    assert await ClientRepository(db_session, other_firm.id).get_by_id(seed.client.id) is None


@pytest.mark.asyncio
async def test_add_sets_firm_and_paginate_counts(db_session, seed: Seed):
    repo = ServiceRequestRepository(db_session, seed.firm.id)
    for n in range(3):
        await repo.add(ServiceRequest(client_id=seed.client.id, title=f"Ledger review {n}"))
    await db_session.commit()

    rows, total = await repo.paginate(select(ServiceRequest).order_by(ServiceRequest.title), skip=1, limit=1)
    assert total == 3
    assert [r.title for r in rows] == ["Ledger review 1"]
    assert rows[0].firm_id == seed.firm.id
