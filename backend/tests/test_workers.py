"""
Tests for the background jobs.

The jobs open their own sessions, so the session factory is pointed at the
test database.
"""
import os
import time
from datetime import date

import pytest
from httpx import AsyncClient

from cafirm.services.email_service import EmailService
from cafirm.workers import invoice_tasks, maintenance_tasks, notification_tasks
from cafirm.workers.celery_app import celery_app
from tests.conftest import Seed, auth_headers


class RecordingEmailService(EmailService):
    def __init__(self):
        super().__init__()
        self.sent = []

    async def send(self, message):
        self.sent.append(message)
        return True


@pytest.fixture(autouse=True)
def worker_sessions(monkeypatch, session_maker):
    for module in (invoice_tasks, maintenance_tasks, notification_tasks):
        monkeypatch.setattr(module, "async_session_maker", session_maker)


def test_beat_schedule_registers_jobs():
    tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    assert tasks == {
        "cafirm.workers.invoice_tasks.mark_overdue_invoices_task",
        "cafirm.workers.notification_tasks.send_due_service_reminders_task",
        "cafirm.workers.maintenance_tasks.cleanup_orphaned_uploads_task",
    }


@pytest.mark.asyncio
async def test_mark_overdue_invoices(api: AsyncClient, seed: Seed):
    response = await api.post(
        "/api/v1/invoices",
        json={
            "client_id": str(seed.client.id),
            "invoice_date": "2025-04-01",
            "due_date": "2025-04-30",
            "items": [{"description": "Tax audit", "unit_price": "25000"}],
        },
        headers=auth_headers(seed.admin),
    )
    invoice_id = response.json()["data"]["id"]
    await api.post(f"/api/v1/invoices/{invoice_id}/send", headers=auth_headers(seed.admin))

    result = await invoice_tasks.mark_overdue_invoices(today=date(2025, 5, 15))
    assert result == {"firms_checked": 1, "invoices_marked": 1}

    # Already overdue invoices are not counted again
    result = await invoice_tasks.mark_overdue_invoices(today=date(2025, 5, 16))
    assert result["invoices_marked"] == 0

    response = await api.get(f"/api/v1/invoices/{invoice_id}", headers=auth_headers(seed.client))
    assert response.json()["data"]["status"] == "overdue"


@pytest.mark.asyncio
async def test_due_service_reminders(api: AsyncClient, seed: Seed):
    for title, due in (("Advance tax Q2", "2025-09-15"), ("ROC filing", "2025-10-30")):
        response = await api.post(
            "/api/v1/services",
            json={"client_id": str(seed.client.id), "title": title, "due_date": due},
            headers=auth_headers(seed.admin),
        )
        assert response.status_code == 201

    email_service = RecordingEmailService()
    result = await notification_tasks.send_due_service_reminders(
        today=date(2025, 9, 13),
        email_service=email_service,
    )

    assert result == {"firms_checked": 1, "reminders_sent": 1}
    [message] = email_service.sent
    assert message.to == "client@acmetraders.in"
    assert "Advance tax Q2" in message.text


@pytest.mark.asyncio
async def test_cleanup_orphaned_uploads(api: AsyncClient, seed: Seed, upload_dir):
    response = await api.post(
        "/api/v1/documents",
        files={"file": ("gst.pdf", b"%PDF-1.4 gst", "application/pdf")},
        headers=auth_headers(seed.client),
    )
    assert response.status_code == 201

    stale = upload_dir / "stray" / "old.pdf"
    fresh = upload_dir / "stray" / "new.pdf"
    stale.parent.mkdir(parents=True)
    stale.write_bytes(b"old")
    fresh.write_bytes(b"new")
    two_days_ago = time.time() - 48 * 3600
    os.utime(stale, (two_days_ago, two_days_ago))
    for known in upload_dir.joinpath(str(seed.client.id)).iterdir():
        os.utime(known, (two_days_ago, two_days_ago))

    result = await maintenance_tasks.cleanup_orphaned_uploads(max_age_hours=24)

    assert result == {"removed": ["stray/old.pdf"]}
    assert not stale.exists()
    assert fresh.exists()
    assert len(list(upload_dir.joinpath(str(seed.client.id)).iterdir())) == 1
