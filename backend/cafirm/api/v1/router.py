"""
Main router of API v1.

Aggregates the routes of every domain.
"""

from fastapi import APIRouter

from cafirm.api.v1.endpoints import (
    activity,
    auth,
    clients,
    dashboard,
    document_slots,
    documents,
    events,
    firms,
    health,
    invoices,
    service_requests,
    services,
    staff,
    tasks,
)

api_router = APIRouter()

# Health check
api_router.include_router(health.router, prefix="/health", tags=["Health"])

# Authentication and firm onboarding
api_router.include_router(auth.router)
api_router.include_router(firms.router)

# People
api_router.include_router(staff.router)
api_router.include_router(clients.router)

# Work
api_router.include_router(services.router)
api_router.include_router(tasks.router)
api_router.include_router(documents.router)
api_router.include_router(document_slots.router)
api_router.include_router(service_requests.router)

# Billing
api_router.include_router(invoices.router)

# Activity, dashboard and live events
api_router.include_router(activity.router)
api_router.include_router(dashboard.router)
api_router.include_router(events.router)
