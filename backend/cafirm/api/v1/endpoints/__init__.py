"""
API v1 endpoints.

Available modules:
- activity: Activity log
- auth: Login, two-factor OTP and password flows
- clients: Clients and team-member assignments
- dashboard: Role based counters
- document_slots: Documents a service needs from its client
- documents: Upload, download and review
- events: Server-Sent Events stream
- firms: Firm onboarding and profile
- health: Health check
- invoices: Invoices and payments
- service_requests: Client requests for new services
- services: Services and their workflow
- staff: Admins, project managers and team members
- tasks: Tasks inside services
"""
