"""
Celery workers.

Scheduled and background jobs of the practice-management API.
"""
