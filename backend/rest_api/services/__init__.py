"""
Services module for business logic.

- domain/: Application services (orders, approvals, audit, pricing, notifications)

Usage:
    from rest_api.services.domain import ApprovalService
    service = ApprovalService(db, dispatcher, notifier)
    pending = service.list_pending()
"""
