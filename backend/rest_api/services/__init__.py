"""
Services module for business logic.

- catalog/: Product listing, cursors, cache-aside reads
- auth/: Shared OAuth2 token with distributed refresh
- external/: Outbound HTTP API client (circuit breaker + retry)
- webhooks.py: Inbound webhook verification and idempotency

Usage:
    from rest_api.services.catalog import ProductListingService
    service = ProductListingService(db, cache, codec)
    page = await service.list_products(filters)
"""
