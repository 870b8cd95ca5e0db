"""
Security module: rate limiting and request signing.
"""

from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from shared.security.request_signing import RequestSigner, create_webhook_signer

__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "RequestSigner",
    "create_webhook_signer",
]
