"""
Auth Services - shared OAuth2 client-credentials token.
"""

from .token_manager import AccessToken, TokenIssuerClient, TokenManager, TokenState

__all__ = [
    "AccessToken",
    "TokenIssuerClient",
    "TokenManager",
    "TokenState",
]
