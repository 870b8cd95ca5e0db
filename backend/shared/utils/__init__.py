"""
Utilities module: Exceptions, health checks.
"""

from shared.utils.exceptions import (
    AuthorizationError,
    ClientInputError,
    NotFoundError,
    TransientStoreError,
    UpstreamUnavailableError,
    ValidationError,
)
