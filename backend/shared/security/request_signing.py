"""
Request signing utilities.

HMAC-SHA256 over the raw request body, sent hex-encoded in a header.
"""

import hashlib
import hmac

from shared.config.logging import get_logger

logger = get_logger(__name__)


class RequestSigner:
    """
    HMAC-SHA256 body signing for webhook deliveries.

    Usage (signing):
        signer = RequestSigner(secret="your-secret")
        headers = {RequestSigner.HEADER_SIGNATURE: signer.sign(body)}

    Usage (verification):
        if signer.verify(body, request.headers.get(RequestSigner.HEADER_SIGNATURE)):
            # Request is authentic
    """

    HEADER_SIGNATURE = "X-Webhook-Signature"

    def __init__(self, secret: str):
        self._secret = secret.encode()

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def sign(self, body: bytes | str) -> str:
        """Return the hex signature of a request body."""
        if isinstance(body, str):
            body = body.encode()
        return hmac.new(self._secret, body, hashlib.sha256).hexdigest()

    def verify(self, body: bytes | str, signature: str | None) -> bool:
        """
        Verify a body signature.

        Always False when no secret is configured or no signature was sent.
        """
        if not signature or not self._secret:
            logger.warning("Missing webhook signature or secret")
            return False

        # Constant-time comparison to prevent timing attacks
        is_valid = hmac.compare_digest(self.sign(body), signature.strip().lower())

        if not is_valid:
            logger.warning("Invalid request signature")

        return is_valid


def create_webhook_signer() -> RequestSigner:
    """Create a signer for webhook requests."""
    from shared.config.settings import settings

    return RequestSigner(settings.webhook_secret)
