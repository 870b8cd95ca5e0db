"""
OAuth2 diagnostics endpoint.
"""

from fastapi import APIRouter, Depends

from shared.config.logging import get_logger, mask_token
from rest_api.dependencies import get_token_manager
from rest_api.schemas import TokenTestResponse
from rest_api.services.auth import TokenManager

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/oauth", tags=["oauth"])


@router.get("/test", response_model=TokenTestResponse)
async def test_token(manager: TokenManager = Depends(get_token_manager)):
    """Obtain the shared access token and return a masked preview of it."""
    logger.info("Testing OAuth2 token retrieval")
    token = await manager.get_access_token()
    state = await manager.get_state()
    return {
        "success": True,
        "message": "OAuth2 token retrieved successfully",
        "token": {
            "value": mask_token(token, visible=20),
            "length": len(token),
            "state": state.value,
        },
    }
