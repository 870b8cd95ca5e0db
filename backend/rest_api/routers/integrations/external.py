"""
External API endpoints (proxied through circuit breaker and retry).
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from shared.config.settings import settings
from shared.utils.exceptions import ExternalServiceError
from rest_api.dependencies import get_external_client
from rest_api.schemas import ExternalResponse, PostCreate
from rest_api.services.external import ExternalApiClient


router = APIRouter(prefix="/api/v1/external", tags=["external"])


@router.get("/users/{user_id}", response_model=ExternalResponse)
async def get_user(user_id: str, client: ExternalApiClient = Depends(get_external_client)):
    user = await client.fetch_user(user_id)
    return {
        "success": True,
        "message": "User fetched successfully from external API",
        "data": user,
    }


@router.get("/posts", response_model=ExternalResponse)
async def list_posts(
    limit: int = Query(10, ge=1, le=100),
    client: ExternalApiClient = Depends(get_external_client),
):
    posts = await client.fetch_posts(limit)
    return {
        "success": True,
        "message": f"Fetched {len(posts)} posts from external API",
        "data": posts,
        "meta": {"count": len(posts), "limit": limit},
    }


@router.post("/posts", response_model=ExternalResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    post: PostCreate,
    client: ExternalApiClient = Depends(get_external_client),
):
    result = await client.create_post(post.model_dump(by_alias=True))
    return {
        "success": True,
        "message": "Post created successfully in external API",
        "data": result,
    }


@router.get("/health")
async def external_health(client: ExternalApiClient = Depends(get_external_client)):
    """Probe the external API and report the breaker state."""
    try:
        await client.fetch_user("1")
    except ExternalServiceError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "message": "External API is unhealthy",
                "error": e.detail,
                "circuitBreaker": client.breaker.state.value,
            },
        )
    return {
        "success": True,
        "message": "External API is healthy",
        "circuitBreaker": client.breaker.state.value,
        "features": {
            "timeout": settings.external_api_timeout,
            "retryAttempts": settings.external_api_retry_attempts,
            "retryDelay": settings.external_api_retry_delay,
            "circuitBreakerThreshold": client.breaker.config.failure_threshold,
        },
    }
