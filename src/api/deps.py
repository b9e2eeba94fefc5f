"""FastAPI dependency injection functions."""

import secrets
from typing import Annotated

from fastapi import Depends, Header, Request

from src.api.middleware.error_handler import AuthenticationError, RateLimitError
from src.core.config import get_settings
from src.core.rate_limiter import InMemoryRateLimitStorage
from src.services.order_admin_service import OrderAdminService
from src.services.order_intake_service import OrderIntakeService
from src.services.order_tracking_service import OrderTrackingService


# Service accessors. Services are built once in the app lifespan and kept on
# app.state; tests replace them there.


def get_intake_service(request: Request) -> OrderIntakeService:
    return request.app.state.intake_service


def get_tracking_service(request: Request) -> OrderTrackingService:
    return request.app.state.tracking_service


def get_admin_service(request: Request) -> OrderAdminService:
    return request.app.state.admin_service


def get_track_rate_limiter(request: Request) -> InMemoryRateLimitStorage:
    return request.app.state.track_rate_limiter


IntakeServiceDep = Annotated[OrderIntakeService, Depends(get_intake_service)]
TrackingServiceDep = Annotated[OrderTrackingService, Depends(get_tracking_service)]
AdminServiceDep = Annotated[OrderAdminService, Depends(get_admin_service)]


async def require_admin(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> None:
    """Check the admin bearer token on back office routes.

    Args:
        authorization: The Authorization header value (Bearer token).

    Raises:
        AuthenticationError: 401 if the token is missing or wrong.
    """
    if not authorization:
        raise AuthenticationError("Authorization header required")

    # Extract the token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format. Expected: Bearer <token>")

    expected = get_settings().admin_api_token
    if not expected or not secrets.compare_digest(parts[1].encode(), expected.encode()):
        raise AuthenticationError("Invalid admin token")


AdminAuth = Depends(require_admin)


def client_key(request: Request) -> str:
    """Identify the caller for rate limiting, honoring X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def check_track_rate_limit(
    request: Request,
    limiter: Annotated[InMemoryRateLimitStorage, Depends(get_track_rate_limiter)],
) -> None:
    """Limit public tracking lookups per client.

    Raises:
        RateLimitError: If the client has exceeded the limit.
    """
    allowed, _, retry_after = await limiter.check_and_increment(f"track:{client_key(request)}")
    if not allowed:
        raise RateLimitError(
            message="Too many tracking requests. Please wait before trying again.",
            retry_after=retry_after,
        )


TrackRateLimit = Annotated[None, Depends(check_track_rate_limit)]
