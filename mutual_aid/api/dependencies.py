"""
Shared FastAPI dependencies: database-backed stores, injected services,
request bodies and bearer-token authentication.
"""
import json
import logging
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mutual_aid.config.settings import settings
from mutual_aid.core.bulk_intake import BulkIntakeProcessor
from mutual_aid.core.errors import FieldError, ForbiddenError, PayloadTooLargeError, UnauthorizedError, ValidationError
from mutual_aid.core.login_throttle import LoginThrottle
from mutual_aid.core.security import TokenClaims, TokenService, get_token_service
from mutual_aid.core.submission_store import SubmissionStore
from mutual_aid.core.user_store import UserStore
from mutual_aid.integrations.geocoder import GeocodingClient
from mutual_aid.models.enums import REVIEWER_ROLES
from mutual_aid.utils.db_session import get_db_session
from mutual_aid.utils.sanitization import redact

logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


async def get_submission_store(session: AsyncSession = Depends(get_db_session)) -> SubmissionStore:
    return SubmissionStore(session)


async def get_user_store(session: AsyncSession = Depends(get_db_session)) -> UserStore:
    return UserStore(session)


async def get_bulk_processor(store: SubmissionStore = Depends(get_submission_store)) -> BulkIntakeProcessor:
    return BulkIntakeProcessor(store)


def get_geocoder(request: Request) -> GeocodingClient:
    return request.app.state.geocoder


def get_login_throttle(request: Request) -> LoginThrottle:
    return request.app.state.login_throttle


def client_key(request: Request) -> str:
    """Network address used to key per-client throttling."""
    return request.client.host if request.client else "unknown-ip"


async def get_json_body(request: Request) -> Any:
    """
    Decode the request body as JSON, refusing bodies over ``MAX_BODY_BYTES``.

    Strings are passed on exactly as sent; every query binds them as
    parameters. A redacted copy is kept on ``request.state`` so error logging
    can include the body without leaking passwords or tokens.
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > settings.MAX_BODY_BYTES:
        raise PayloadTooLargeError()
    raw = await request.body()
    if len(raw) > settings.MAX_BODY_BYTES:
        raise PayloadTooLargeError()
    if not raw:
        payload = None
    else:
        try:
            payload = json.loads(raw)
        except ValueError:
            raise ValidationError([FieldError(field="body", message="Malformed JSON body")]) from None
    request.state.sanitized_body = redact(payload)
    return payload


def _decode_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    token_service: TokenService,
) -> TokenClaims:
    if credentials is None:
        raise UnauthorizedError("Authentication required")
    return token_service.decode(credentials.credentials)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_service: TokenService = Depends(get_token_service),
) -> Optional[TokenClaims]:
    """
    Identity of the caller on public routes, if a valid token was sent.

    An invalid token on a public route is ignored and the caller is anonymous.
    """
    if credentials is None:
        return None
    try:
        claims = token_service.decode(credentials.credentials)
    except UnauthorizedError as e:
        logger.debug(f"Ignoring unusable token on public route: {e.message}")
        return None
    request.state.user_id = claims.user_id
    return claims


async def require_reviewer(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_service: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """
    Require a valid token belonging to a coordinator or admin.

    Raises:
        UnauthorizedError: Missing, malformed, tampered or expired token.
        ForbiddenError: Valid token without a reviewer role.
    """
    claims = _decode_credentials(credentials, token_service)
    request.state.user_id = claims.user_id
    if claims.role not in REVIEWER_ROLES:
        logger.warning(f"User {claims.user_id} ({claims.role.value}) denied access to {request.url.path}")
        raise ForbiddenError("Insufficient permissions")
    return claims
