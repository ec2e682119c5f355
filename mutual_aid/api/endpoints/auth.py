"""
Authentication API endpoints: login and registration.
"""
import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from mutual_aid.api.dependencies import client_key, get_json_body, get_login_throttle, get_user_store
from mutual_aid.core.errors import RateLimitedError, UnauthorizedError
from mutual_aid.core.login_throttle import LoginThrottle, ThrottleDecision
from mutual_aid.core.security import TokenService, get_token_service, hash_password, verify_password
from mutual_aid.core.user_store import UserStore
from mutual_aid.core.validator import validate_login, validate_registration
from mutual_aid.models.dtos import LoginResponse, UserDTO
from mutual_aid.models.enums import UserRole

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    payload: Any = Depends(get_json_body),
    throttle: LoginThrottle = Depends(get_login_throttle),
    users: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
) -> LoginResponse:
    """
    Exchange a username and password for a bearer token.

    The throttle is consulted before credentials are checked, so a blocked
    client gets 429 even with the right password.
    """
    credentials = validate_login(payload)
    key = client_key(request)

    if throttle.check(key) == ThrottleDecision.BLOCKED:
        raise RateLimitedError("Too many login attempts. Please try again later.")

    user = await users.get_by_username(credentials.username)
    # bcrypt is CPU bound; keep it off the event loop
    if user is None or not await asyncio.to_thread(verify_password, credentials.password, user.password_hash):
        failures = throttle.record_failure(key)
        logger.warning(f"Failed login for '{credentials.username}' from {key} ({failures} in window)")
        raise UnauthorizedError("Invalid username or password")

    throttle.record_success(key)
    token = tokens.issue(user_id=user.id, role=UserRole(user.role), username=user.username)
    request.state.user_id = user.id
    logger.info(f"User '{user.username}' logged in")
    return LoginResponse(token=token, user=UserDTO.model_validate(user))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: Any = Depends(get_json_body),
    users: UserStore = Depends(get_user_store),
) -> dict:
    """Create a contributor account."""
    data = validate_registration(payload)
    password_hash = await asyncio.to_thread(hash_password, data.password)
    user_id = await users.create(
        username=data.username,
        email=str(data.email),
        password_hash=password_hash,
        role=UserRole.CONTRIBUTOR,
    )
    return {"message": "User registered successfully", "userId": user_id}
