"""
Geocoding client for resolving submitted addresses to coordinates.

This module provides an async client for a Nominatim-compatible search API.
The service is free, rate-limited and unreliable, so every lookup runs through
an explicit retry state machine with a bounded number of attempts.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from mutual_aid.core.errors import (
    InvalidAddressError,
    InvalidCoordinatesError,
    ServiceUnavailableError,
)
from mutual_aid.models.dtos import GeocodeResult

logger = logging.getLogger(__name__)

# Client errors that mean the query itself is malformed; retrying cannot help.
MALFORMED_INPUT_STATUSES = frozenset({400, 422})


class GeocodeState(str, Enum):
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    INVALID_ADDRESS = "invalid_address"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_FAILURE = "transient_failure"
    SERVICE_UNAVAILABLE = "service_unavailable"


TERMINAL_STATES = frozenset({
    GeocodeState.SUCCESS,
    GeocodeState.NOT_FOUND,
    GeocodeState.INVALID_ADDRESS,
    GeocodeState.SERVICE_UNAVAILABLE,
})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule for geocoding lookups."""
    max_attempts: int = 3
    base_delay: float = 1.0

    def delay_for(self, state: GeocodeState, attempt: int) -> float:
        """
        Backoff to wait after ``attempt`` (1-based) ended in ``state``.

        Rate limiting waits twice as long as other transient failures.
        """
        if state == GeocodeState.RATE_LIMITED:
            return attempt * 2 * self.base_delay
        if state == GeocodeState.TRANSIENT_FAILURE:
            return attempt * self.base_delay
        return 0.0

    def next_state(self, state: GeocodeState, attempt: int) -> GeocodeState:
        """Where to go after ``attempt`` ended in ``state``."""
        if state in TERMINAL_STATES:
            return state
        if attempt >= self.max_attempts:
            return GeocodeState.SERVICE_UNAVAILABLE
        return GeocodeState.ATTEMPTING


@dataclass
class AttemptOutcome:
    state: GeocodeState
    result: Optional[GeocodeResult] = None
    detail: str = ""


class GeocodingClient:
    """
    Async client for address geocoding.

    ``geocode`` returns coordinates, or None when the service answered but found
    nothing. It raises InvalidAddressError for malformed input,
    InvalidCoordinatesError when the service returns out-of-range data, and
    ServiceUnavailableError once the retry budget is spent.
    """

    def __init__(
        self,
        base_url: str = "https://nominatim.openstreetmap.org/search",
        user_agent: str = "MutualAidApp/1.0",
        timeout: float = 5.0,
        policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the geocoding client.

        Args:
            base_url: Search endpoint of the geocoding service
            user_agent: User-Agent header required by the service's usage policy
            timeout: Request timeout in seconds
            policy: Retry policy; defaults to 3 attempts with a 1 second base delay
            client: Optional pre-built HTTP client (tests inject a mock transport)
        """
        self.base_url = base_url
        self.timeout = timeout
        self.policy = policy or RetryPolicy()
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            timeout=httpx.Timeout(timeout),
        )

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Geocoding client closed")

    async def geocode(self, address: str, postal_code: str) -> Optional[GeocodeResult]:
        """
        Resolve an address and postal code to coordinates.

        Args:
            address: Street address
            postal_code: Five digit or ZIP+4 postal code

        Returns:
            GeocodeResult, or None when the address was not found
        """
        query = f"{address} {postal_code}"
        state = GeocodeState.ATTEMPTING
        attempt = 0
        outcome = AttemptOutcome(state)

        while state == GeocodeState.ATTEMPTING:
            attempt += 1
            outcome = await self._attempt(query, attempt)
            state = self.policy.next_state(outcome.state, attempt)

            if state == GeocodeState.ATTEMPTING:
                delay = self.policy.delay_for(outcome.state, attempt)
                logger.warning(
                    f"Geocoding attempt {attempt}/{self.policy.max_attempts} failed "
                    f"({outcome.state.value}: {outcome.detail}). Retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

        if state == GeocodeState.SUCCESS:
            return outcome.result
        if state == GeocodeState.NOT_FOUND:
            logger.info(f"Geocoding found no results for postal code {postal_code}")
            return None
        if state == GeocodeState.INVALID_ADDRESS:
            raise InvalidAddressError()

        logger.error(f"Geocoding failed after {attempt} attempts: {outcome.detail}")
        raise ServiceUnavailableError()

    async def _attempt(self, query: str, attempt: int) -> AttemptOutcome:
        """Issue one request and classify what came back."""
        try:
            logger.debug(f"Geocoding request (attempt {attempt})")
            response = await self.client.get(
                self.base_url,
                params={"q": query, "format": "json", "limit": 1},
            )
        except httpx.TimeoutException as e:
            return AttemptOutcome(GeocodeState.TRANSIENT_FAILURE, detail=f"timeout: {e}")
        except httpx.HTTPError as e:
            return AttemptOutcome(GeocodeState.TRANSIENT_FAILURE, detail=f"network error: {e}")

        if response.status_code in MALFORMED_INPUT_STATUSES:
            return AttemptOutcome(GeocodeState.INVALID_ADDRESS, detail=f"HTTP {response.status_code}")
        if response.status_code == 429:
            return AttemptOutcome(GeocodeState.RATE_LIMITED, detail="HTTP 429")
        if not response.is_success:
            return AttemptOutcome(GeocodeState.TRANSIENT_FAILURE, detail=f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            return AttemptOutcome(GeocodeState.TRANSIENT_FAILURE, detail=f"undecodable body: {e}")

        if not isinstance(data, list):
            return AttemptOutcome(GeocodeState.TRANSIENT_FAILURE, detail="unexpected response shape")
        if not data:
            return AttemptOutcome(GeocodeState.NOT_FOUND)

        return AttemptOutcome(GeocodeState.SUCCESS, result=self._parse_result(data[0]))

    @staticmethod
    def _parse_result(item: Any) -> GeocodeResult:
        """Convert the first search hit into validated coordinates."""
        try:
            return GeocodeResult(latitude=float(item["lat"]), longitude=float(item["lon"]))
        except (KeyError, TypeError, ValueError, PydanticValidationError) as e:
            logger.error(f"Geocoding service returned invalid coordinates: {item!r} ({e})")
            raise InvalidCoordinatesError() from None
