"""
REST client for the hosted event backend.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Type

import requests

from ..domain.exceptions import (
    ExpiredError,
    ForbiddenError,
    LockedError,
    NicknameConflictError,
    NotFoundError,
    RateLimitedError,
    StoreError,
    ValidationError,
)
from ..domain.models import CreatedEvent, Event, EventResponse, Leaderboard, SubmitResult, TimeSlot
from .schemas import (
    CreatedEventPayload,
    EventWithResponsesPayload,
    HeatmapPayload,
    SubmitResultPayload,
    TimeSlotPayload,
    VerifyResultPayload,
    parse_payload,
)

logger = logging.getLogger(__name__)

ErrorMap = Dict[int, Type[StoreError]]

DEFAULT_ERRORS: ErrorMap = {
    400: ValidationError,
    401: ForbiddenError,
    404: NotFoundError,
    409: NicknameConflictError,
    410: ExpiredError,
}


class ApiClient:
    """
    Client for the event backend's JSON API.

    Endpoints:
        POST /events, GET /events/{id}, POST /events/{id}/verify,
        POST /events/{id}/lock, GET /events/{id}/heatmap, POST /responses

    Blocking requests run in a worker thread so callers can await them.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the API client.

        Args:
            base_url: Backend API root, e.g. https://example.com/api
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    async def create_event(
        self,
        title: str,
        start_date: str,
        passcode: Optional[str] = None
    ) -> CreatedEvent:
        body: Dict[str, Any] = {"title": title, "start_date": start_date}
        if passcode:
            body["passcode"] = passcode
        data = await self._call("POST", "/events", body)
        return parse_payload(CreatedEventPayload, data).to_domain()

    async def fetch_event_and_responses(self, event_id: str) -> Tuple[Event, List[EventResponse]]:
        data = await self._call("GET", f"/events/{event_id}")
        payload = parse_payload(EventWithResponsesPayload, data)
        return payload.event.to_domain(), [r.to_domain() for r in payload.responses]

    async def submit_response(
        self,
        event_id: str,
        nickname: str,
        fingerprint: str,
        availability: Dict[str, List[str]]
    ) -> SubmitResult:
        body = {
            "event_id": event_id,
            "nickname": nickname,
            "user_fingerprint": fingerprint,
            "availability": availability,
        }
        data = await self._call("POST", "/responses", body, errors={403: LockedError})
        return parse_payload(SubmitResultPayload, data).to_domain()

    async def verify_passcode(self, event_id: str, passcode: str, caller_id: str = "anonymous") -> bool:
        try:
            data = await self._call(
                "POST",
                f"/events/{event_id}/verify",
                {"passcode": passcode},
                headers={"X-Caller-Id": caller_id},
            )
        except (ValidationError, ForbiddenError):
            # 400 for a malformed passcode, 401 for a wrong one
            return False
        return parse_payload(VerifyResultPayload, data).valid

    async def lock_event(
        self,
        event_id: str,
        creator_token: str,
        final_slot: Optional[TimeSlot] = None
    ) -> None:
        body: Dict[str, Any] = {"creator_token": creator_token}
        if final_slot is not None:
            body["final_slot"] = TimeSlotPayload.from_domain(final_slot).model_dump()
        await self._call(
            "POST",
            f"/events/{event_id}/lock",
            body,
            errors={400: LockedError, 401: ForbiddenError, 403: ForbiddenError},
        )

    async def get_heatmap(self, event_id: str) -> Leaderboard:
        data = await self._call("GET", f"/events/{event_id}/heatmap")
        return parse_payload(HeatmapPayload, data).to_domain()

    async def _call(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        errors: Optional[ErrorMap] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        return await asyncio.to_thread(self._request, method, path, body, errors, headers)

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        errors: Optional[ErrorMap],
        headers: Optional[Dict[str, str]]
    ) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)

        try:
            response = self._session.request(
                method,
                url,
                json=body,
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Request to {url} failed: {e}") from e

        if response.ok:
            try:
                return response.json()
            except ValueError as e:
                raise StoreError(f"Response from {url} is not JSON") from e

        raise self._error_for(response, errors)

    def _error_for(self, response: requests.Response, errors: Optional[ErrorMap]) -> StoreError:
        status = response.status_code
        message = self._error_message(response)
        logger.debug("Request failed with HTTP %s: %s", status, message)

        if status == 429:
            retry_after = response.headers.get("Retry-After", "")
            return RateLimitedError(message, retry_after=int(retry_after) if retry_after.isdigit() else None)

        mapping = {**DEFAULT_ERRORS, **(errors or {})}
        error_type = mapping.get(status, StoreError)
        return error_type(message)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"HTTP {response.status_code} {response.reason or ''}".strip()

