"""Fetch bookings from the remote booking API."""

from __future__ import annotations

import abc
import logging
from datetime import date
from typing import Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ProtocolError, TransportError
from .http_client import get_shared_client, record_client_error, record_client_success
from .models import Booking
from .time_normalizer import parse_remote_timestamp

logger = logging.getLogger(__name__)

# status id of confirmed bookings in the remote system
CONFIRMED_STATUS_ID = 2

# Maximum number of response characters echoed into the log on decode errors
MAX_LOGGED_BODY = 2000


class BookingSource(abc.ABC):
    """Anything that can report the current bookings of a set of resources."""

    @abc.abstractmethod
    async def fetch(self, resource_ids: set[int], start: date, end: date) -> list[Booking]:
        """Return confirmed bookings of ``resource_ids`` between the two dates.

        Raises:
            TransportError: network failure or non-success status
            ProtocolError: the response does not match the expected schema
            TimeParseError: a timestamp in the response cannot be parsed
        """


# ids are stored as SQLite INTEGER
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1


class _ResourceRef(BaseModel):
    id: int = Field(..., ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)


class _BookingBase(BaseModel):
    # this is the booking's id
    id: int = Field(..., ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    caption: str = ""
    resource: _ResourceRef


class _BookingCalculated(BaseModel):
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")


class _BookingData(BaseModel):
    base: _BookingBase
    calculated: _BookingCalculated


class BookingsResponse(BaseModel):
    """Top-level shape of ``GET /api/bookings``."""

    data: list[_BookingData]


class BookingsApiClient(BookingSource):
    """Client for the remote ``/api/bookings`` endpoint."""

    def __init__(
        self,
        host: str,
        login_token: str,
        shared_client: Optional[httpx.AsyncClient] = None,
        client_id: str = "booking_api",
        request_timeout: Optional[float] = None,
    ) -> None:
        """Initialize booking API client.

        Args:
            host: Remote host name; a full base URL (with scheme) is accepted too
            login_token: Token sent as ``Authorization: Login <token>``
            shared_client: Optional HTTP client; defaults to the shared pool client
            client_id: Identifier of the shared client for health tracking
            request_timeout: Timeout in seconds for the shared pool client
        """
        base = host if "://" in host else f"https://{host}"
        self.url = f"{base.rstrip('/')}/api/bookings"
        self._login_token = login_token
        self._client = shared_client
        self._client_id = client_id
        self._timeout = httpx.Timeout(request_timeout) if request_timeout else None

        logger.debug("Booking API client initialized for %s", self.url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await get_shared_client(self._client_id, timeout=self._timeout)

    @staticmethod
    def build_query(resource_ids: set[int], start: date, end: date) -> list[tuple[str, str]]:
        """Build the query string for a bookings request."""
        query = [("resource_ids[]", str(resource_id)) for resource_id in sorted(resource_ids)]
        query.append(("from", start.isoformat()))
        query.append(("to", end.isoformat()))
        query.append(("status_ids[]", str(CONFIRMED_STATUS_ID)))
        return query

    async def fetch(self, resource_ids: set[int], start: date, end: date) -> list[Booking]:
        if not resource_ids:
            logger.warning("No resources configured, skipping fetch")
            return []

        client = await self._get_client()
        try:
            response = await client.get(
                self.url,
                params=self.build_query(resource_ids, start, end),
                headers={
                    "accept": "application/json",
                    "Authorization": f"Login {self._login_token}",
                },
            )
        except httpx.TimeoutException as e:
            await record_client_error(self._client_id)
            raise TransportError(f"Timed out getting bookings from {self.url}: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, httpx.CookieConflict) as e:
            await record_client_error(self._client_id)
            raise TransportError(f"Cannot get bookings from {self.url}: {e}") from e

        if not response.is_success:
            await record_client_error(self._client_id)
            raise TransportError(
                f"Booking API answered HTTP {response.status_code}",
                status_code=response.status_code,
            )
        await record_client_success(self._client_id)

        return self.parse_response(response.content)

    @staticmethod
    def parse_response(content: bytes) -> list[Booking]:
        """Decode a bookings response body into bookings (UTC).

        Raises:
            ProtocolError: the body is not JSON of the expected shape
            TimeParseError: a start/end timestamp cannot be parsed
        """
        try:
            parsed = BookingsResponse.model_validate_json(content)
        except ValidationError as e:
            logger.warning("There was an error parsing the response of the booking API.")
            logger.warning(
                "The text received was: %s", content[:MAX_LOGGED_BODY].decode("utf-8", "replace")
            )
            raise ProtocolError(f"Cannot decode bookings response: {e}") from e

        return [
            Booking(
                booking_id=item.base.id,
                resource_id=item.base.resource.id,
                title=item.base.caption,
                start_time=parse_remote_timestamp(item.calculated.start_date),
                end_time=parse_remote_timestamp(item.calculated.end_date),
            )
            for item in parsed.data
        ]
