"""Remote store over the budget HTTP API.

Endpoints (relative to ``RemoteConfig.base_url``):

    GET    /envelopes
    GET    /income-sources
    GET    /envelope-income-allocations
    PATCH  /envelopes/{id}
    POST   /envelope-income-allocations
    GET    /onboarding/autosave
    POST   /onboarding/autosave
    DELETE /onboarding/autosave

Money crosses the wire as JSON numbers rounded to cents, dates as ISO-8601
strings. Wire field names differ from the model in a few places
(``current_amount``, ``typical_amount``, ``pay_cycle``); the mapping lives
here and nowhere else.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

import httpx
import structlog
from pydantic import ValidationError

from budgetmate_core.exceptions import ConfigurationError, RemoteStoreError
from budgetmate_core.models import AllocationMap, Envelope, IncomeSource
from budgetmate_core.money import coerce_money, round_money
from budgetmate_sync.config import RemoteConfig
from budgetmate_sync.interfaces.types import OnboardingDraft

logger = structlog.get_logger()

DRAFT_PATH = "/onboarding/autosave"


# =============================================================================
# WIRE MAPPING
# =============================================================================


def to_wire_value(value: Any) -> Any:
    """Convert a model value to its JSON form."""
    if isinstance(value, Decimal):
        return float(round_money(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_wire_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire_value(v) for v in value]
    return value


def envelope_from_wire(record: Mapping[str, Any]) -> Envelope:
    """Build an Envelope from an API record."""
    return Envelope.model_validate(
        {
            "id": str(record.get("id")),
            "name": record.get("name"),
            "icon": record.get("icon"),
            "subtype": record.get("subtype"),
            "target_amount": record.get("target_amount"),
            "frequency": record.get("frequency"),
            "custom_weeks": record.get("custom_weeks"),
            "due_date": record.get("due_date"),
            "priority": record.get("priority"),
            "current_balance": record.get("current_amount", record.get("current_balance")),
            "notes": record.get("notes"),
            "is_tracking_only": bool(record.get("is_tracking_only")),
            "archived": bool(record.get("is_archived", record.get("archived"))),
        }
    )


def income_source_from_wire(record: Mapping[str, Any]) -> IncomeSource:
    """Build an IncomeSource from an API record. Missing active flags mean active."""
    return IncomeSource.model_validate(
        {
            "id": str(record.get("id")),
            "name": record.get("name"),
            "amount": record.get("typical_amount", record.get("amount")),
            "frequency": record.get("pay_cycle", record.get("frequency")),
            "next_pay_date": record.get("next_pay_date"),
            "is_active": record.get("is_active") is not False,
        }
    )


def allocations_from_wire(payload: Any) -> dict[str, AllocationMap]:
    """Read ``{envelope_id: {income_source_id: amount}}``."""
    if not isinstance(payload, dict):
        return {}
    result: dict[str, AllocationMap] = {}
    for envelope_id, allocation in payload.items():
        if not isinstance(allocation, dict):
            continue
        result[str(envelope_id)] = {
            str(source_id): coerce_money(amount) for source_id, amount in allocation.items()
        }
    return result


def allocations_to_wire(envelope_id: str, allocations: AllocationMap) -> dict[str, Any]:
    return {
        "envelope_id": envelope_id,
        "allocations": [
            {"income_source_id": source_id, "allocation_amount": to_wire_value(coerce_money(amount))}
            for source_id, amount in allocations.items()
        ],
    }


# =============================================================================
# STORE
# =============================================================================


class HttpRemoteStore:
    """
    RemoteStore implementation backed by ``httpx.AsyncClient``.

    Every failure, transport or HTTP status, is raised as RemoteStoreError
    carrying the operation name, the status code and the entity id.
    """

    def __init__(
        self,
        config: Optional[RemoteConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the store.

        Args:
            config: Remote settings; loaded from the environment when omitted
            client: Pre-built client (tests pass one with a mock transport)

        Raises:
            ConfigurationError: If the base URL is empty
        """
        self.config = config or RemoteConfig()
        if not self.config.base_url:
            raise ConfigurationError(
                "Remote store base URL is empty",
                config_key="BUDGETMATE_REMOTE_BASE_URL",
                expected="http(s) URL of the budget API",
            )

        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=headers,
            timeout=self.config.timeout,
        )

    async def __aenter__(self) -> "HttpRemoteStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        entity_id: Optional[str] = None,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> Optional[httpx.Response]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning("remote_request_failed", operation=operation, entity_id=entity_id, error=str(e))
            raise RemoteStoreError(
                f"{method} {path} failed: {e}",
                operation=operation,
                entity_id=entity_id,
            ) from e

        if allow_not_found and response.status_code == 404:
            return None
        if response.is_error:
            logger.warning(
                "remote_request_rejected",
                operation=operation,
                entity_id=entity_id,
                status_code=response.status_code,
            )
            raise RemoteStoreError(
                f"{method} {path} returned {response.status_code}",
                operation=operation,
                status_code=response.status_code,
                entity_id=entity_id,
                recoverable=response.status_code >= 500 or response.status_code == 429,
            )
        return response

    def _json(self, response: httpx.Response, operation: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteStoreError(
                f"Invalid JSON from {operation}",
                operation=operation,
                status_code=response.status_code,
            ) from e

    async def load_envelopes(self) -> list[Envelope]:
        response = await self._request("GET", "/envelopes", operation="load_envelopes")
        payload = self._json(response, "load_envelopes") or []
        return [envelope_from_wire(record) for record in payload if isinstance(record, dict)]

    async def load_income_sources(self) -> list[IncomeSource]:
        response = await self._request("GET", "/income-sources", operation="load_income_sources")
        payload = self._json(response, "load_income_sources") or []
        return [income_source_from_wire(record) for record in payload if isinstance(record, dict)]

    async def load_allocations(self) -> dict[str, AllocationMap]:
        response = await self._request("GET", "/envelope-income-allocations", operation="load_allocations")
        return allocations_from_wire(self._json(response, "load_allocations"))

    async def update_envelope(self, envelope_id: str, fields: dict[str, Any]) -> None:
        await self._request(
            "PATCH",
            f"/envelopes/{envelope_id}",
            operation="update_envelope",
            entity_id=envelope_id,
            json=to_wire_value(fields),
        )

    async def replace_allocations(self, envelope_id: str, allocations: AllocationMap) -> None:
        await self._request(
            "POST",
            "/envelope-income-allocations",
            operation="replace_allocations",
            entity_id=envelope_id,
            json=allocations_to_wire(envelope_id, allocations),
        )

    async def load_draft(self) -> Optional[OnboardingDraft]:
        response = await self._request("GET", DRAFT_PATH, operation="load_draft", allow_not_found=True)
        if response is None:
            return None
        payload = self._json(response, "load_draft")
        if isinstance(payload, dict) and "draft" in payload:
            payload = payload["draft"]
        if not isinstance(payload, dict) or not payload:
            return None
        try:
            return OnboardingDraft.model_validate(payload)
        except ValidationError as e:
            raise RemoteStoreError(
                "Malformed draft from load_draft",
                operation="load_draft",
                status_code=response.status_code,
            ) from e

    async def save_draft(self, draft: OnboardingDraft) -> None:
        await self._request(
            "POST",
            DRAFT_PATH,
            operation="save_draft",
            json=draft.model_dump(mode="json"),
        )

    async def delete_draft(self) -> None:
        await self._request("DELETE", DRAFT_PATH, operation="delete_draft", allow_not_found=True)


__all__ = [
    "HttpRemoteStore",
    "envelope_from_wire",
    "income_source_from_wire",
    "allocations_from_wire",
    "allocations_to_wire",
    "to_wire_value",
]
