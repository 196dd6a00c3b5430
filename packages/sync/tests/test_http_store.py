"""Tests for the HTTP remote store."""

import asyncio
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from budgetmate_core.exceptions import ConfigurationError, RemoteStoreError
from budgetmate_core.models import Frequency, Priority
from budgetmate_sync.config import RemoteConfig
from budgetmate_sync.http_store import HttpRemoteStore, to_wire_value
from budgetmate_sync.interfaces.types import OnboardingDraft

BASE_URL = "https://budget.test/api"


def make_store(handler) -> HttpRemoteStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return HttpRemoteStore(RemoteConfig(base_url=BASE_URL), client=client)


def run(coro):
    return asyncio.run(coro)


class TestLoading:
    """Reading the snapshot resources."""

    def test_load_envelopes_maps_wire_fields(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/api/envelopes"
            return httpx.Response(
                200,
                json=[
                    {
                        "id": "rent",
                        "name": "Rent",
                        "subtype": "bill",
                        "target_amount": "1200.5",
                        "frequency": "monthly",
                        "due_date": 1,
                        "priority": "essential",
                        "current_amount": -20,
                        "is_archived": False,
                    },
                    {"id": "old", "name": "Old", "is_archived": True, "frequency": "6_monthly"},
                ],
            )

        envelopes = run(make_store(handler).load_envelopes())

        rent, old = envelopes
        assert rent.target_amount == Decimal("1200.50")
        assert rent.priority == Priority.ESSENTIAL
        assert rent.current_balance == Decimal("-20.00")
        assert rent.due_date == 1
        assert old.archived is True
        assert old.frequency == Frequency.SEMI_ANNUAL

    def test_load_income_sources(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/income-sources"
            return httpx.Response(
                200,
                json=[
                    {"id": "A", "name": "Salary", "typical_amount": 2500, "pay_cycle": "fortnightly",
                     "next_pay_date": "2026-02-06"},
                    {"id": "B", "name": "Old job", "typical_amount": 100, "is_active": False},
                ],
            )

        salary, old_job = run(make_store(handler).load_income_sources())

        assert salary.amount == Decimal("2500.00")
        assert salary.frequency == Frequency.FORTNIGHTLY
        assert salary.next_pay_date == date(2026, 2, 6)
        assert salary.is_active is True
        assert old_job.is_active is False

    def test_load_allocations(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"rent": {"A": 1000, "B": "200.005"}, "junk": 5})

        allocations = run(make_store(handler).load_allocations())

        assert allocations == {"rent": {"A": Decimal("1000.00"), "B": Decimal("200.01")}}


class TestSaving:
    """Per-envelope saves."""

    def test_update_envelope_sends_patch(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        fields = {
            "target_amount": Decimal("92.305"),
            "frequency": Frequency.QUARTERLY,
            "due_date": date(2026, 3, 1),
            "notes": None,
        }
        run(make_store(handler).update_envelope("rent", fields))

        assert captured["method"] == "PATCH"
        assert captured["path"] == "/api/envelopes/rent"
        assert captured["body"] == {
            "target_amount": 92.31,
            "frequency": "quarterly",
            "due_date": "2026-03-01",
            "notes": None,
        }

    def test_replace_allocations_sends_full_set(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["body"] = json.loads(request.content)
            return httpx.Response(201)

        run(make_store(handler).replace_allocations("rent", {"A": Decimal("1000"), "B": Decimal("0")}))

        assert captured["method"] == "POST"
        assert captured["body"] == {
            "envelope_id": "rent",
            "allocations": [
                {"income_source_id": "A", "allocation_amount": 1000.0},
                {"income_source_id": "B", "allocation_amount": 0.0},
            ],
        }


class TestErrors:
    """Failures surface as RemoteStoreError."""

    def test_server_error_is_recoverable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        with pytest.raises(RemoteStoreError) as exc_info:
            run(make_store(handler).update_envelope("rent", {"name": "x"}))

        error = exc_info.value
        assert error.status_code == 503
        assert error.operation == "update_envelope"
        assert error.entity_id == "rent"
        assert error.recoverable is True
        assert error.details["status_code"] == 503

    def test_client_error_is_not_recoverable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "bad"})

        with pytest.raises(RemoteStoreError) as exc_info:
            run(make_store(handler).replace_allocations("rent", {}))
        assert exc_info.value.recoverable is False

    def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteStoreError) as exc_info:
            run(make_store(handler).load_envelopes())
        assert exc_info.value.status_code is None
        assert exc_info.value.operation == "load_envelopes"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        with pytest.raises(RemoteStoreError):
            run(make_store(handler).load_income_sources())

    def test_empty_base_url(self):
        with pytest.raises(ConfigurationError) as exc_info:
            HttpRemoteStore(RemoteConfig(base_url="  "))
        assert exc_info.value.config_key == "BUDGETMATE_REMOTE_BASE_URL"


class TestDraftEndpoints:
    """Onboarding autosave resource."""

    def test_missing_draft(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/onboarding/autosave"
            return httpx.Response(404)

        assert run(make_store(handler).load_draft()) is None

    def test_empty_draft(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"draft": None})

        assert run(make_store(handler).load_draft()) is None

    def test_wrapped_draft_with_camel_case_steps(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "draft": {
                        "currentStep": 8,
                        "highestStepReached": 9,
                        "lastSavedAt": "2026-01-10T09:00:00Z",
                        "envelopes": [{"id": "rent", "target_amount": 1200}],
                    }
                },
            )

        draft = run(make_store(handler).load_draft())

        assert draft.current_step == 8
        assert draft.highest_step == 9
        assert draft.last_saved_at.year == 2026
        assert draft.envelopes[0]["id"] == "rent"

    def test_malformed_draft_is_a_store_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"current_step": 3, "envelopes": "oops"})

        with pytest.raises(RemoteStoreError) as exc_info:
            run(make_store(handler).load_draft())

        assert exc_info.value.operation == "load_draft"
        assert exc_info.value.status_code == 200

    def test_save_and_delete_draft(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.method, json.loads(request.content) if request.content else None))
            return httpx.Response(200)

        store = make_store(handler)
        run(store.save_draft(OnboardingDraft(current_step=3, highest_step=4, full_name="Sam")))
        run(store.delete_draft())

        (save_method, body), (delete_method, _) = requests
        assert save_method == "POST"
        assert body["current_step"] == 3
        assert body["full_name"] == "Sam"
        assert delete_method == "DELETE"


class TestWireValues:
    """Model values converted for JSON."""

    def test_nested_values(self):
        assert to_wire_value({"a": [Decimal("1.005"), Priority.IMPORTANT]}) == {"a": [1.01, "important"]}
