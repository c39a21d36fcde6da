"""Async tests for ModuleSession — load, save, auth resume, generation and staleness.

Tests cover:
- Title prompt before any network call
- Auth prompt and resume of the deferred save
- Generation fallback and processing-flag cleanup
- Stale load/generation results discarded
- Persistence failures surfaced as banners with local state kept
- Record-id mismatch reported as not found
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from flow.errors import GenerationError, PersistenceError
from flow.llm import Suggestion
from flow.session import LOADING, SAVING, ModuleSession
from modules.offer import OFFER_MODULE
from tests.fakes import FakeGenerator, ScriptedGateway
from workers.auth import AuthSession
from workers.persistence import PersistenceGateway


def _data(snapshot):
    return {k: v for k, v in snapshot.items() if k != "processing_state"}


# ── Tests: Save ───────────────────────────────────────────────────────────


class TestSave:

    @pytest.mark.asyncio
    async def test_blank_title_prompts_without_network(self, auth, generator):
        gateway = MagicMock()
        gateway.save = AsyncMock()
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        session.primary.set_title("   ")

        assert await session.handle_save() is None
        assert session.show_title_prompt is True
        gateway.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_title_retries_save(self, offer_session):
        offer_session.primary.set_title("")
        await offer_session.handle_save()

        saved = await offer_session.submit_title("Launch Offer")

        assert saved["id"]
        assert offer_session.show_title_prompt is False
        assert offer_session.record_id == saved["id"]

    @pytest.mark.asyncio
    async def test_signed_out_save_defers_until_auth(self, store, generator):
        auth = AuthSession()
        session = ModuleSession(OFFER_MODULE, PersistenceGateway(auth, store), auth, generator)
        session.primary.set_audience("Indie hackers")

        assert await session.handle_save() is None
        assert auth.prompt_visible and auth.pending_action == "save"
        assert not session.primary.is_processing(SAVING)

        saved = await session.handle_auth_success("user-9")

        assert saved["payload"]["audience"] == "Indie hackers"
        assert auth.prompt_visible is False
        item = await store.aget(("user_module_data", "user-9"), "offer")
        assert item.value["id"] == saved["id"]

    @pytest.mark.asyncio
    async def test_cancelled_auth_drops_pending_save(self, store, generator):
        auth = AuthSession()
        session = ModuleSession(OFFER_MODULE, PersistenceGateway(auth, store), auth, generator)
        await session.handle_save()
        session.cancel_auth()
        assert auth.pending_action is None
        assert await session.handle_auth_success("user-9") is None

    @pytest.mark.asyncio
    async def test_save_failure_keeps_local_state(self, auth, generator):
        gateway = MagicMock()
        gateway.save = AsyncMock(side_effect=PersistenceError("store down"))
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        session.primary.set_audience("Keep this text")

        assert await session.handle_save() is None
        assert session.primary.get("audience") == "Keep this text"
        assert SAVING in session.view()["errors"]
        assert not session.primary.is_processing(SAVING)

    @pytest.mark.asyncio
    async def test_unserializable_state_sets_banner(self, offer_session):
        # a value that bypassed the setters, e.g. written by an older client
        offer_session.primary._state["offer_rating"] = "five"

        assert await offer_session.handle_save() is None
        assert SAVING in offer_session.tracker.errors()
        assert offer_session.primary.get("offer_rating") == "five"
        assert not offer_session.primary.is_processing(SAVING)

    @pytest.mark.asyncio
    async def test_save_during_generation_persists_current_data(self, gateway, auth):
        gate = asyncio.Event()
        generator = FakeGenerator(result=[Suggestion(text="Templates")], gate=gate)
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        session.primary.set_audience("Agencies with a waitlist")

        task = asyncio.create_task(session.generate("advantages"))
        await asyncio.sleep(0)
        assert session.primary.is_processing("advantages")

        saved = await session.handle_save()

        assert saved["payload"]["audience"] == "Agencies with a waitlist"
        assert saved["payload"]["advantages"] == []
        assert session.primary.is_processing("advantages")
        assert not session.primary.is_processing(SAVING)

        gate.set()
        assert await task is True
        assert [a["text"] for a in session.primary.get("advantages")] == ["Templates"]
        assert not session.primary.is_processing("advantages")

    @pytest.mark.asyncio
    async def test_read_only_never_saves(self, auth, generator):
        gateway = MagicMock()
        gateway.save = AsyncMock()
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator, read_only=True)
        assert await session.handle_save() is None
        gateway.save.assert_not_called()


# ── Tests: Load ───────────────────────────────────────────────────────────


class TestLoad:

    @pytest.mark.asyncio
    async def test_save_then_open_round_trips(self, offer_session, gateway, auth, generator):
        offer = offer_session.primary
        offer.set_audience("Coaches with a waitlist")
        risk = offer.add_risk("No time")
        offer.add_assurance(risk, "Two hours a week")
        saved = await offer_session.handle_save()

        reopened = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        await reopened.open(saved["id"])

        assert reopened.not_found is False
        assert reopened.record_id == saved["id"]
        assert _data(reopened.primary.snapshot()) == _data(offer.snapshot())

    @pytest.mark.asyncio
    async def test_open_without_id_resets(self, offer_session):
        offer_session.primary.set_audience("leftover")
        await offer_session.open()
        assert offer_session.primary.get("audience") == ""

    @pytest.mark.asyncio
    async def test_mismatched_record_id_is_not_found(self, offer_session, gateway, auth, generator):
        await offer_session.handle_save()

        other = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        other.primary.set_audience("unsaved edits")
        await other.open("some-other-id")

        assert other.not_found is True
        assert other.primary.get("audience") == ""
        assert not other.primary.is_processing(LOADING)

    @pytest.mark.asyncio
    async def test_load_failure_sets_banner(self, auth, generator):
        gateway = MagicMock()
        gateway.load = AsyncMock(side_effect=PersistenceError("timeout"))
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        session.primary.set_audience("local work")

        assert await session.load() is False
        assert session.primary.get("audience") == "local work"
        assert LOADING in session.tracker.errors()

    @pytest.mark.asyncio
    async def test_stale_load_is_discarded(self, auth, generator):
        gate = asyncio.Event()
        gateway = ScriptedGateway([
            (gate, {"id": "r1", "audience": "older response"}),
            (None, {"id": "r1", "audience": "newer response"}),
        ])
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)

        first = asyncio.create_task(session.load())
        await asyncio.sleep(0)
        assert session.primary.is_processing(LOADING)

        assert await session.load() is True
        assert session.primary.is_processing(LOADING)  # first call still in flight

        gate.set()
        assert await first is False
        assert session.primary.get("audience") == "newer response"
        assert not session.primary.is_processing(LOADING)

    @pytest.mark.asyncio
    async def test_read_only_open_does_not_load(self, auth, generator):
        gateway = MagicMock()
        gateway.load = AsyncMock()
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator, read_only=True)
        await session.open("rec-1")
        gateway.load.assert_not_called()


# ── Tests: Generation ─────────────────────────────────────────────────────


class TestGeneration:

    @pytest.mark.asyncio
    async def test_failure_applies_fallback_and_clears_flag(self, gateway, auth):
        generator = FakeGenerator(error=GenerationError("quota"))
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)

        assert await session.generate("advantages") is True

        advantages = session.primary.get("advantages")
        assert len(advantages) == 1
        assert advantages[0]["text"] == "Faster time to value"
        assert session.primary.is_processing("advantages") is False

    @pytest.mark.asyncio
    async def test_suggestions_are_deduplicated(self, gateway, auth):
        generator = FakeGenerator(result=[Suggestion(text="Templates"), Suggestion(text="templates ")])
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        await session.generate("advantages")
        assert [a["text"] for a in session.primary.get("advantages")] == ["Templates"]

    @pytest.mark.asyncio
    async def test_context_carries_worksheet(self, gateway, auth):
        generator = FakeGenerator(result=[])
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)
        session.primary.set_audience("Designers")
        await session.generate("risks")
        context = generator.calls[0]
        assert context["target"] == "risks"
        assert context["data"]["audience"] == "Designers"

    @pytest.mark.asyncio
    async def test_assurance_fallback_covers_each_open_risk(self, gateway, auth):
        session = ModuleSession(OFFER_MODULE, gateway, auth, FakeGenerator(error=GenerationError("x")))
        r1 = session.primary.add_risk("Too pricey")
        r2 = session.primary.add_risk("Too slow")
        await session.generate("assurances")
        assert sorted(a["risk_id"] for a in session.primary.get("assurances")) == sorted([r1, r2])
        assert session.primary.risks_without_assurances == []

    @pytest.mark.asyncio
    async def test_result_after_teardown_is_discarded(self, gateway, auth):
        gate = asyncio.Event()
        generator = FakeGenerator(result=[Suggestion(text="Late idea")], gate=gate)
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator)

        task = asyncio.create_task(session.generate("advantages"))
        await asyncio.sleep(0)
        session.teardown()
        gate.set()

        assert await task is False
        assert session.primary.get("advantages") == []

    @pytest.mark.asyncio
    async def test_unknown_target(self, offer_session):
        with pytest.raises(KeyError):
            await offer_session.generate("haiku")

    @pytest.mark.asyncio
    async def test_read_only_skips_generation(self, gateway, auth):
        generator = FakeGenerator(result=[Suggestion(text="x")])
        session = ModuleSession(OFFER_MODULE, gateway, auth, generator, read_only=True)
        assert await session.generate("advantages") is False
        assert generator.calls == []


class TestView:

    def test_view_summary(self, offer_session):
        view = offer_session.view()
        assert view["module"] == "offer"
        assert view["current_step"] == 0
        assert view["phases"] == ["Core Offer", "Risk Management", "Landing Page", "Finalize"]
        assert len(view["steps"]) == 8
        assert view["state"]["offer"]["title"] == "Untitled Offer"


class TestSignOut:

    def test_sign_out_tears_down(self, offer_session, auth):
        offer_session.primary.set_audience("Designers")
        offer_session.sign_out()
        assert auth.is_authenticated is False
        assert offer_session.closed is True
        assert offer_session.primary.get("audience") == ""
        assert offer_session.view()["authenticated"] is False
