"""ModuleSession — one user's authoring session for one module.

Owns the containers, the navigation controller and the status tracker, and
implements the async actions the UI calls: open/load, save (with title and
auth prompts), and per-target content generation. Every async action takes a
ticket from the StatusTracker, clears its processing flag in `finally`, and
drops its result if a newer call of the same kind was issued meanwhile.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from flow.errors import (
    AuthRequiredError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from flow.llm import ContentGenerator
from flow.module import ModuleDefinition, States
from flow.navigation import NavigationController
from flow.state import StateContainer
from langsmith_tracing import operation_trace
from workers.auth import AuthSession
from workers.persistence import PersistenceGateway
from workers.status_tracker import StatusTracker, Ticket

LOADING = "loading"
SAVING = "saving"


class ModuleSession:
    """Constructed on module entry, torn down on logout or module switch."""

    def __init__(self, definition: ModuleDefinition, gateway: PersistenceGateway,
                 auth: AuthSession, generator: ContentGenerator, read_only: bool = False,
                 tracker: Optional[StatusTracker] = None, session_id: Optional[str] = None):
        self.id = session_id or str(uuid.uuid4())
        self.definition = definition
        self.gateway = gateway
        self.auth = auth
        self.generator = generator
        self.read_only = read_only
        self.tracker = tracker or StatusTracker()
        self.containers: Dict[str, StateContainer] = definition.create_containers()
        self.primary = self.containers[definition.primary]
        self.secondary = self.containers[definition.secondary] if definition.secondary else None
        self.navigation = NavigationController(definition.steps, self.primary, self.secondary,
                                               read_only=read_only)
        self.record_id: Optional[str] = None
        self.show_title_prompt = False
        self.not_found = False
        self.closed = False

    @property
    def module_key(self) -> str:
        return self.definition.key

    def container(self, name: str) -> StateContainer:
        try:
            return self.containers[name]
        except KeyError:
            raise KeyError(f"Unknown container for {self.module_key}: {name}") from None

    def states(self) -> States:
        return {name: c.snapshot() for name, c in self.containers.items()}

    # ── Lifecycle ───────────────────────────────────────────────────────
    async def open(self, record_id: Optional[str] = None) -> None:
        """Fresh defaults without an id; otherwise load (never in read-only mode)."""
        self.navigation.reset()
        self.not_found = False
        self.record_id = record_id
        if not record_id:
            self.reset_state()
            return
        if not self.read_only:
            await self.load(record_id)

    def reset_state(self) -> None:
        for container in self.containers.values():
            container.reset()
        self._restore_in_flight_flags()

    def teardown(self) -> None:
        """Invalidate in-flight work and drop all state, banners included."""
        self.tracker.reset()
        for container in self.containers.values():
            container.reset()
            container.clear_listeners()
        self.closed = True
        logging.info(f"Session {self.id} ({self.module_key}) torn down")

    def sign_out(self) -> None:
        """Logout ends the session: forget the user, then tear down."""
        self.auth.sign_out()
        self.teardown()

    # ── Load ────────────────────────────────────────────────────────────
    async def load(self, record_id: Optional[str] = None) -> bool:
        """Fetch and reconcile the stored record; returns True when state was replaced."""
        wanted = record_id or self.record_id
        ticket = self._begin(LOADING, self.primary)
        try:
            with operation_trace(self.id, "load", {"module": self.module_key}):
                raw = await self.gateway.load(self.module_key)
            if not self.tracker.is_current(ticket):
                logging.info(f"Discarding stale load result for {self.module_key}")
                return False
            if raw is not None and wanted and raw.get("id") != wanted:
                raise NotFoundError(f"{self.module_key} record {wanted} not found")
            self.definition.reconciler.reconcile(raw, self.containers)
            self._restore_in_flight_flags()
            if raw is not None:
                self.record_id = raw.get("id")
            self.tracker.dismiss_error(LOADING)
            return True
        except NotFoundError as e:
            logging.warning(str(e))
            self.not_found = True
            self.record_id = None
            self.reset_state()
            return False
        except PersistenceError as e:
            if self.tracker.is_current(ticket):
                logging.error(f"Error loading {self.module_key} data: {e}")
                self.tracker.set_error(LOADING, f"Failed to load {self.module_key} data")
            return False
        finally:
            self._settle(ticket, self.primary)

    # ── Save ────────────────────────────────────────────────────────────
    def validate_for_save(self) -> None:
        title = self.primary.get(self.definition.title_field)
        if not isinstance(title, str) or not title.strip():
            raise ValidationError(self.definition.title_field, "A title is required before saving")

    async def handle_save(self) -> Optional[Dict[str, Any]]:
        """Save the allow-listed fields; returns the persisted record or None."""
        if self.read_only:
            return None
        try:
            self.validate_for_save()
        except ValidationError:
            self.show_title_prompt = True
            return None

        ticket = self._begin(SAVING, self.primary)
        self.tracker.dismiss_error(SAVING)
        try:
            payload = self.definition.reconciler.serialize(self.containers)
            with operation_trace(self.id, "save", {"module": self.module_key}):
                saved = await self.gateway.save(self.module_key, payload)
            if self.tracker.is_current(ticket):
                self.record_id = saved["id"]
            return saved
        except AuthRequiredError:
            self.auth.request_auth("save")
            return None
        except PersistenceError as e:
            logging.error(f"Error saving {self.module_key}: {e}")
            self.tracker.set_error(SAVING, f"Failed to save {self.module_key}")
            return None
        finally:
            self._settle(ticket, self.primary)

    async def submit_title(self, title: str) -> Optional[Dict[str, Any]]:
        """Title-prompt confirm: store the title and retry the save if it is non-blank."""
        self.primary.patch(**{self.definition.title_field: title})
        if not title.strip():
            return None
        self.show_title_prompt = False
        return await self.handle_save()

    def dismiss_title_prompt(self) -> None:
        self.show_title_prompt = False

    async def handle_auth_success(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Resume exactly the action deferred behind the auth prompt."""
        action = self.auth.complete_auth(user_id)
        if action == "save":
            return await self.handle_save()
        return None

    def cancel_auth(self) -> None:
        self.auth.cancel_auth()

    # ── Generation ──────────────────────────────────────────────────────
    async def generate(self, target_key: str) -> bool:
        """Run one generation target; on failure apply its template fallback."""
        try:
            target = self.definition.targets[target_key]
        except KeyError:
            raise KeyError(f"Unknown generation target for {self.module_key}: {target_key}") from None
        if self.read_only:
            return False
        container = self.containers[target.container]
        ticket = self._begin(target.key, container)
        try:
            context = {
                "module": self.module_key,
                "target": target.key,
                "kind": target.kind,
                "fields": list(target.fields),
                "count": target.count,
                "data": target.build_context(self.states()),
            }
            try:
                with operation_trace(self.id, f"generate:{target.key}", {"module": self.module_key}):
                    result = await self.generator.generate(context)
            except Exception as e:
                logging.warning(f"Generation for {target.key} failed, using template: {e}")
                result = target.fallback(self.states())
            if not self.tracker.is_current(ticket):
                logging.info(f"Discarding stale {target.key} generation")
                return False
            target.apply(container, result)
            return True
        finally:
            self._settle(ticket, container)

    # ── Processing flags ────────────────────────────────────────────────
    def _begin(self, kind: str, container: StateContainer) -> Ticket:
        ticket = self.tracker.begin(kind)
        container.set_processing(kind, True)
        return ticket

    def _settle(self, ticket: Ticket, container: StateContainer) -> None:
        still_running = self.tracker.finish(ticket)
        container.set_processing(ticket.kind, still_running)

    def _restore_in_flight_flags(self) -> None:
        """A reset or bulk replace must not hide operations that are still running."""
        for kind in self.tracker.processing_kinds():
            target = self.definition.targets.get(kind)
            container = self.containers[target.container] if target else self.primary
            container.set_processing(kind, True)

    # ── UI view ─────────────────────────────────────────────────────────
    def view(self) -> Dict[str, Any]:
        nav = self.navigation
        return {
            "session_id": self.id,
            "module": self.module_key,
            "record_id": self.record_id,
            "read_only": self.read_only,
            "current_step": nav.current_index,
            "is_last_step": nav.is_last_step(),
            "can_go_next": nav.can_go_next(),
            "steps": nav.describe(),
            "phases": self.definition.steps.phases(),
            "show_title_prompt": self.show_title_prompt,
            "authenticated": self.auth.is_authenticated,
            "show_auth_prompt": self.auth.prompt_visible,
            "not_found": self.not_found,
            "errors": self.tracker.errors(),
            "state": self.states(),
        }
