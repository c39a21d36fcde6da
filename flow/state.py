"""StateContainer — observable holder of one module's form data.

A container owns a flat dict snapshot built from a defaults factory. Every
mutation goes through a named operation (replace, patch, reset, set_processing
or a module-specific setter built on `_update`) and notifies subscribers
synchronously. `processing_state` maps a logical operation name to a bool and is
never part of a persisted record.
"""

import copy
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type

from pydantic import BaseModel, TypeAdapter

from flow.errors import ReentrantMutationError

PROCESSING_KEY = "processing_state"

Listener = Callable[[str, Dict[str, Any]], None]


class StateContainer:
    """Single-writer, synchronous, observable snapshot store.

    When a `schema` model is given, values written to fields it declares are
    validated against that field's annotation first; a mismatch raises
    pydantic's ValidationError (a ValueError) and nothing is written.
    """

    def __init__(self, name: str, defaults: Callable[[], Dict[str, Any]],
                 schema: Optional[Type[BaseModel]] = None):
        self.name = name
        self._defaults = defaults
        self._adapters: Dict[str, TypeAdapter] = {}
        if schema is not None:
            self._adapters = {
                field: TypeAdapter(info.annotation) for field, info in schema.model_fields.items()
            }
        self._state: Dict[str, Any] = self._fresh_defaults()
        self._listeners: List[Listener] = []
        self._read_depth = 0

    # ── Reads ───────────────────────────────────────────────────────────
    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the current state; safe to hand to predicates."""
        return copy.deepcopy(self._state)

    def get(self, field: str) -> Any:
        self._check_field(field)
        return copy.deepcopy(self._state[field])

    def defaults(self) -> Dict[str, Any]:
        return self._fresh_defaults()

    @property
    def fields(self) -> List[str]:
        return [k for k in self._state if k != PROCESSING_KEY]

    @contextmanager
    def reading(self) -> Iterator[None]:
        """Disallow mutation while predicates run (re-entrant safe)."""
        self._read_depth += 1
        try:
            yield
        finally:
            self._read_depth -= 1

    # ── Whole-snapshot operations ───────────────────────────────────────
    def replace(self, snapshot: Dict[str, Any]) -> None:
        """Bulk-replace: defaults overlaid with the known fields of `snapshot`.

        Processing flags survive a replace; in-flight operations still own them.
        """
        self._guard()
        fresh = self._fresh_defaults()
        for key, value in snapshot.items():
            if key == PROCESSING_KEY:
                continue
            if key not in fresh:
                logging.warning(f"[{self.name}] ignoring unknown field on replace: {key}")
                continue
            fresh[key] = value
        fresh.update(self._checked({k: v for k, v in fresh.items() if k != PROCESSING_KEY}))
        fresh[PROCESSING_KEY] = dict(self._state.get(PROCESSING_KEY, {}))
        self._state = fresh
        self._notify("replace")

    def patch(self, **fields: Any) -> None:
        """Merge-patch one or more named top-level fields."""
        self._guard()
        for key in fields:
            self._check_field(key)
            if key == PROCESSING_KEY:
                raise KeyError(f"{PROCESSING_KEY} is changed through set_processing()")
        self._state.update(self._checked(fields))
        self._notify("patch")

    def reset(self) -> None:
        """Back to documented defaults, processing flags included."""
        self._guard()
        self._state = self._fresh_defaults()
        self._notify("reset")

    # ── Processing flags ────────────────────────────────────────────────
    def set_processing(self, key: str, value: bool) -> None:
        self._guard()
        flags = dict(self._state.get(PROCESSING_KEY, {}))
        flags[key] = bool(value)
        self._state[PROCESSING_KEY] = flags
        self._notify("processing")

    def is_processing(self, key: str) -> bool:
        return bool(self._state.get(PROCESSING_KEY, {}).get(key, False))

    # ── Observers ───────────────────────────────────────────────────────
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_listeners(self) -> None:
        self._listeners.clear()

    # ── Helpers for module setters ──────────────────────────────────────
    def _update(self, reason: str, mutate: Callable[[Dict[str, Any]], None]) -> None:
        """Apply `mutate` to a working copy, then swap it in and notify."""
        self._guard()
        working = copy.deepcopy(self._state)
        mutate(working)
        changed = {k: v for k, v in working.items() if k in self._adapters and v != self._state.get(k)}
        working.update(self._checked(changed))
        self._state = working
        self._notify(reason)

    def _append_entity(self, path: Tuple[str, ...], entity: Dict[str, Any]) -> None:
        def mutate(state):
            _list_at(state, path).append(entity)
        self._update(f"add:{'.'.join(path)}", mutate)

    def _update_entity(self, path: Tuple[str, ...], entity_id: str, changes: Dict[str, Any],
                       model: Type[BaseModel]) -> None:
        """Merge `changes` into the entity with `entity_id`; unknown ids are a no-op."""
        unknown = set(changes) - set(model.model_fields) - {"id"}
        if unknown:
            raise KeyError(f"Unknown fields for {model.__name__}: {sorted(unknown)}")

        def mutate(state):
            items = _list_at(state, path)
            for i, item in enumerate(items):
                if item.get("id") == entity_id:
                    merged = {**item, **changes, "id": entity_id}
                    items[i] = model.model_validate(merged).model_dump()
        self._update(f"update:{'.'.join(path)}", mutate)

    def _remove_entity(self, path: Tuple[str, ...], entity_id: str) -> None:
        def mutate(state):
            items = _list_at(state, path)
            items[:] = [item for item in items if item.get("id") != entity_id]
        self._update(f"remove:{'.'.join(path)}", mutate)

    def _checked(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Deep copies of `fields`, validated where the schema declares the field."""
        checked = {}
        for key, value in fields.items():
            adapter = self._adapters.get(key)
            if adapter is None:
                checked[key] = copy.deepcopy(value)
            else:
                checked[key] = adapter.dump_python(adapter.validate_python(value))
        return checked

    def _fresh_defaults(self) -> Dict[str, Any]:
        state = copy.deepcopy(self._defaults())
        state.setdefault(PROCESSING_KEY, {})
        return state

    def _check_field(self, field: str) -> None:
        if field not in self._state:
            raise KeyError(f"Unknown field for {self.name}: {field}")

    def _guard(self) -> None:
        if self._read_depth:
            raise ReentrantMutationError(f"{self.name} mutated during predicate evaluation")

    def _notify(self, reason: str) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(reason, snap)
            except ReentrantMutationError:
                raise
            except Exception as e:
                logging.error(f"[{self.name}] listener failed on {reason}: {e}")


def _list_at(state: Dict[str, Any], path: Tuple[str, ...]) -> List[Dict[str, Any]]:
    node: Any = state
    for key in path:
        node = node[key]
    return node


def new_id() -> str:
    return str(uuid.uuid4())
