"""SchemaReconciler — maps a stored record of any known schema version onto containers.

Stored payloads are wrapped in a versioned envelope
{"schemaVersion": n, "payload": {...}}. Records written before the envelope
existed are classified by marker fields: any field unique to the current shape
means "current", otherwise version 1. The payload is validated against the
pydantic model of its version, then folded through the migration chain up to
the current version and bulk-replaced into the containers.

Migrations are pure functions over camelCase wire dicts, so applying the chain
twice to the same record gives the same snapshot.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Iterable, Literal, Mapping, Optional, Sequence, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, create_model
from pydantic.alias_generators import to_camel

from flow.errors import PersistenceError, SchemaVersionError
from flow.state import StateContainer

ENVELOPE_VERSION_KEY = "schemaVersion"
ENVELOPE_PAYLOAD_KEY = "payload"

# Fixed namespace so ids minted for legacy entities are reproducible.
LEGACY_ID_NAMESPACE = uuid.UUID("6f1c7a52-3d0e-4b8e-9a51-2b7f0c9d4e11")


def stable_id(kind: str, index: int, text: Any) -> str:
    """Deterministic id for a legacy entity that was stored without one."""
    return str(uuid.uuid5(LEGACY_ID_NAMESPACE, f"{kind}:{index}:{text}"))


def with_ids(items: Optional[Iterable[Mapping[str, Any]]], kind: str, text_key: str) -> list[dict]:
    """Copy a list of entity dicts, minting stable ids where `id` is missing."""
    result = []
    for i, item in enumerate(items or []):
        entity = dict(item)
        if not entity.get("id"):
            entity["id"] = stable_id(kind, i, entity.get(text_key, ""))
        result.append(entity)
    return result


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; unknown keys ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RecordModel(WireModel):
    """A payload model that knows how to split into container snapshots."""

    container: ClassVar[str] = "main"

    def to_state(self) -> Dict[str, Dict[str, Any]]:
        return {self.container: self.model_dump()}

    @classmethod
    def from_state(cls, states: Mapping[str, Mapping[str, Any]]) -> "RecordModel":
        return cls.model_validate(dict(states[cls.container]))


@dataclass(frozen=True)
class Migration:
    """Lifts a wire payload from `from_version` to `from_version + 1`."""

    from_version: int
    apply: Callable[[Dict[str, Any]], Dict[str, Any]]


def _envelope_model(module_key: str, version: int, payload_model: Type[WireModel]) -> Type[BaseModel]:
    return create_model(
        f"{module_key}_EnvelopeV{version}",
        schema_version=(Literal[version], Field(alias=ENVELOPE_VERSION_KEY)),
        payload=(payload_model, Field(alias=ENVELOPE_PAYLOAD_KEY)),
    )


class SchemaReconciler:
    """Version detection, validation, migration fold and allow-listed serialization."""

    def __init__(self, module_key: str, versions: Mapping[int, Type[WireModel]],
                 migrations: Sequence[Migration], markers: Iterable[str],
                 allow_list: Mapping[str, Sequence[str]]):
        self.module_key = module_key
        self.versions = dict(versions)
        self.current_version = max(self.versions)
        self.markers = frozenset(markers)
        self.allow_list = {name: tuple(fields) for name, fields in allow_list.items()}
        self._migrations = {m.from_version: m for m in migrations}
        for v in range(min(self.versions), self.current_version):
            if v not in self._migrations:
                raise ValueError(f"{module_key}: no migration from schema version {v}")
        self.current_model = self.versions[self.current_version]
        if not issubclass(self.current_model, RecordModel):
            raise TypeError(f"{module_key}: current schema must be a RecordModel")
        self._envelopes = {
            v: _envelope_model(module_key, v, model) for v, model in self.versions.items()
        }

    # ── Classification ──────────────────────────────────────────────────
    def detect_version(self, raw: Mapping[str, Any]) -> int:
        if ENVELOPE_VERSION_KEY in raw and ENVELOPE_PAYLOAD_KEY in raw:
            version = raw[ENVELOPE_VERSION_KEY]
            if not isinstance(version, int) or isinstance(version, bool):
                raise PersistenceError(f"{self.module_key}: schemaVersion must be an integer")
            return version
        if self.markers & set(raw):
            return self.current_version
        return min(self.versions)

    def _validated_payload(self, raw: Mapping[str, Any]) -> tuple[int, Dict[str, Any]]:
        version = self.detect_version(raw)
        if version not in self.versions:
            raise SchemaVersionError(
                f"{self.module_key}: unsupported schema version {version} "
                f"(current is {self.current_version})"
            )
        try:
            if ENVELOPE_VERSION_KEY in raw and ENVELOPE_PAYLOAD_KEY in raw:
                envelope = self._envelopes[version].model_validate(dict(raw))
                payload = envelope.payload
            else:
                payload = self.versions[version].model_validate(dict(raw))
        except PydanticValidationError as e:
            logging.error(f"Malformed {self.module_key} record (v{version}): {e}")
            raise PersistenceError(f"Stored {self.module_key} record is malformed") from e
        return version, payload.model_dump(by_alias=True, mode="json")

    # ── Migration fold ──────────────────────────────────────────────────
    def upgrade(self, raw: Mapping[str, Any]) -> RecordModel:
        """Validate and migrate a stored record to the current schema model."""
        version, data = self._validated_payload(raw)
        for v in range(version, self.current_version):
            logging.info(f"Migrating {self.module_key} record v{v} -> v{v + 1}")
            data = self._migrations[v].apply(data)
        try:
            return self.current_model.model_validate(data)
        except PydanticValidationError as e:
            logging.error(f"Migrated {self.module_key} record failed validation: {e}")
            raise PersistenceError(f"Stored {self.module_key} record could not be migrated") from e

    def reconcile(self, raw: Optional[Mapping[str, Any]],
                  containers: Mapping[str, StateContainer]) -> None:
        """None resets every container; anything else replaces them wholesale."""
        if raw is None:
            for container in containers.values():
                container.reset()
            return
        states = self.upgrade(raw).to_state()
        for name, container in containers.items():
            container.replace(states.get(name, {}))

    # ── Save payload ────────────────────────────────────────────────────
    def serialize(self, containers: Mapping[str, StateContainer]) -> Dict[str, Any]:
        """Envelope holding only the allow-listed fields of each container."""
        states = {}
        for name, fields in self.allow_list.items():
            snap = containers[name].snapshot()
            states[name] = {field: snap[field] for field in fields}
        try:
            record = self.current_model.from_state(states)
        except PydanticValidationError as e:
            logging.error(f"Cannot serialize {self.module_key} state: {e}")
            raise PersistenceError(f"Current {self.module_key} data cannot be saved") from e
        return {
            ENVELOPE_VERSION_KEY: self.current_version,
            ENVELOPE_PAYLOAD_KEY: record.model_dump(by_alias=True, mode="json"),
        }
