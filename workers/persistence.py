"""PersistenceGateway — async load/save boundary keyed by user and module.

Records live in a LangGraph key-value store at namespace
(STORE_NAMESPACE, user_id) under key `module_key`, as
{"id", "data", "updatedAt"}. The gateway resolves the current user itself
through the auth collaborator and wraps every storage failure in
PersistenceError.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from langgraph.store.base import BaseStore
from langgraph.store.memory import InMemoryStore

from config import STORE_NAMESPACE
from flow.errors import AuthRequiredError, PersistenceError
from workers.auth import AuthSession


class PersistenceGateway:
    """Loads and saves one JSON record per (user, module)."""

    def __init__(self, auth: AuthSession, store: Optional[BaseStore] = None,
                 namespace: str = STORE_NAMESPACE):
        self.auth = auth
        self.store = store if store is not None else InMemoryStore()
        self.namespace = namespace

    def _namespace_for(self, user_id: str) -> tuple[str, ...]:
        return (self.namespace, user_id)

    async def load(self, module_key: str) -> Optional[Dict[str, Any]]:
        """Return `{"id", **data}` for the user's record, or None.

        With nobody signed in there is nothing to load; that is not an error.
        """
        user_id = self.auth.current_user_id
        if user_id is None:
            logging.warning(f"load({module_key}) called without a signed-in user")
            return None
        try:
            item = await self.store.aget(self._namespace_for(user_id), module_key)
        except Exception as e:
            logging.error(f"Error fetching data for module {module_key}: {e}")
            raise PersistenceError(f"Failed to load {module_key}") from e
        if item is None:
            return None
        value = item.value
        data = value.get("data")
        if not isinstance(data, dict):
            raise PersistenceError(f"Stored record for {module_key} has no data")
        return {"id": value.get("id"), **copy.deepcopy(data)}

    async def save(self, module_key: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Upsert the user's record; returns `{"id", **payload}`."""
        user_id = self.auth.current_user_id
        if user_id is None:
            raise AuthRequiredError(f"Cannot save {module_key}: user not signed in")
        namespace = self._namespace_for(user_id)
        try:
            existing = await self.store.aget(namespace, module_key)
            record_id = existing.value.get("id") if existing is not None else None
            record = {
                "id": record_id or str(uuid.uuid4()),
                "data": copy.deepcopy(payload),
                "updatedAt": datetime.now(timezone.utc).isoformat(),
            }
            await self.store.aput(namespace, module_key, record)
        except Exception as e:
            logging.error(f"Error saving data for module {module_key}: {e}")
            raise PersistenceError(f"Failed to save {module_key}") from e
        logging.info(f"Saved data for module: {module_key}")
        return {"id": record["id"], **payload}
