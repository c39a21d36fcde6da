"""LangSmith tracing — one authoring session = one trace across load/save/generate calls."""

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Optional

import langsmith as ls
from langsmith.run_trees import RunTree

from config import LANGSMITH_TRACING, LANGSMITH_PROJECT

# In-memory store: session_id -> parent RunTree
_session_trace_store: dict[str, RunTree] = {}


def _ensure_env():
    """Ensure LangSmith env vars are set when tracing is enabled."""
    if LANGSMITH_TRACING:
        os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
        os.environ.setdefault("LANGCHAIN_PROJECT", LANGSMITH_PROJECT)


def _root_for(session_id: str) -> RunTree:
    root = _session_trace_store.get(session_id)
    if root is None:
        root = RunTree(name="authoring_session", run_type="chain")
        root.add_metadata({"session_id": session_id})
        root.add_tags(["guided-authoring", "session"])
        root.post()
        _session_trace_store[session_id] = root
    return root


@contextmanager
def operation_trace(session_id: str, operation: str, metadata: Optional[Dict[str, Any]] = None):
    """
    Group one session operation under the session's parent trace.
    A no-op unless LANGSMITH_TRACING is enabled.
    """
    if not LANGSMITH_TRACING:
        yield
        return

    _ensure_env()
    root = _root_for(session_id)
    with ls.tracing_context(
        project_name=LANGSMITH_PROJECT,
        enabled=True,
        parent=root,
        metadata={"session_id": session_id, "operation": operation, **(metadata or {})},
        tags=["guided-authoring", operation],
    ):
        yield


def clear_session_trace(session_id: str) -> None:
    """End the root run and remove it from the store when a session is torn down."""
    root = _session_trace_store.pop(session_id, None)
    if root:
        try:
            root.end()
            root.patch()
        except Exception as e:
            logging.warning(f"Could not close trace for session {session_id}: {e}")
