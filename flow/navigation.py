"""Deterministic navigation — rule-based gating over step indices.

Forward moves consult the StepGraph predicates against fresh snapshots of the
containers; backward moves are never gated. A refused transition is a no-op
that returns False, never a clamp to the nearest valid index.
"""

import logging
from contextlib import ExitStack
from typing import Any, Dict, Optional, Tuple

from flow.state import StateContainer
from flow.steps import StepDefinition, StepGraph


class NavigationController:
    """Finite-state machine over `current_index` in [0, len(graph) - 1]."""

    def __init__(self, graph: StepGraph, primary: StateContainer,
                 secondary: Optional[StateContainer] = None, read_only: bool = False):
        self.graph = graph
        self.primary = primary
        self.secondary = secondary
        self.read_only = read_only
        self._current = 0

    # ── State ───────────────────────────────────────────────────────────
    @property
    def current_index(self) -> int:
        return self._current

    @property
    def current_step(self) -> StepDefinition:
        return self.graph[self._current]

    @property
    def step_count(self) -> int:
        return len(self.graph)

    def is_last_step(self) -> bool:
        """The terminal step offers commit/save instead of "next"."""
        return self._current == len(self.graph) - 1

    def reset(self) -> None:
        self._current = 0

    # ── Predicates (evaluated fresh on every call, never cached) ────────
    def _snapshots(self) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        primary = self.primary.snapshot()
        secondary = self.secondary.snapshot() if self.secondary is not None else None
        return primary, secondary

    def _evaluate(self, check, index: int) -> bool:
        primary, secondary = self._snapshots()
        with ExitStack() as stack:
            stack.enter_context(self.primary.reading())
            if self.secondary is not None:
                stack.enter_context(self.secondary.reading())
            return check(index, primary, secondary)

    def is_step_unlocked(self, index: int) -> bool:
        if not 0 <= index < len(self.graph):
            return False
        if self.read_only:
            return True
        return self._evaluate(self.graph.is_unlocked, index)

    def is_step_complete(self, index: int) -> bool:
        if not 0 <= index < len(self.graph):
            return False
        return self._evaluate(self.graph.is_complete, index)

    def can_go_next(self) -> bool:
        if self._current >= len(self.graph) - 1:
            return False
        return self.read_only or self.is_step_complete(self._current)

    # ── Transitions ─────────────────────────────────────────────────────
    def go_next(self) -> bool:
        if not self.can_go_next():
            logging.debug(f"go_next refused at step {self._current}")
            return False
        self._current += 1
        return True

    def go_previous(self) -> bool:
        if self._current <= 0:
            return False
        self._current -= 1
        return True

    def go_to_step(self, index: int) -> bool:
        """History is always revisitable; jumping ahead needs the target unlocked."""
        if not 0 <= index < len(self.graph):
            return False
        if index <= self._current or self.is_step_unlocked(index):
            self._current = index
            return True
        logging.debug(f"go_to_step({index}) refused from step {self._current}")
        return False

    def go_to(self, step_id: str) -> bool:
        return self.go_to_step(self.graph.index_of(step_id))

    # ── Progress view ───────────────────────────────────────────────────
    def describe(self) -> list[dict]:
        """Per-step flags for progress display."""
        return [
            {
                "id": step.id,
                "title": step.title,
                "phase": step.phase,
                "unlocked": self.is_step_unlocked(i),
                "complete": self.is_step_complete(i),
                "current": i == self._current,
            }
            for i, step in enumerate(self.graph)
        ]
