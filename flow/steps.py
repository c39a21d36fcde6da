"""StepGraph — ordered, immutable step definitions with declared prerequisites.

Each step names the steps whose data it depends on. The graph is validated at
construction: ids are unique, every prerequisite exists and sits earlier in the
order (which also rules out cycles). A step is unlocked when its own predicate
holds and every prerequisite is unlocked too.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from flow.errors import StepGraphError

State = Dict[str, Any]
Predicate = Callable[[State, Optional[State]], bool]


def always(primary: State, secondary: Optional[State] = None) -> bool:
    return True


@dataclass(frozen=True)
class StepDefinition:
    """One unit of the guided workflow."""

    id: str
    title: str
    phase: str
    is_unlocked: Predicate = always
    is_complete: Predicate = always
    prerequisites: Tuple[str, ...] = field(default_factory=tuple)


class StepGraph:
    """Validated, read-only sequence of StepDefinitions."""

    def __init__(self, steps: Sequence[StepDefinition]):
        if not steps:
            raise StepGraphError("A step graph needs at least one step")
        self._steps: Tuple[StepDefinition, ...] = tuple(steps)
        self._index: Dict[str, int] = {}
        for i, step in enumerate(self._steps):
            if step.id in self._index:
                raise StepGraphError(f"Duplicate step id: {step.id}")
            self._index[step.id] = i
        self._validate_prerequisites()

    def _validate_prerequisites(self) -> None:
        for i, step in enumerate(self._steps):
            for prereq in step.prerequisites:
                if prereq not in self._index:
                    raise StepGraphError(f"{step.id}: unknown prerequisite {prereq}")
                if self._index[prereq] >= i:
                    raise StepGraphError(
                        f"{step.id}: prerequisite {prereq} must come earlier in the order"
                    )

    # ── Lookup ──────────────────────────────────────────────────────────
    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self):
        return iter(self._steps)

    def __getitem__(self, index: int) -> StepDefinition:
        return self._steps[index]

    def index_of(self, step_id: str) -> int:
        try:
            return self._index[step_id]
        except KeyError:
            raise StepGraphError(f"Unknown step id: {step_id}") from None

    @property
    def ids(self) -> List[str]:
        return [s.id for s in self._steps]

    def phases(self) -> List[str]:
        """Distinct phases in first-seen order, for progress display."""
        seen: List[str] = []
        for step in self._steps:
            if step.phase not in seen:
                seen.append(step.phase)
        return seen

    # ── Predicates ──────────────────────────────────────────────────────
    def is_unlocked(self, index: int, primary: State, secondary: Optional[State] = None) -> bool:
        return self._unlocked(index, primary, secondary, {})

    def _unlocked(self, index: int, primary: State, secondary: Optional[State],
                  memo: Dict[int, bool]) -> bool:
        if index in memo:
            return memo[index]
        step = self._steps[index]
        result = bool(step.is_unlocked(primary, secondary)) and all(
            self._unlocked(self._index[p], primary, secondary, memo) for p in step.prerequisites
        )
        memo[index] = result
        return result

    def is_complete(self, index: int, primary: State, secondary: Optional[State] = None) -> bool:
        return bool(self._steps[index].is_complete(primary, secondary))
