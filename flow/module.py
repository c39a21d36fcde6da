"""ModuleDefinition — everything that distinguishes one module instance from another."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from flow.llm import GenerationResult
from flow.reconciler import SchemaReconciler
from flow.state import StateContainer
from flow.steps import StepGraph

# container name → snapshot
States = Dict[str, Dict[str, Any]]


@dataclass(frozen=True)
class GenerationTarget:
    """A named generation action routed through a container's processing flags."""

    key: str
    kind: str  # "suggestions" | "section"
    container: str
    build_context: Callable[[States], Dict[str, Any]]
    apply: Callable[[StateContainer, GenerationResult], None]
    fallback: Callable[[States], GenerationResult]
    fields: Tuple[str, ...] = ()
    count: int = 3


@dataclass(frozen=True)
class ModuleDefinition:
    key: str
    container_factories: Mapping[str, Callable[[], StateContainer]]
    primary: str
    steps: StepGraph
    reconciler: SchemaReconciler
    targets: Mapping[str, GenerationTarget] = field(default_factory=dict)
    secondary: Optional[str] = None
    title_field: str = "title"

    def create_containers(self) -> Dict[str, StateContainer]:
        return {name: factory() for name, factory in self.container_factories.items()}
