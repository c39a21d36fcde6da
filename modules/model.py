"""Model module — product-led growth model builder.

Two containers: `inputs` (the user, their outcomes, challenges and solutions,
the chosen model) and `packages` (features, pricing tiers and the pricing
strategy edited on the free model canvas). Removing a challenge also removes
the solutions attached to it.
"""

from typing import Any, Dict, List, Optional

from flow.llm import SectionDraft, Suggestion
from flow.module import GenerationTarget, ModuleDefinition, States
from flow.state import StateContainer, new_id
from modules.model_records import (
    INPUT_FIELDS,
    INPUTS,
    MODEL_TYPES,
    MODULE_KEY,
    PACKAGES,
    Challenge,
    IdealUser,
    ModelRecordV2,
    Outcome,
    PackageFeature,
    Packages,
    PricingStrategy,
    PricingTier,
    Solution,
    build_reconciler,
)
from modules.model_steps import MODEL_STEPS


def initial_inputs_state() -> Dict[str, Any]:
    record = ModelRecordV2().model_dump()
    state = {field: record[field] for field in INPUT_FIELDS}
    state["processing_state"] = {}
    return state


def initial_packages_state() -> Dict[str, Any]:
    state = Packages().model_dump()
    state["processing_state"] = {}
    return state


class ModelInputsStore(StateContainer):
    def __init__(self):
        super().__init__(INPUTS, initial_inputs_state, ModelRecordV2)

    def set_title(self, title: str) -> None:
        self.patch(title=title)

    def set_product_description(self, description: str) -> None:
        self.patch(product_description=description)

    def set_ideal_user(self, user: Optional[Dict[str, Any]]) -> None:
        self.patch(ideal_user=IdealUser.model_validate(user).model_dump() if user is not None else None)

    # ── Outcomes (one per level; the latest write wins) ────────────────
    def add_outcome(self, level: str, text: str) -> None:
        outcome = Outcome(level=level, text=text).model_dump()
        outcomes = [o for o in self.get("outcomes") if o["level"] != level]
        self.patch(outcomes=outcomes + [outcome])

    def update_outcome(self, level: str, text: str) -> None:
        self.add_outcome(level, text)

    # ── Challenges & solutions ─────────────────────────────────────────
    def add_challenge(self, title: str, description: str = "", level: str = "beginner",
                      magnitude: Any = 3) -> str:
        entity = Challenge(id=new_id(), title=title, description=description, level=level,
                           magnitude=magnitude).model_dump()
        self._append_entity(("challenges",), entity)
        return entity["id"]

    def update_challenge(self, challenge_id: str, **changes: Any) -> None:
        self._update_entity(("challenges",), challenge_id, changes, Challenge)

    def remove_challenge(self, challenge_id: str) -> None:
        def mutate(state):
            state["challenges"] = [c for c in state["challenges"] if c["id"] != challenge_id]
            state["solutions"] = [s for s in state["solutions"] if s["challenge_id"] != challenge_id]
        self._update("remove:challenges", mutate)

    def add_solution(self, text: str, challenge_id: Optional[str] = None, type: str = "general",
                     cost: str = "medium", category: Optional[str] = None) -> str:
        entity = Solution(id=new_id(), challenge_id=challenge_id, text=text, type=type,
                          cost=cost, category=category).model_dump()
        self._append_entity(("solutions",), entity)
        return entity["id"]

    def add_core_solution(self, text: str, challenge_id: Optional[str] = None, **extra: Any) -> str:
        return self.add_solution(text, challenge_id, category="core", **extra)

    def update_solution(self, solution_id: str, **changes: Any) -> None:
        self._update_entity(("solutions",), solution_id, changes, Solution)

    def remove_solution(self, solution_id: str) -> None:
        self._remove_entity(("solutions",), solution_id)

    # ── Model & analysis ───────────────────────────────────────────────
    def set_selected_model(self, model: Optional[str]) -> None:
        if model is not None and model not in MODEL_TYPES:
            raise ValueError(f"Unknown model type: {model}")
        self.patch(selected_model=model)

    def set_user_journey(self, journey: Optional[Dict[str, Any]]) -> None:
        self.patch(user_journey=journey)

    def set_call_to_action(self, text: Optional[str]) -> None:
        self.patch(call_to_action=text)

    def set_analysis(self, analysis: Optional[Dict[str, Any]]) -> None:
        self.patch(analysis=analysis)


class PackageStore(StateContainer):
    def __init__(self):
        super().__init__(PACKAGES, initial_packages_state, Packages)

    def add_feature(self, name: str, tier: str = "free", description: str = "",
                    category: str = "core", **extra: Any) -> str:
        entity = PackageFeature(id=new_id(), name=name, tier=tier, description=description,
                                category=category, **extra).model_dump()
        self._append_entity(("features",), entity)
        return entity["id"]

    def update_feature(self, feature_id: str, **changes: Any) -> None:
        self._update_entity(("features",), feature_id, changes, PackageFeature)

    def remove_feature(self, feature_id: str) -> None:
        self._remove_entity(("features",), feature_id)

    def add_pricing_tier(self, name: str, price: float = 0, features: Optional[List[str]] = None) -> str:
        entity = PricingTier(id=new_id(), name=name, price=price, features=features or []).model_dump()
        self._append_entity(("pricing_tiers",), entity)
        return entity["id"]

    def update_pricing_tier(self, tier_id: str, **changes: Any) -> None:
        self._update_entity(("pricing_tiers",), tier_id, changes, PricingTier)

    def remove_pricing_tier(self, tier_id: str) -> None:
        self._remove_entity(("pricing_tiers",), tier_id)

    def set_pricing_strategy(self, strategy: Optional[Dict[str, Any]]) -> None:
        self.patch(pricing_strategy=(
            PricingStrategy.model_validate(strategy).model_dump() if strategy is not None else None
        ))


# ── Generation targets ─────────────────────────────────────────────────
def _inputs(states: States) -> Dict[str, Any]:
    return states[INPUTS]


def _user_context(states: States) -> Dict[str, Any]:
    inputs = _inputs(states)
    return {
        "productDescription": inputs["product_description"],
        "idealUser": inputs["ideal_user"],
        "outcomes": inputs["outcomes"],
    }


def _ideal_user_fallback(states: States) -> SectionDraft:
    return SectionDraft(fields={
        "title": "Hands-on practitioner",
        "description": "Someone who already feels the problem daily and wants a faster way to solve it.",
        "motivation": "High",
        "ability": "Medium",
        "impact": "Saves hours every week once the product is part of their routine.",
    })


def _apply_ideal_user(store: ModelInputsStore, result) -> None:
    if not isinstance(result, SectionDraft) or not result.fields:
        return
    draft = {k: v for k, v in result.fields.items() if k in IdealUser.model_fields and k != "traits"}
    for level_field in ("motivation", "ability"):
        if draft.get(level_field) not in ("Low", "Medium", "High"):
            draft.pop(level_field, None)
    current = store.get("ideal_user") or {}
    store.set_ideal_user({**current, **draft})


def _challenges_context(states: States) -> Dict[str, Any]:
    return {**_user_context(states), "challenges": [c["title"] for c in _inputs(states)["challenges"]]}


def _challenges_fallback(states: States) -> List[Suggestion]:
    return [Suggestion(text="Getting set up takes too long",
                       description="New users stall before they see the first result.")]


def _apply_challenges(store: ModelInputsStore, result) -> None:
    existing = {c["title"].strip().lower() for c in store.get("challenges")}
    for s in result if isinstance(result, list) else []:
        if s.text.strip().lower() not in existing:
            store.add_challenge(s.text, s.description or "")
            existing.add(s.text.strip().lower())


def _solutions_context(states: States) -> Dict[str, Any]:
    inputs = _inputs(states)
    return {
        **_user_context(states),
        "challenges": [{"id": c["id"], "title": c["title"]} for c in inputs["challenges"]],
        "solutions": [s["text"] for s in inputs["solutions"]],
    }


def _solutions_fallback(states: States) -> List[Suggestion]:
    return [
        Suggestion(text=f"Guided walkthrough that removes: {c['title']}", ref=c["id"])
        for c in _inputs(states)["challenges"]
    ]


def _apply_solutions(store: ModelInputsStore, result) -> None:
    known = {c["id"] for c in store.get("challenges")}
    for s in result if isinstance(result, list) else []:
        store.add_solution(s.text, s.ref if s.ref in known else None)


MODEL_TARGETS = {
    "ideal_user": GenerationTarget("ideal_user", "section", INPUTS, _user_context,
                                   _apply_ideal_user, _ideal_user_fallback,
                                   fields=("title", "description", "motivation", "ability", "impact")),
    "challenges": GenerationTarget("challenges", "suggestions", INPUTS, _challenges_context,
                                   _apply_challenges, _challenges_fallback),
    "solutions": GenerationTarget("solutions", "suggestions", INPUTS, _solutions_context,
                                  _apply_solutions, _solutions_fallback),
}


MODEL_MODULE = ModuleDefinition(
    key=MODULE_KEY,
    container_factories={INPUTS: ModelInputsStore, PACKAGES: PackageStore},
    primary=INPUTS,
    secondary=PACKAGES,
    steps=MODEL_STEPS,
    reconciler=build_reconciler(),
    targets=MODEL_TARGETS,
)
