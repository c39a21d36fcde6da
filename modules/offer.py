"""Offer module — irresistible-offer worksheet and landing-page builder.

Container `offer` holds every field of the current record plus an ephemeral
chat transcript that is never saved. Removing a risk removes the assurances and
risk reversals that point at it; assurances pointing at unknown risks (from old
records or added before their risk) are tolerated and reported by
`orphaned_assurances`.
"""

from typing import Any, Dict, List, Optional

from flow.llm import SectionDraft, Suggestion
from flow.module import GenerationTarget, ModuleDefinition, States
from flow.state import StateContainer, new_id
from modules.offer_records import (
    CONTAINER,
    MODULE_KEY,
    Advantage,
    Assurance,
    Bonus,
    Hero,
    OfferRecordV2,
    OnboardingStep,
    Problem,
    Risk,
    RiskReversal,
    SolutionStep,
    TopResults,
    build_reconciler,
)
from modules.offer_steps import OFFER_STEPS

SOCIAL_PROOF_KINDS = ("testimonials", "case_studies", "logos", "numbers")
COPY_SECTIONS = ("hero", "problem", "solution")


def initial_offer_state() -> Dict[str, Any]:
    """Documented defaults: an empty current record plus UI-only fields."""
    state = OfferRecordV2().model_dump()
    state["chat_transcript"] = []
    state["processing_state"] = {}
    return state


class OfferStore(StateContainer):
    """Named setters for the offer worksheet."""

    def __init__(self):
        super().__init__(CONTAINER, initial_offer_state, OfferRecordV2)

    # ── Core offer ──────────────────────────────────────────────────────
    def set_title(self, title: str) -> None:
        self.patch(title=title)

    def set_offer_rating(self, rating: Optional[int]) -> None:
        self.patch(offer_rating=rating)

    def set_audience(self, statement: str) -> None:
        self.patch(audience=statement)

    def set_top_results(self, **results: str) -> None:
        merged = {**self.get("top_results"), **results}
        self.patch(top_results=TopResults.model_validate(merged).model_dump())

    # ── Advantages ──────────────────────────────────────────────────────
    def add_advantage(self, text: str, description: Optional[str] = None) -> str:
        entity = Advantage(id=new_id(), text=text, description=description).model_dump()
        self._append_entity(("advantages",), entity)
        return entity["id"]

    def update_advantage(self, advantage_id: str, **changes: Any) -> None:
        self._update_entity(("advantages",), advantage_id, changes, Advantage)

    def remove_advantage(self, advantage_id: str) -> None:
        self._remove_entity(("advantages",), advantage_id)

    # ── Risks & assurances ──────────────────────────────────────────────
    def add_risk(self, text: str) -> str:
        entity = Risk(id=new_id(), text=text).model_dump()
        self._append_entity(("risks",), entity)
        return entity["id"]

    def update_risk(self, risk_id: str, text: str) -> None:
        self._update_entity(("risks",), risk_id, {"text": text}, Risk)

    def remove_risk(self, risk_id: str) -> None:
        """Drop the risk plus the assurances and reversals that reference it."""
        def mutate(state):
            state["risks"] = [r for r in state["risks"] if r["id"] != risk_id]
            state["assurances"] = [a for a in state["assurances"] if a["risk_id"] != risk_id]
            state["risk_reversals"] = [r for r in state["risk_reversals"] if r["risk_id"] != risk_id]
        self._update("remove:risks", mutate)

    def add_assurance(self, risk_id: str, text: str) -> str:
        entity = Assurance(id=new_id(), risk_id=risk_id, text=text).model_dump()
        self._append_entity(("assurances",), entity)
        return entity["id"]

    def update_assurance(self, assurance_id: str, **changes: Any) -> None:
        self._update_entity(("assurances",), assurance_id, changes, Assurance)

    def remove_assurance(self, assurance_id: str) -> None:
        self._remove_entity(("assurances",), assurance_id)

    @property
    def risks_without_assurances(self) -> List[str]:
        covered = {a["risk_id"] for a in self.get("assurances")}
        return [r["id"] for r in self.get("risks") if r["id"] not in covered]

    @property
    def orphaned_assurances(self) -> List[str]:
        known = {r["id"] for r in self.get("risks")}
        return [a["id"] for a in self.get("assurances") if a["risk_id"] not in known]

    # ── Enhancers ───────────────────────────────────────────────────────
    def add_bonus(self, name: str, benefit: str = "", value: Optional[str] = None) -> str:
        entity = Bonus(id=new_id(), name=name, benefit=benefit, value=value).model_dump()
        self._append_entity(("bonuses",), entity)
        return entity["id"]

    def update_bonus(self, bonus_id: str, **changes: Any) -> None:
        self._update_entity(("bonuses",), bonus_id, changes, Bonus)

    def remove_bonus(self, bonus_id: str) -> None:
        self._remove_entity(("bonuses",), bonus_id)

    def add_onboarding_step(self, description: str, time_estimate: str = "") -> str:
        entity = OnboardingStep(id=new_id(), description=description,
                                time_estimate=time_estimate).model_dump()
        self._append_entity(("onboarding_steps",), entity)
        return entity["id"]

    def update_onboarding_step(self, step_id: str, **changes: Any) -> None:
        self._update_entity(("onboarding_steps",), step_id, changes, OnboardingStep)

    def remove_onboarding_step(self, step_id: str) -> None:
        self._remove_entity(("onboarding_steps",), step_id)

    # ── Landing page ────────────────────────────────────────────────────
    def set_hero(self, **fields: str) -> None:
        page = self.get("landing_page")
        page["hero"] = Hero.model_validate({**page["hero"], **fields}).model_dump()
        self.patch(landing_page=page)

    def set_problem(self, **fields: str) -> None:
        page = self.get("landing_page")
        page["problem"] = Problem.model_validate({**page["problem"], **fields}).model_dump()
        self.patch(landing_page=page)

    def add_solution_step(self, title: str, description: str = "") -> str:
        entity = SolutionStep(id=new_id(), title=title, description=description).model_dump()
        self._append_entity(("landing_page", "solution_steps"), entity)
        return entity["id"]

    def update_solution_step(self, step_id: str, **changes: Any) -> None:
        self._update_entity(("landing_page", "solution_steps"), step_id, changes, SolutionStep)

    def remove_solution_step(self, step_id: str) -> None:
        self._remove_entity(("landing_page", "solution_steps"), step_id)

    def add_risk_reversal(self, risk_id: str, text: str) -> str:
        entity = RiskReversal(id=new_id(), risk_id=risk_id, text=text).model_dump()
        self._append_entity(("risk_reversals",), entity)
        return entity["id"]

    def remove_risk_reversal(self, reversal_id: str) -> None:
        self._remove_entity(("risk_reversals",), reversal_id)

    def add_social_proof(self, kind: str, text: str) -> None:
        if kind not in SOCIAL_PROOF_KINDS:
            raise KeyError(f"Unknown social proof kind: {kind}")
        proof = self.get("social_proof")
        proof[kind].append(text)
        self.patch(social_proof=proof)

    def remove_social_proof(self, kind: str, index: int) -> None:
        proof = self.get("social_proof")
        proof[kind] = [item for i, item in enumerate(proof[kind]) if i != index]
        self.patch(social_proof=proof)

    def set_cta_text(self, text: str) -> None:
        self.patch(cta_text=text)

    # ── Refinement ──────────────────────────────────────────────────────
    def add_headline(self, section: str, headline: str) -> None:
        if section not in COPY_SECTIONS:
            raise KeyError(f"Unknown copy section: {section}")
        headlines = self.get("refined_headlines")
        headlines[section].append(headline)
        self.patch(refined_headlines=headlines)

    def remove_headline(self, section: str, index: int) -> None:
        headlines = self.get("refined_headlines")
        headlines[section] = [h for i, h in enumerate(headlines[section]) if i != index]
        self.patch(refined_headlines=headlines)

    def set_body_copy(self, section: str, text: str) -> None:
        if section not in COPY_SECTIONS:
            raise KeyError(f"Unknown copy section: {section}")
        body = self.get("refined_body_copy")
        body[section] = text
        self.patch(refined_body_copy=body)

    def set_aesthetics_checklist_completed(self, completed: bool) -> None:
        self.patch(aesthetics_checklist_completed=bool(completed))

    def set_offer_scorecard(self, scorecard: Optional[Dict[str, Any]]) -> None:
        self.patch(offer_scorecard=scorecard)

    # ── Ephemeral ───────────────────────────────────────────────────────
    def append_chat_message(self, role: str, content: str) -> None:
        transcript = self.get("chat_transcript")
        transcript.append({"role": role, "content": content})
        self.patch(chat_transcript=transcript)


# ── Generation targets ─────────────────────────────────────────────────
def _suggestions(result) -> List[Suggestion]:
    return list(result) if isinstance(result, list) else []


def _draft(result) -> Dict[str, str]:
    return dict(result.fields) if isinstance(result, SectionDraft) else {}


def _offer(states: States) -> Dict[str, Any]:
    return states[CONTAINER]


def _core_context(states: States) -> Dict[str, Any]:
    offer = _offer(states)
    return {
        "title": offer["title"],
        "audience": offer["audience"],
        "topResults": offer["top_results"],
        "advantages": [a["text"] for a in offer["advantages"]],
    }


def _audience_fallback(states: States) -> SectionDraft:
    title = _offer(states)["title"] or "this product"
    return SectionDraft(fields={
        "statement": f"Teams who want to get results with {title} without the usual trial and error.",
    })


def _apply_audience(store: OfferStore, result) -> None:
    statement = _draft(result).get("statement")
    if statement:
        store.set_audience(statement)


def _advantages_fallback(states: States) -> List[Suggestion]:
    goal = _offer(states)["top_results"]["tangible"] or "their goal"
    return [Suggestion(text="Faster time to value",
                       description=f"Users reach {goal} sooner than with the alternatives.")]


def _apply_advantages(store: OfferStore, result) -> None:
    existing = {a["text"].strip().lower() for a in store.get("advantages")}
    for s in _suggestions(result):
        if s.text.strip().lower() not in existing:
            store.add_advantage(s.text, s.description)
            existing.add(s.text.strip().lower())


def _risks_context(states: States) -> Dict[str, Any]:
    return {**_core_context(states), "risks": [r["text"] for r in _offer(states)["risks"]]}


def _risks_fallback(states: States) -> List[Suggestion]:
    return [Suggestion(text="It might take too long to see results.")]


def _apply_risks(store: OfferStore, result) -> None:
    existing = {r["text"].strip().lower() for r in store.get("risks")}
    for s in _suggestions(result):
        if s.text.strip().lower() not in existing:
            store.add_risk(s.text)
            existing.add(s.text.strip().lower())


def _uncovered_risks(states: States) -> List[Dict[str, str]]:
    offer = _offer(states)
    covered = {a["risk_id"] for a in offer["assurances"]}
    return [r for r in offer["risks"] if r["id"] not in covered]


def _assurances_context(states: States) -> Dict[str, Any]:
    return {**_core_context(states), "uncoveredRisks": _uncovered_risks(states)}


def _assurances_fallback(states: States) -> List[Suggestion]:
    return [
        Suggestion(text=f'We guarantee you\'ll overcome "{risk["text"]}" or we\'ll work with you until you do.',
                   ref=risk["id"])
        for risk in _uncovered_risks(states)
    ]


def _apply_assurances(store: OfferStore, result) -> None:
    """One assurance per uncovered risk; unreferenced suggestions fill the gaps in order."""
    uncovered = list(store.risks_without_assurances)
    for s in _suggestions(result):
        if s.ref and s.ref in uncovered:
            risk_id = s.ref
        elif not s.ref and uncovered:
            risk_id = uncovered[0]
        else:
            continue
        store.add_assurance(risk_id, s.text)
        uncovered.remove(risk_id)


def _bonuses_fallback(states: States) -> List[Suggestion]:
    return [Suggestion(text="Onboarding call", description="A guided kickoff so users get their first win in week one.")]


def _apply_bonuses(store: OfferStore, result) -> None:
    for s in _suggestions(result):
        store.add_bonus(s.text, s.description or "")


def _hero_context(states: States) -> Dict[str, Any]:
    offer = _offer(states)
    return {**_core_context(states), "assurances": [a["text"] for a in offer["assurances"]],
            "bonuses": [b["name"] for b in offer["bonuses"]]}


def _hero_fallback(states: States) -> SectionDraft:
    offer = _offer(states)
    goal = offer["top_results"]["tangible"] or "results"
    return SectionDraft(fields={
        "tagline": f"Get {goal} without the guesswork",
        "sub_copy": offer["audience"] or f"{offer['title']} shows you the fastest path to {goal}.",
        "cta_text": "Get started free",
    })


def _apply_hero(store: OfferStore, result) -> None:
    fields = {k: v for k, v in _draft(result).items() if k in Hero.model_fields}
    if fields:
        store.set_hero(**fields)


OFFER_TARGETS = {
    "audience": GenerationTarget("audience", "section", CONTAINER, _core_context,
                                 _apply_audience, _audience_fallback, fields=("statement",)),
    "advantages": GenerationTarget("advantages", "suggestions", CONTAINER, _core_context,
                                   _apply_advantages, _advantages_fallback),
    "risks": GenerationTarget("risks", "suggestions", CONTAINER, _risks_context,
                              _apply_risks, _risks_fallback),
    "assurances": GenerationTarget("assurances", "suggestions", CONTAINER, _assurances_context,
                                   _apply_assurances, _assurances_fallback),
    "bonuses": GenerationTarget("bonuses", "suggestions", CONTAINER, _core_context,
                                _apply_bonuses, _bonuses_fallback),
    "hero": GenerationTarget("hero", "section", CONTAINER, _hero_context,
                             _apply_hero, _hero_fallback, fields=tuple(Hero.model_fields)),
}


OFFER_MODULE = ModuleDefinition(
    key=MODULE_KEY,
    container_factories={CONTAINER: OfferStore},
    primary=CONTAINER,
    steps=OFFER_STEPS,
    reconciler=build_reconciler(),
    targets=OFFER_TARGETS,
)
