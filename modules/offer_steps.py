"""Offer module step graph.

Unlock predicates look only at data entered in earlier steps and are looser
than the completion predicate of the step that produces that data (one
character of audience unlocks "results"; ten are needed to complete
"audience").
"""

from config import MIN_STATEMENT_LENGTH
from flow.steps import StepDefinition, StepGraph, always


def _busy(state, *keys) -> bool:
    flags = state.get("processing_state", {})
    return any(flags.get(k) for k in keys)


def _hero(state) -> dict:
    return state["landing_page"]["hero"]


# ── Core offer ─────────────────────────────────────────────────────────
def audience_complete(state, _=None) -> bool:
    return len(state["audience"].strip()) >= MIN_STATEMENT_LENGTH and not _busy(state, "audience")


def results_unlocked(state, _=None) -> bool:
    return len(state["audience"].strip()) >= 1


def results_complete(state, _=None) -> bool:
    results = state["top_results"]
    return (
        state["offer_rating"] is not None
        and all(results[k].strip() for k in ("tangible", "intangible", "improvement"))
    )


def advantages_unlocked(state, _=None) -> bool:
    return bool(state["top_results"]["tangible"].strip())


def advantages_complete(state, _=None) -> bool:
    return len(state["advantages"]) >= 1 and not _busy(state, "advantages")


# ── Risk management ────────────────────────────────────────────────────
def risks_unlocked(state, _=None) -> bool:
    return len(state["advantages"]) >= 1


def risks_complete(state, _=None) -> bool:
    return (
        len(state["risks"]) >= 1
        and len(state["assurances"]) >= 1
        and not _busy(state, "risks", "assurances")
    )


def enhancers_unlocked(state, _=None) -> bool:
    return len(state["assurances"]) >= 1


def enhancers_complete(state, _=None) -> bool:
    return len(state["bonuses"]) >= 1 and len(state["onboarding_steps"]) >= 1


# ── Landing page ───────────────────────────────────────────────────────
def landing_page_unlocked(state, _=None) -> bool:
    return len(state["bonuses"]) >= 1


def landing_page_complete(state, _=None) -> bool:
    hero = _hero(state)
    problem = state["landing_page"]["problem"]
    return (
        all(hero[k] for k in ("tagline", "sub_copy", "cta_text"))
        and bool(problem["alternatives_problems"])
        and bool(problem["underlying_problem"])
        and len(state["landing_page"]["solution_steps"]) > 0
        and not _busy(state, "hero")
    )


def proof_unlocked(state, _=None) -> bool:
    return bool(_hero(state)["tagline"]) and len(state["landing_page"]["solution_steps"]) > 0


def proof_complete(state, _=None) -> bool:
    proof = state["social_proof"]
    return (
        len(state["risk_reversals"]) >= 1
        and any(proof[k] for k in ("testimonials", "case_studies", "logos", "numbers"))
        and bool(state["cta_text"])
    )


# ── Finalize ───────────────────────────────────────────────────────────
def refine_unlocked(state, _=None) -> bool:
    return len(state["risk_reversals"]) >= 1 and bool(state["cta_text"])


def refine_complete(state, _=None) -> bool:
    headlines = state["refined_headlines"]
    body = state["refined_body_copy"]
    return (
        any(headlines[k] for k in ("hero", "problem", "solution"))
        and any(body[k] for k in ("hero", "problem", "solution"))
        and state["aesthetics_checklist_completed"]
        and state["offer_scorecard"] is not None
    )


OFFER_STEPS = StepGraph([
    StepDefinition("define_audience", "Define Audience", "Core Offer",
                   always, audience_complete),
    StepDefinition("define_results", "Define Results", "Core Offer",
                   results_unlocked, results_complete, ("define_audience",)),
    StepDefinition("define_advantages", "Define Advantages", "Core Offer",
                   advantages_unlocked, advantages_complete, ("define_results",)),
    StepDefinition("manage_risks", "Risks & Assurances", "Risk Management",
                   risks_unlocked, risks_complete, ("define_advantages",)),
    StepDefinition("add_enhancers", "Bonuses & Onboarding", "Risk Management",
                   enhancers_unlocked, enhancers_complete, ("manage_risks",)),
    StepDefinition("build_landing_page", "Build Landing Page", "Landing Page",
                   landing_page_unlocked, landing_page_complete, ("add_enhancers",)),
    StepDefinition("landing_page_proof", "Social Proof & CTA", "Landing Page",
                   proof_unlocked, proof_complete, ("build_landing_page",)),
    StepDefinition("refine", "Refinement & Finalization", "Finalize",
                   refine_unlocked, refine_complete, ("landing_page_proof",)),
])
