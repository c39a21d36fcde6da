"""Model module step graph; the canvas and analysis steps read the `packages` container."""

from config import MIN_STATEMENT_LENGTH
from flow.steps import StepDefinition, StepGraph, always


def _busy(state, key) -> bool:
    return bool(state.get("processing_state", {}).get(key))


def _outcome_text(state, level: str) -> str:
    for outcome in state["outcomes"]:
        if outcome["level"] == level:
            return outcome.get("text") or ""
    return ""


def _has_endgame(state) -> bool:
    return (
        len(_outcome_text(state, "beginner")) >= MIN_STATEMENT_LENGTH
        and len(_outcome_text(state, "intermediate")) >= MIN_STATEMENT_LENGTH
    )


def canvas_filled(packages) -> bool:
    """A free and a paid feature plus a pricing strategy with every list filled."""
    if packages is None:
        return False
    tiers = {f["tier"] for f in packages["features"]}
    strategy = packages["pricing_strategy"]
    if strategy is None:
        return False
    free, paid = strategy["free_package"], strategy["paid_package"]
    return (
        {"free", "paid"} <= tiers
        and len(free["limitations"]) > 0
        and len(free["conversion_goals"]) > 0
        and len(paid["value_metrics"]) > 0
        and (paid["target_conversion"] or 0) > 0
    )


def description_complete(state, _=None) -> bool:
    return len(state["product_description"]) >= MIN_STATEMENT_LENGTH and not _busy(state, "product_description")


def ideal_user_unlocked(state, _=None) -> bool:
    return len(state["product_description"]) >= MIN_STATEMENT_LENGTH


def ideal_user_complete(state, _=None) -> bool:
    return state["ideal_user"] is not None and not _busy(state, "ideal_user")


def endgame_unlocked(state, _=None) -> bool:
    return state["ideal_user"] is not None


def endgame_complete(state, _=None) -> bool:
    return _has_endgame(state) and not _busy(state, "user_endgame")


def challenges_unlocked(state, _=None) -> bool:
    return _has_endgame(state)


def challenges_complete(state, _=None) -> bool:
    return len(state["challenges"]) > 0 and not _busy(state, "challenges")


def solutions_unlocked(state, _=None) -> bool:
    return len(state["challenges"]) > 0


def solutions_complete(state, _=None) -> bool:
    return len(state["solutions"]) > 0 and not _busy(state, "solutions")


def model_selection_unlocked(state, _=None) -> bool:
    return len(state["solutions"]) > 0


def model_selection_complete(state, _=None) -> bool:
    return state["selected_model"] is not None and not _busy(state, "model_selection")


def canvas_unlocked(state, _=None) -> bool:
    return state["selected_model"] is not None


def canvas_complete(state, packages=None) -> bool:
    return canvas_filled(packages) and not (packages and _busy(packages, "free_model_canvas"))


def analysis_unlocked(state, packages=None) -> bool:
    return canvas_filled(packages)


MODEL_STEPS = StepGraph([
    StepDefinition("product_description", "Product Description", "Understand the User",
                   always, description_complete),
    StepDefinition("ideal_user", "Ideal User", "Understand the User",
                   ideal_user_unlocked, ideal_user_complete, ("product_description",)),
    StepDefinition("user_endgame", "User Endgame", "Understand the User",
                   endgame_unlocked, endgame_complete, ("ideal_user",)),
    StepDefinition("challenges", "Challenges", "Design the Solution",
                   challenges_unlocked, challenges_complete, ("user_endgame",)),
    StepDefinition("solutions", "Solutions", "Design the Solution",
                   solutions_unlocked, solutions_complete, ("challenges",)),
    StepDefinition("model_selection", "Model Selection", "Package & Price",
                   model_selection_unlocked, model_selection_complete, ("solutions",)),
    StepDefinition("free_model_canvas", "Free Model Canvas", "Package & Price",
                   canvas_unlocked, canvas_complete, ("model_selection",)),
    StepDefinition("analysis", "Analysis", "Analyze",
                   analysis_unlocked, lambda state, packages=None: True, ("free_model_canvas",)),
])
