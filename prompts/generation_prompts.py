"""LLM prompt templates for the content-generation service.

One template per generation target. The worksheet data collected so far is
appended as JSON so the model only builds on what the user already wrote.
"""

GENERATION_PROMPTS: dict[str, str] = {
    # Offer module
    "audience": (
        "Draft a one-paragraph statement describing who this offer is for and what "
        "success looks like for them.\n"
        "Fill the field: statement"
    ),
    "advantages": (
        "Suggest {count} unique advantages this product has over the alternatives "
        "the audience uses today. Each item: text (short), description (one sentence)."
    ),
    "risks": (
        "Suggest {count} risks or objections that could stop the audience from "
        "signing up. Each item: text (one sentence)."
    ),
    "assurances": (
        "For each risk listed under uncoveredRisks, write one assurance that "
        "neutralises it. Each item: text (one sentence), ref (the risk id)."
    ),
    "bonuses": (
        "Suggest {count} bonuses that make the offer irresistible. "
        "Each item: text (bonus name), description (the benefit to the user)."
    ),
    "hero": (
        "Draft the hero section of a landing page for this offer.\n"
        "Fill the fields: tagline, sub_copy, cta_text"
    ),
    # Model module
    "ideal_user": (
        "Describe the ideal user for this product.\n"
        "Fill the fields: title, description, motivation (Low, Medium or High), "
        "ability (Low, Medium or High), impact"
    ),
    "challenges": (
        "Suggest {count} challenges the ideal user faces before reaching the "
        "outcomes listed. Each item: text (title), description (one sentence)."
    ),
    "solutions": (
        "For each challenge listed, suggest one way the product solves it. "
        "Each item: text (the solution), ref (the challenge id)."
    ),
}


def get_generation_prompt(target: str, worksheet_json: str, count: int = 3) -> str:
    """Build a full generation prompt for the given target."""
    base = GENERATION_PROMPTS.get(target, "Suggest {count} useful entries. Return structured output.")
    return f"{base.format(count=count)}\n\n---\nWorksheet so far:\n{worksheet_json}"
