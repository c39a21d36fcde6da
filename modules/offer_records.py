"""Offer module persisted records — version 1 (flat legacy) and version 2 (current).

Version 2 is also the source of the container defaults: a freshly constructed
OfferRecordV2 dumps exactly the documented default snapshot.
"""

from typing import Any, ClassVar, Dict, List, Optional

from pydantic import Field

from flow.reconciler import Migration, RecordModel, SchemaReconciler, WireModel, with_ids

MODULE_KEY = "offer"
CONTAINER = "offer"
DEFAULT_TITLE = "Untitled Offer"


# ── Version 2 (current) ─────────────────────────────────────────────────
class Advantage(WireModel):
    id: str
    text: str
    description: Optional[str] = None


class Risk(WireModel):
    id: str
    text: str


class Assurance(WireModel):
    """`risk_id` is a soft reference; it may point at a deleted risk."""

    id: str
    risk_id: str
    text: str


class Bonus(WireModel):
    id: str
    name: str
    benefit: str = ""
    value: Optional[str] = None


class OnboardingStep(WireModel):
    id: str
    description: str
    time_estimate: str = ""


class TopResults(WireModel):
    tangible: str = ""
    intangible: str = ""
    improvement: str = ""


class Hero(WireModel):
    tagline: str = ""
    sub_copy: str = ""
    cta_text: str = ""


class Problem(WireModel):
    alternatives_problems: str = ""
    underlying_problem: str = ""


class SolutionStep(WireModel):
    id: str
    title: str
    description: str = ""


class LandingPage(WireModel):
    hero: Hero = Field(default_factory=Hero)
    problem: Problem = Field(default_factory=Problem)
    solution_steps: List[SolutionStep] = Field(default_factory=list)


class RiskReversal(WireModel):
    id: str
    risk_id: str
    text: str


class SocialProof(WireModel):
    testimonials: List[str] = Field(default_factory=list)
    case_studies: List[str] = Field(default_factory=list)
    logos: List[str] = Field(default_factory=list)
    numbers: List[str] = Field(default_factory=list)


class Headlines(WireModel):
    hero: List[str] = Field(default_factory=list)
    problem: List[str] = Field(default_factory=list)
    solution: List[str] = Field(default_factory=list)


class BodyCopy(WireModel):
    hero: str = ""
    problem: str = ""
    solution: str = ""


class OfferRecordV2(RecordModel):
    container: ClassVar[str] = CONTAINER

    title: str = DEFAULT_TITLE
    offer_rating: Optional[int] = None
    audience: str = ""
    top_results: TopResults = Field(default_factory=TopResults)
    advantages: List[Advantage] = Field(default_factory=list)
    risks: List[Risk] = Field(default_factory=list)
    assurances: List[Assurance] = Field(default_factory=list)
    bonuses: List[Bonus] = Field(default_factory=list)
    onboarding_steps: List[OnboardingStep] = Field(default_factory=list)
    landing_page: LandingPage = Field(default_factory=LandingPage)
    risk_reversals: List[RiskReversal] = Field(default_factory=list)
    social_proof: SocialProof = Field(default_factory=SocialProof)
    cta_text: str = ""
    refined_headlines: Headlines = Field(default_factory=Headlines)
    refined_body_copy: BodyCopy = Field(default_factory=BodyCopy)
    aesthetics_checklist_completed: bool = False
    offer_scorecard: Optional[Dict[str, Any]] = None


# Fields only the current shape has; any one of them marks an un-enveloped record as v2.
CURRENT_MARKERS = ("audience", "bonuses", "onboardingSteps", "landingPage")

SAVE_ALLOW_LIST = {CONTAINER: tuple(OfferRecordV2.model_fields)}


# ── Version 1 (legacy flat shape) ───────────────────────────────────────
class LegacyEntity(WireModel):
    id: Optional[str] = None
    text: str = ""


class LegacyAdvantage(LegacyEntity):
    description: Optional[str] = None


class LegacyLinkedEntity(LegacyEntity):
    risk_id: str = ""


class LegacyUserSuccess(WireModel):
    statement: str = ""


class LegacyHeroSection(WireModel):
    tagline: str = ""
    sub_copy: str = ""
    cta_text: str = ""


class LegacySolutionStep(WireModel):
    id: Optional[str] = None
    title: str = ""
    description: str = ""


class LegacySolutionSection(WireModel):
    steps: List[LegacySolutionStep] = Field(default_factory=list)


class LegacyCtaSection(WireModel):
    main_cta_text: str = ""


class OfferRecordV1(WireModel):
    title: Optional[str] = None
    offer_rating: Optional[int] = None
    user_success: LegacyUserSuccess = Field(default_factory=LegacyUserSuccess)
    top_results: TopResults = Field(default_factory=TopResults)
    advantages: List[LegacyAdvantage] = Field(default_factory=list)
    risks: List[LegacyEntity] = Field(default_factory=list)
    assurances: List[LegacyLinkedEntity] = Field(default_factory=list)
    hero_section: LegacyHeroSection = Field(default_factory=LegacyHeroSection)
    problem_section: Problem = Field(default_factory=Problem)
    solution_section: LegacySolutionSection = Field(default_factory=LegacySolutionSection)
    risk_reversals: List[LegacyLinkedEntity] = Field(default_factory=list)
    social_proof: SocialProof = Field(default_factory=SocialProof)
    cta_section: LegacyCtaSection = Field(default_factory=LegacyCtaSection)
    refined_headlines: Headlines = Field(default_factory=Headlines)
    refined_body_copy: BodyCopy = Field(default_factory=BodyCopy)
    aesthetics_checklist_completed: bool = False
    offer_scorecard: Optional[Dict[str, Any]] = None


def migrate_v1_to_v2(data: Dict[str, Any]) -> Dict[str, Any]:
    """Field-by-field mapping of the flat legacy record; absent fields keep v2 defaults."""
    hero = data.get("heroSection") or {}
    solution = data.get("solutionSection") or {}
    return {
        "title": data.get("title") or DEFAULT_TITLE,
        "offerRating": data.get("offerRating"),
        "audience": (data.get("userSuccess") or {}).get("statement", ""),
        "topResults": data.get("topResults") or {},
        "advantages": with_ids(data.get("advantages"), "advantage", "text"),
        "risks": with_ids(data.get("risks"), "risk", "text"),
        "assurances": with_ids(data.get("assurances"), "assurance", "text"),
        "landingPage": {
            "hero": {
                "tagline": hero.get("tagline", ""),
                "subCopy": hero.get("subCopy", ""),
                "ctaText": hero.get("ctaText", ""),
            },
            "problem": data.get("problemSection") or {},
            "solutionSteps": with_ids(solution.get("steps"), "solution_step", "title"),
        },
        "riskReversals": with_ids(data.get("riskReversals"), "risk_reversal", "text"),
        "socialProof": data.get("socialProof") or {},
        "ctaText": (data.get("ctaSection") or {}).get("mainCtaText", ""),
        "refinedHeadlines": data.get("refinedHeadlines") or {},
        "refinedBodyCopy": data.get("refinedBodyCopy") or {},
        "aestheticsChecklistCompleted": bool(data.get("aestheticsChecklistCompleted", False)),
        "offerScorecard": data.get("offerScorecard"),
    }


def build_reconciler() -> SchemaReconciler:
    return SchemaReconciler(
        MODULE_KEY,
        versions={1: OfferRecordV1, 2: OfferRecordV2},
        migrations=[Migration(1, migrate_v1_to_v2)],
        markers=CURRENT_MARKERS,
        allow_list=SAVE_ALLOW_LIST,
    )
