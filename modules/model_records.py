"""Model module persisted records.

Version 1 stored everything flat, with `features` and `pricingStrategy` beside
the user inputs. Version 2 nests the package data under `packages`, which is
also the marker that identifies an un-enveloped v2 record.
"""

from typing import Any, ClassVar, Dict, List, Literal, Mapping, Optional, Union, get_args

from pydantic import Field

from flow.reconciler import Migration, RecordModel, SchemaReconciler, WireModel, with_ids

MODULE_KEY = "model"
INPUTS = "inputs"
PACKAGES = "packages"

Level = Literal["Low", "Medium", "High"]
ModelType = Literal["opt-in-trial", "opt-out-trial", "usage-trial", "freemium", "new-product", "sandbox"]
MODEL_TYPES = get_args(ModelType)


class IdealUser(WireModel):
    title: str = ""
    description: str = ""
    motivation: Level = "Medium"
    ability: Level = "Medium"
    traits: List[str] = Field(default_factory=list)
    impact: str = ""


class Outcome(WireModel):
    level: str
    text: str = ""


class Challenge(WireModel):
    id: str
    title: str
    description: str = ""
    level: str = "beginner"
    magnitude: Union[int, float, str] = 3


class Solution(WireModel):
    """`challenge_id` is None for solutions that address the product as a whole."""

    id: str
    challenge_id: Optional[str] = None
    text: str
    type: str = "general"
    cost: str = "medium"
    category: Optional[str] = None


class PackageFeature(WireModel):
    id: str
    name: str
    description: str = ""
    category: str = "core"
    tier: Literal["free", "paid"] = "free"
    upgrade_trigger: Optional[str] = None
    limits: Optional[str] = None


class PricingTier(WireModel):
    id: str
    name: str
    price: float = 0
    features: List[str] = Field(default_factory=list)


class FreePackage(WireModel):
    features: List[str] = Field(default_factory=list)
    limitations: List[str] = Field(default_factory=list)
    conversion_goals: List[str] = Field(default_factory=list)


class PaidPackage(WireModel):
    features: List[str] = Field(default_factory=list)
    value_metrics: List[str] = Field(default_factory=list)
    target_conversion: float = 0


class PricingStrategy(WireModel):
    model: str = "freemium"
    basis: str = "per-user"
    free_package: FreePackage = Field(default_factory=FreePackage)
    paid_package: PaidPackage = Field(default_factory=PaidPackage)


class Packages(WireModel):
    features: List[PackageFeature] = Field(default_factory=list)
    pricing_tiers: List[PricingTier] = Field(default_factory=list)
    pricing_strategy: Optional[PricingStrategy] = None


class ModelRecordV2(RecordModel):
    title: str = ""
    product_description: str = ""
    ideal_user: Optional[IdealUser] = None
    outcomes: List[Outcome] = Field(default_factory=list)
    challenges: List[Challenge] = Field(default_factory=list)
    solutions: List[Solution] = Field(default_factory=list)
    selected_model: Optional[ModelType] = None
    user_journey: Optional[Dict[str, Any]] = None
    call_to_action: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    packages: Packages = Field(default_factory=Packages)

    container: ClassVar[str] = INPUTS

    def to_state(self) -> Dict[str, Dict[str, Any]]:
        data = self.model_dump()
        return {PACKAGES: data.pop("packages"), INPUTS: data}

    @classmethod
    def from_state(cls, states: Mapping[str, Mapping[str, Any]]) -> "ModelRecordV2":
        return cls.model_validate({**states[INPUTS], "packages": dict(states[PACKAGES])})


INPUT_FIELDS = tuple(f for f in ModelRecordV2.model_fields if f != "packages")
SAVE_ALLOW_LIST = {INPUTS: INPUT_FIELDS, PACKAGES: tuple(Packages.model_fields)}


# ── Version 1 (flat) ───────────────────────────────────────────────────
class LegacyChallenge(WireModel):
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    level: str = "beginner"
    magnitude: Union[int, float, str] = 3


class LegacySolution(WireModel):
    id: Optional[str] = None
    challenge_id: Optional[str] = None
    text: str = ""
    type: str = "general"
    cost: str = "medium"
    category: Optional[str] = None


class LegacyFeature(WireModel):
    id: Optional[str] = None
    name: str = ""
    description: str = ""
    category: str = "core"
    tier: Literal["free", "paid"] = "free"
    upgrade_trigger: Optional[str] = None
    limits: Optional[str] = None


class ModelRecordV1(WireModel):
    title: str = ""
    product_description: str = ""
    ideal_user: Optional[IdealUser] = None
    outcomes: List[Outcome] = Field(default_factory=list)
    challenges: List[LegacyChallenge] = Field(default_factory=list)
    solutions: List[LegacySolution] = Field(default_factory=list)
    selected_model: Optional[str] = None
    features: List[LegacyFeature] = Field(default_factory=list)
    pricing_strategy: Optional[PricingStrategy] = None
    user_journey: Optional[Dict[str, Any]] = None
    call_to_action: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None


def _last_per_level(outcomes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    by_level: Dict[str, Dict[str, Any]] = {}
    for outcome in outcomes:
        by_level.pop(outcome["level"], None)
        by_level[outcome["level"]] = outcome
    return list(by_level.values())


def migrate_v1_to_v2(data: Dict[str, Any]) -> Dict[str, Any]:
    """Move package data under `packages`, mint ids, keep one outcome per level."""
    selected = data.get("selectedModel")
    return {
        "title": data.get("title") or "",
        "productDescription": data.get("productDescription") or "",
        "idealUser": data.get("idealUser"),
        "outcomes": _last_per_level(data.get("outcomes") or []),
        "challenges": with_ids(data.get("challenges"), "challenge", "title"),
        "solutions": with_ids(data.get("solutions"), "solution", "text"),
        "selectedModel": selected if selected in MODEL_TYPES else None,
        "userJourney": data.get("userJourney"),
        "callToAction": data.get("callToAction"),
        "analysis": data.get("analysis"),
        "packages": {
            "features": with_ids(data.get("features"), "feature", "name"),
            "pricingTiers": [],
            "pricingStrategy": data.get("pricingStrategy"),
        },
    }


def build_reconciler() -> SchemaReconciler:
    return SchemaReconciler(
        MODULE_KEY,
        versions={1: ModelRecordV1, 2: ModelRecordV2},
        migrations=[Migration(1, migrate_v1_to_v2)],
        markers=("packages",),
        allow_list=SAVE_ALLOW_LIST,
    )
