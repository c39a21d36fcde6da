"""Unit tests for the offer module: setters, risk/assurance links and step predicates."""

import pytest

from modules.offer import OfferStore
from modules.offer_steps import OFFER_STEPS


@pytest.fixture
def offer():
    return OfferStore()


class TestSetters:

    def test_top_results_merge(self, offer):
        offer.set_top_results(tangible="10 sales")
        offer.set_top_results(intangible="calm")
        assert offer.get("top_results") == {"tangible": "10 sales", "intangible": "calm", "improvement": ""}

    def test_bonuses_keep_insertion_order(self, offer):
        for name in ("Checklist", "Templates", "Office hours"):
            offer.add_bonus(name)
        assert [b["name"] for b in offer.get("bonuses")] == ["Checklist", "Templates", "Office hours"]

    def test_update_entity(self, offer):
        adv_id = offer.add_advantage("Fast")
        offer.update_advantage(adv_id, description="Setup in a day")
        assert offer.get("advantages")[0] == {"id": adv_id, "text": "Fast", "description": "Setup in a day"}

    def test_update_entity_unknown_field(self, offer):
        adv_id = offer.add_advantage("Fast")
        with pytest.raises(KeyError):
            offer.update_advantage(adv_id, colour="red")

    def test_badly_typed_rating_is_rejected(self, offer):
        with pytest.raises(ValueError):
            offer.set_offer_rating("five")
        assert offer.get("offer_rating") is None

    def test_unknown_social_proof_kind(self, offer):
        with pytest.raises(KeyError):
            offer.add_social_proof("rumours", "heard it somewhere")

    def test_hero_partial_update(self, offer):
        offer.set_hero(tagline="Ship faster")
        offer.set_hero(cta_text="Start")
        assert offer.get("landing_page")["hero"] == {"tagline": "Ship faster", "sub_copy": "", "cta_text": "Start"}


class TestRisksAndAssurances:

    def test_risks_without_assurances(self, offer):
        r1 = offer.add_risk("Too expensive")
        r2 = offer.add_risk("Too slow")
        offer.add_assurance(r1, "Money-back guarantee")
        assert offer.risks_without_assurances == [r2]

    def test_remove_risk_cascades(self, offer):
        r1 = offer.add_risk("Too expensive")
        r2 = offer.add_risk("Too slow")
        offer.add_assurance(r1, "Refund")
        offer.add_assurance(r2, "Fast track")
        offer.add_risk_reversal(r1, "Pay later")

        offer.remove_risk(r1)

        assert [r["id"] for r in offer.get("risks")] == [r2]
        assert [a["risk_id"] for a in offer.get("assurances")] == [r2]
        assert offer.get("risk_reversals") == []

    def test_orphaned_assurance_is_tolerated(self, offer):
        orphan = offer.add_assurance("missing-risk", "Covered anyway")
        assert offer.orphaned_assurances == [orphan]
        assert offer.risks_without_assurances == []


class TestOfferSteps:

    def _index(self, step_id):
        return OFFER_STEPS.index_of(step_id)

    def test_audience_needs_ten_characters(self, offer):
        offer.set_audience("too short")
        assert not OFFER_STEPS.is_complete(0, offer.snapshot())
        offer.set_audience("Solo consultants")
        assert OFFER_STEPS.is_complete(0, offer.snapshot())

    def test_audience_incomplete_while_generating(self, offer):
        offer.set_audience("Solo consultants")
        offer.set_processing("audience", True)
        assert not OFFER_STEPS.is_complete(0, offer.snapshot())

    def test_results_unlock_before_audience_is_complete(self, offer):
        offer.set_audience("S")
        assert OFFER_STEPS.is_unlocked(self._index("define_results"), offer.snapshot())

    def test_risks_step_gated_by_whole_chain(self, offer):
        offer.add_advantage("Fast")
        # own predicate holds, but results were never entered
        assert not OFFER_STEPS.is_unlocked(self._index("manage_risks"), offer.snapshot())
        offer.set_audience("Solo consultants")
        offer.set_top_results(tangible="10 sales")
        assert OFFER_STEPS.is_unlocked(self._index("manage_risks"), offer.snapshot())

    def test_refine_completion(self, offer):
        offer.add_headline("hero", "Ship faster")
        offer.set_body_copy("hero", "Body")
        offer.set_aesthetics_checklist_completed(True)
        refine = self._index("refine")
        assert not OFFER_STEPS.is_complete(refine, offer.snapshot())
        offer.set_offer_scorecard({"clarity": 4})
        assert OFFER_STEPS.is_complete(refine, offer.snapshot())
