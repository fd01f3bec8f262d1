import asyncio

import pytest

from conftest import FakePlaces, make_candidate
from domain.errors import ResolutionCancelled
from domain.models import BusinessGuess, SearchTier, TierStrategy
from services.cancellation import CancellationToken
from services.search_cascade import DEFAULT_TIERS, SearchCascade, text_query_for


def _run(cascade, coordinate, guess, token=None):
    return asyncio.run(cascade.run(coordinate, guess, token=token))


def test_default_tiers_relax_from_tight_typed_to_text():
    strategies = [t.strategy for t in DEFAULT_TIERS]
    assert strategies == [
        TierStrategy.NEARBY_TYPED,
        TierStrategy.NEARBY_TYPED,
        TierStrategy.NEARBY_GENERIC,
        TierStrategy.TEXT_WITH_BIAS,
    ]
    assert [t.radius_m for t in DEFAULT_TIERS] == [50, 200, 100, None]
    assert [t.uses_business_type for t in DEFAULT_TIERS] == [True, True, False, False]


def test_first_tier_hit_short_circuits(sf_coordinate, coffee_guess):
    places = FakePlaces(tier_results=[[make_candidate("a")]])
    result = _run(SearchCascade(places), sf_coordinate, coffee_guess)

    assert [c.provider_id for c in result.candidates] == ["a"]
    assert result.tier == DEFAULT_TIERS[0]
    assert len(places.search_calls) == 1
    assert places.search_calls[0] == ("nearby_typed", sf_coordinate, "Blue Bottle Coffee", "Coffee Shop", 50)


@pytest.mark.parametrize("hit_index", [0, 1, 2, 3])
def test_never_calls_tier_after_a_hit(sf_coordinate, coffee_guess, hit_index):
    tier_results = [[] for _ in range(hit_index)] + [[make_candidate("x"), make_candidate("y")]]
    places = FakePlaces(tier_results=tier_results)
    result = _run(SearchCascade(places), sf_coordinate, coffee_guess)

    assert len(places.search_calls) == hit_index + 1
    assert result.tier == DEFAULT_TIERS[hit_index]
    assert [c.provider_id for c in result.candidates] == ["x", "y"]


def test_third_tier_call_log(sf_coordinate, coffee_guess):
    hits = [make_candidate("p1"), make_candidate("p2"), make_candidate("p3")]
    places = FakePlaces(tier_results=[[], [], hits])
    result = _run(SearchCascade(places), sf_coordinate, coffee_guess)

    assert places.search_calls == [
        ("nearby_typed", sf_coordinate, "Blue Bottle Coffee", "Coffee Shop", 50),
        ("nearby_typed", sf_coordinate, "Blue Bottle Coffee", "Coffee Shop", 200),
        ("nearby_generic", sf_coordinate, "Blue Bottle Coffee", 100),
    ]
    # provider order is preserved
    assert result.candidates == hits


def test_all_tiers_empty_is_a_plain_empty_result(sf_coordinate, coffee_guess):
    places = FakePlaces(tier_results=[])
    result = _run(SearchCascade(places), sf_coordinate, coffee_guess)

    assert result.found is False
    assert result.candidates == []
    assert result.tier is None
    assert result.had_failures is False
    assert len(result.attempted) == 4
    assert places.search_calls[-1] == ("text", "Blue Bottle Coffee Coffee Shop", sf_coordinate)


def test_failed_tier_is_recorded_and_cascade_continues(sf_coordinate, coffee_guess):
    places = FakePlaces(tier_results=[[], [make_candidate("b")]], fail_tiers={0})
    result = _run(SearchCascade(places), sf_coordinate, coffee_guess)

    assert [c.provider_id for c in result.candidates] == ["b"]
    assert len(result.failures) == 1
    assert result.failures[0].tier == DEFAULT_TIERS[0]


def test_custom_tier_table(sf_coordinate, coffee_guess):
    tiers = [SearchTier(TierStrategy.TEXT_WITH_BIAS)]
    places = FakePlaces(tier_results=[[make_candidate("t")]])
    result = _run(SearchCascade(places, tiers=tiers), sf_coordinate, coffee_guess)

    assert places.search_calls == [("text", "Blue Bottle Coffee Coffee Shop", sf_coordinate)]
    assert result.tier == tiers[0]


def test_slow_tier_times_out_without_failing_the_cascade(sf_coordinate, coffee_guess):
    import time

    class SlowFirstTier(FakePlaces):
        def search_nearby_typed(self, coordinate, name, category, radius_m):
            if radius_m == 50:
                time.sleep(0.5)
                return [make_candidate("late")]
            return super().search_nearby_typed(coordinate, name, category, radius_m)

    places = SlowFirstTier(tier_results=[[make_candidate("b")]])
    result = _run(SearchCascade(places, call_timeout=0.05), sf_coordinate, coffee_guess)

    assert result.failures[0].tier == DEFAULT_TIERS[0]
    assert result.tier == DEFAULT_TIERS[1]
    assert [c.provider_id for c in result.candidates] == ["b"]


def test_cancelled_token_stops_before_any_call(sf_coordinate, coffee_guess):
    places = FakePlaces(tier_results=[[make_candidate("a")]])
    token = CancellationToken()
    token.cancel()

    with pytest.raises(ResolutionCancelled):
        _run(SearchCascade(places), sf_coordinate, coffee_guess, token=token)
    assert places.search_calls == []


def test_cancel_during_tier_discards_its_result(sf_coordinate, coffee_guess):
    token = CancellationToken()
    places = FakePlaces(tier_results=[[], [make_candidate("a")]])
    places.on_search = lambda index: token.cancel() if index == 0 else None

    with pytest.raises(ResolutionCancelled):
        _run(SearchCascade(places), sf_coordinate, coffee_guess, token=token)
    assert len(places.search_calls) == 1


class TestTextQuery:
    def test_name_and_category(self):
        assert text_query_for(BusinessGuess(name="Tartine", category="Bakery")) == "Tartine Bakery"

    @pytest.mark.parametrize("name", ["Unknown Business", "unknown", "", "Business"])
    def test_generic_name_uses_category_only(self, name):
        assert text_query_for(BusinessGuess(name=name, category="Hair Salon")) == "Hair Salon"
