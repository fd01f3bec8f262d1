import asyncio

import pytest

from conftest import FakePlaces, FakeSummarizer, make_candidate, make_details
from domain.errors import ErrorCode, ResolutionCancelled, UpstreamError
from domain.models import LocationSource, PlaceReview, Sentiment
from services.cancellation import CancellationToken
from services.places_enrichment import PlaceEnricher


def _enrich(enricher, candidate, category="Coffee Shop", **kwargs):
    return asyncio.run(enricher.enrich(candidate, category, **kwargs))


def test_details_and_summary_are_combined(reviews):
    places = FakePlaces(details=make_details("a", reviews=reviews))
    summarizer = FakeSummarizer()
    enricher = PlaceEnricher(places, summarizer)

    resolved = _enrich(enricher, make_candidate("a"), location_source=LocationSource.DEVICE)

    assert resolved.details.phone == "(510) 653-3394"
    assert resolved.summary.sentiment == Sentiment.POSITIVE
    assert resolved.category == "Coffee Shop"
    assert resolved.location_source == LocationSource.DEVICE
    name, category, passed = summarizer.calls[0]
    assert (name, category) == ("Blue Bottle Coffee", "Coffee Shop")
    assert passed == reviews


def test_zero_reviews_skip_the_summarizer():
    summarizer = FakeSummarizer()
    enricher = PlaceEnricher(FakePlaces(details=make_details("a", reviews=[])), summarizer)

    resolved = _enrich(enricher, make_candidate("a"))

    assert summarizer.calls == []
    assert resolved.summary.sentiment == Sentiment.NEUTRAL
    assert resolved.summary.text == "Blue Bottle Coffee is a coffee shop with limited review information available."


def test_blank_review_text_counts_as_no_reviews():
    blank = [PlaceReview(author="x", text="   ", rating=5)]
    summarizer = FakeSummarizer()
    enricher = PlaceEnricher(FakePlaces(details=make_details("a", reviews=blank)), summarizer)

    resolved = _enrich(enricher, make_candidate("a"))

    assert summarizer.calls == []
    assert resolved.summary.sentiment == Sentiment.NEUTRAL


def test_summarizer_failure_degrades_to_placeholder(reviews):
    enricher = PlaceEnricher(
        FakePlaces(details=make_details("a", reviews=reviews)),
        FakeSummarizer(error=UpstreamError(ErrorCode.SUMMARY_FAILED, "quota")),
    )

    resolved = _enrich(enricher, make_candidate("a"))

    assert resolved.summary.sentiment == Sentiment.NEUTRAL
    assert resolved.summary.pros == ["Good location", "Professional service"]


def test_details_failure_raises_typed_error():
    enricher = PlaceEnricher(FakePlaces(details_error=RuntimeError("boom")), FakeSummarizer())

    with pytest.raises(UpstreamError) as exc_info:
        _enrich(enricher, make_candidate("a", name="Tartine"))

    assert exc_info.value.code == ErrorCode.DETAILS_FETCH_FAILED
    assert "Tartine" in exc_info.value.message


def test_alternates_are_capped_at_five():
    enricher = PlaceEnricher(FakePlaces(), FakeSummarizer())
    alternates = [make_candidate(f"alt{i}") for i in range(8)]

    resolved = _enrich(enricher, make_candidate("a"), alternates=alternates)

    assert [c.provider_id for c in resolved.alternates] == ["alt0", "alt1", "alt2", "alt3", "alt4"]


def test_cancelled_token_prevents_details_call():
    places = FakePlaces()
    token = CancellationToken()
    token.cancel()

    with pytest.raises(ResolutionCancelled):
        _enrich(PlaceEnricher(places, FakeSummarizer()), make_candidate("a"), token=token)
    assert places.details_calls == []
