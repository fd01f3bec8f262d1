from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from domain.errors import ErrorCode
from domain.models import PlaceReview, ReviewSummary, Sentiment
from services.openai_client import OpenAIClient, get_default_openai_client
from settings import settings

logger = logging.getLogger(__name__)

MAX_REVIEWS_FOR_SUMMARY = 5

SUMMARY_PROMPT = """Analyze these Google reviews for {name} ({category}) and summarize them. Based on the actual customer reviews, provide:

1. summary: a brief overview of what customers think
2. pros: array of positive aspects mentioned by customers
3. cons: array of negative aspects or concerns mentioned by customers
4. recommendations: array of helpful tips for future visitors
5. overallSentiment: "positive", "neutral", or "negative"
6. bestFor: array of what this place is best suited for

Return ONLY a JSON object with these fields.

Reviews:
{reviews}"""


def placeholder_summary(place_name: str, category: str) -> ReviewSummary:
    """Neutral summary used whenever no AI summary is available."""
    kind = (category or "place").strip().lower() or "place"
    return ReviewSummary(
        text=f"{place_name} is a {kind} with limited review information available.",
        pros=["Good location", "Professional service"],
        cons=["Limited information available"],
        recommendations=["Visit to experience firsthand"],
        sentiment=Sentiment.NEUTRAL,
        best_for=["General visits"],
    )


def format_reviews(reviews: Sequence[PlaceReview], limit: int = MAX_REVIEWS_FOR_SUMMARY) -> str:
    lines = []
    for review in [r for r in reviews if r.text and r.text.strip()][:limit]:
        rating = f"{review.rating:g}" if review.rating is not None else "?"
        lines.append(f"Rating: {rating}/5 - {review.text.strip()}")
    return "\n\n".join(lines)


def _string_list(value: Any, default: List[str]) -> List[str]:
    if not isinstance(value, list):
        return list(default)
    return [str(v) for v in value if str(v).strip()]


def summary_from_payload(payload: Dict[str, Any], place_name: str, category: str) -> ReviewSummary:
    try:
        sentiment = Sentiment(str(payload.get("overallSentiment", "")).lower())
    except ValueError:
        sentiment = Sentiment.NEUTRAL
    text = payload.get("summary")
    return ReviewSummary(
        text=str(text) if text else f"{place_name} is a {(category or 'place').lower()} with mixed reviews.",
        pros=_string_list(payload.get("pros"), ["Good service"]),
        cons=_string_list(payload.get("cons"), ["Limited information"]),
        recommendations=_string_list(payload.get("recommendations"), ["Worth a visit"]),
        sentiment=sentiment,
        best_for=_string_list(payload.get("bestFor"), ["General visits"]),
    )


class ReviewSummarizer:
    def __init__(self, client: Optional[OpenAIClient] = None, model: Optional[str] = None):
        self.client = client or get_default_openai_client()
        self.model = model or settings.OPENAI_SUMMARY_MODEL

    def summarize_reviews(
        self,
        place_name: str,
        category: str,
        reviews: Sequence[PlaceReview],
    ) -> ReviewSummary:
        review_text = format_reviews(reviews)
        if not review_text:
            raise ValueError("at least one review with text is required")

        prompt = SUMMARY_PROMPT.format(name=place_name, category=category, reviews=review_text)
        payload = self.client.complete_json(
            [{"role": "user", "content": prompt}],
            model=self.model,
            max_tokens=800,
            error_code=ErrorCode.SUMMARY_FAILED,
        )
        return summary_from_payload(payload, place_name, category)
