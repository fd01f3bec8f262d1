"""
Storefront classification with an OpenAI vision model.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from domain.errors import ErrorCode, UpstreamError
from domain.models import BusinessGuess, Coordinate
from services.metadata_extractor import prepare_image_for_analysis
from services.openai_client import OpenAIClient, get_default_openai_client
from settings import settings

logger = logging.getLogger(__name__)

STOREFRONT_PROMPT = """Analyze this storefront image to identify the business. Use visual features even when no text is visible.

Look at:
1) Architecture: storefront design, awnings, colors, windows, doors
2) Visible interior: furniture, equipment, displays, seating layout
3) Contextual clues: outdoor seating, parking, surrounding buildings
4) Logos and non-text branding
5) Business name from signs, windows, doors
6) Any address or location text

The photo was taken near {location}.

Return ONLY a JSON object with fields:
{{
  "businessType": "specific category, e.g. Coffee Shop, Restaurant, Hair Salon",
  "businessName": "name if visible or 'Unknown' if not",
  "description": "short visual description",
  "features": ["visual features observed"],
  "locationText": "address text if visible, else empty"
}}"""

UNKNOWN_BUSINESS = "Unknown Business"


def guess_from_payload(payload: Dict[str, Any]) -> BusinessGuess:
    """Build a BusinessGuess from the model's JSON, filling the gaps."""
    name = str(payload.get("businessName") or "").strip()
    if not name or name.lower() == "unknown":
        name = UNKNOWN_BUSINESS
    category = str(payload.get("businessType") or "").strip() or "Business"
    features = payload.get("features")
    location_text = payload.get("locationText")
    return BusinessGuess(
        name=name,
        category=category,
        description=str(payload.get("description") or "Business storefront"),
        on_image_location_text=str(location_text).strip() if location_text else None,
        features=[str(f) for f in features] if isinstance(features, list) else [],
    )


class VisionClassifier:
    def __init__(
        self,
        client: Optional[OpenAIClient] = None,
        model: Optional[str] = None,
        max_image_width: Optional[int] = None,
    ):
        self.client = client or get_default_openai_client()
        self.model = model or settings.OPENAI_VISION_MODEL
        self.max_image_width = max_image_width or settings.CLASSIFIER_IMAGE_MAX_WIDTH

    def classify(self, image: bytes, coordinate: Coordinate) -> BusinessGuess:
        """
        Guess the business shown in `image`, using `coordinate` as a hint.

        Raises:
            UpstreamError(CLASSIFICATION_FAILED) for unreadable images, API
            failures, and malformed replies.
        """
        try:
            image_url = prepare_image_for_analysis(image, max_width=self.max_image_width)
        except Exception as exc:
            raise UpstreamError(ErrorCode.CLASSIFICATION_FAILED, f"Unreadable image: {exc}") from exc

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": STOREFRONT_PROMPT.format(location=coordinate.as_param())},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            }
        ]
        payload = self.client.complete_json(
            messages,
            model=self.model,
            max_tokens=500,
            error_code=ErrorCode.CLASSIFICATION_FAILED,
        )
        guess = guess_from_payload(payload)
        logger.info("Classified storefront as %r (%s)", guess.name, guess.category)
        return guess
