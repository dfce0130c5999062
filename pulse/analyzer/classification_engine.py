"""PULSE — Traffic Source Classification Engine.

Maps heterogeneous attribution signals onto the canonical organic | meta
traffic source, with a confidence level and a human-readable reason.

Priority (first present signal wins):
  manual override → existing traffic_source → source_of_appointment → lead_source
"""

from typing import Dict, List, Optional, Tuple

from pulse.models.analysis_models import TrafficSourceClassification
from pulse.models.call_models import TrafficSource

ORGANIC = TrafficSource.ORGANIC.value
META = TrafficSource.META.value

# Free-text synonyms → canonical value. Anything else is organic.
TRAFFIC_SOURCE_SYNONYMS: Dict[str, str] = {
    "organic": ORGANIC,
    "organic_traffic": ORGANIC,
    "direct": ORGANIC,
    "website": ORGANIC,
    "referral": ORGANIC,
    "meta": META,
    "meta_ads": META,
    "facebook": META,
    "instagram": META,
    "paid_ads": META,
    "ads": META,
    "advertising": META,
    "paid": META,
}

# source_of_appointment → (traffic_source, confidence, reasoning)
APPOINTMENT_SOURCE_RULES: Dict[str, Tuple[str, str, str]] = {
    "sdr_booked_call": (
        META,
        "high",
        "SDR calls are typically generated from paid advertising campaigns",
    ),
    "non_sdr_booked_call": (
        ORGANIC,
        "medium",
        "Non-SDR calls are typically organic leads, but may require manual verification",
    ),
    "email": (
        ORGANIC,
        "medium",
        "Email campaigns are typically organic unless specifically from paid ad campaigns",
    ),
    "vsl": (
        META,
        "high",
        "VSL bookings are typically generated from paid advertising campaigns",
    ),
    "self_booking": (
        ORGANIC,
        "high",
        "Self-bookings are typically organic leads from direct website visits",
    ),
}

LEAD_SOURCE_RULES: Dict[str, Tuple[str, str, str]] = {
    "organic": (ORGANIC, "high", "Direct mapping from lead_source field"),
    "ads": (META, "high", "Direct mapping from lead_source field (ads = meta)"),
}

CONFIDENCE_SCORES = {"high": 1.0, "medium": 0.7, "low": 0.3}

ANALYTICS_LABELS = {ORGANIC: "Organic", META: "Meta Ads"}

TRAFFIC_SOURCE_OPTIONS: List[dict] = [
    {
        "value": ORGANIC,
        "label": "Organic Traffic",
        "description": "Leads from organic sources (website, referrals, direct)",
    },
    {
        "value": META,
        "label": "Meta Ads",
        "description": "Leads from Meta advertising campaigns (Facebook, Instagram)",
    },
]

SOURCE_OF_APPOINTMENT_OPTIONS: List[dict] = [
    {
        "value": "sdr_booked_call",
        "label": "SDR Booked Call",
        "description": "Call booked by Sales Development Representative",
        "typical_traffic_source": META,
    },
    {
        "value": "non_sdr_booked_call",
        "label": "Non-SDR Booked Call",
        "description": "Call booked through other means",
        "typical_traffic_source": ORGANIC,
    },
    {
        "value": "email",
        "label": "Email Campaign",
        "description": "Lead from email marketing campaign",
        "typical_traffic_source": ORGANIC,
    },
    {
        "value": "vsl",
        "label": "VSL Booking",
        "description": "Video Sales Letter booking",
        "typical_traffic_source": META,
    },
    {
        "value": "self_booking",
        "label": "Self Booking",
        "description": "Lead booked themselves through website",
        "typical_traffic_source": ORGANIC,
    },
]


def _clean(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def normalize_traffic_source(value: Optional[str]) -> str:
    """Map any raw traffic-source text to organic | meta. Idempotent."""
    return TRAFFIC_SOURCE_SYNONYMS.get(_clean(value), ORGANIC)


def is_valid_traffic_source(value: Optional[str]) -> bool:
    return value in (ORGANIC, META)


def get_analytics_label(traffic_source: str) -> str:
    return ANALYTICS_LABELS.get(traffic_source, "Unknown")


def traffic_source_options() -> List[dict]:
    return [dict(o) for o in TRAFFIC_SOURCE_OPTIONS]


def source_of_appointment_options() -> List[dict]:
    return [dict(o) for o in SOURCE_OF_APPOINTMENT_OPTIONS]


def attribution_confidence(confidence: str) -> float:
    """Numeric weight stored alongside an attribution."""
    return CONFIDENCE_SCORES.get(confidence, CONFIDENCE_SCORES["low"])


def classify_from_source_of_appointment(source: str) -> TrafficSourceClassification:
    rule = APPOINTMENT_SOURCE_RULES.get(_clean(source))
    if rule is None:
        return TrafficSourceClassification(
            traffic_source=ORGANIC,
            confidence="low",
            reasoning="Unknown source type, defaulting to organic",
        )
    traffic_source, confidence, reasoning = rule
    return TrafficSourceClassification(
        traffic_source=traffic_source, confidence=confidence, reasoning=reasoning
    )


def classify_from_lead_source(lead_source: str) -> TrafficSourceClassification:
    rule = LEAD_SOURCE_RULES.get(_clean(lead_source))
    if rule is None:
        return TrafficSourceClassification(
            traffic_source=ORGANIC,
            confidence="low",
            reasoning="Unknown lead source, defaulting to organic",
        )
    traffic_source, confidence, reasoning = rule
    return TrafficSourceClassification(
        traffic_source=traffic_source, confidence=confidence, reasoning=reasoning
    )


def classify_traffic_source(
    manual_override: Optional[str] = None,
    traffic_source: Optional[str] = None,
    source_of_appointment: Optional[str] = None,
    lead_source: Optional[str] = None,
) -> TrafficSourceClassification:
    """Classify a call from whatever signals are available. Never raises.

    Empty strings count as missing. A manual override is normalised, so
    "facebook" as an override resolves to meta.
    """
    if _clean(manual_override):
        return TrafficSourceClassification(
            traffic_source=normalize_traffic_source(manual_override),
            confidence="high",
            reasoning="Manual override provided",
        )

    if is_valid_traffic_source(traffic_source):
        return TrafficSourceClassification(
            traffic_source=traffic_source,
            confidence="high",
            reasoning="Existing traffic_source field value",
        )

    if _clean(source_of_appointment):
        return classify_from_source_of_appointment(source_of_appointment)

    if _clean(lead_source):
        return classify_from_lead_source(lead_source)

    return TrafficSourceClassification(
        traffic_source=ORGANIC,
        confidence="low",
        reasoning="No classification data available, defaulting to organic",
    )
