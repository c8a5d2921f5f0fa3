"""Human-readable reasons for match results.

Applies fixed per-factor thresholds in a fixed factor order and joins the
triggered phrases. Pure and deterministic.
"""

from __future__ import annotations

from enum import Enum

from services.scoring import FACTOR_ORDER, MatchFactors

THRESHOLDS: dict[str, float] = {
    "skills": 15.0,
    "location": 20.0,
    "interests": 15.0,
    "availability": 12.0,
    "experience": 8.0,
}


class Audience(str, Enum):
    """Who reads the explanation."""

    VOLUNTEER = "volunteer"  # volunteer browsing matched projects
    ORGANIZATION = "organization"  # organization browsing recommended volunteers


PHRASES: dict[Audience, dict[str, str]] = {
    Audience.VOLUNTEER: {
        "skills": "Matches your skills",
        "location": "Close to your location",
        "interests": "Aligns with your interests",
        "availability": "Fits your availability",
        "experience": "Suits your experience level",
    },
    Audience.ORGANIZATION: {
        "skills": "Has required skills",
        "location": "Located nearby",
        "interests": "Interested in this cause",
        "availability": "Available for commitment",
        "experience": "Experienced volunteer",
    },
}

DEFAULT_REASONS: dict[Audience, str] = {
    Audience.VOLUNTEER: "Good overall match",
    Audience.ORGANIZATION: "Well-matched volunteer",
}


def explain(factors: MatchFactors, audience: Audience = Audience.VOLUNTEER) -> str:
    """Build the reason string for a factor breakdown."""
    phrases = PHRASES[audience]
    reasons = [
        phrases[name] for name in FACTOR_ORDER if getattr(factors, name) > THRESHOLDS[name]
    ]
    return ", ".join(reasons) if reasons else DEFAULT_REASONS[audience]
