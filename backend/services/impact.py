"""Project impact prediction.

A rule-based estimate: a base score of 50 adjusted by project size,
duration, skill complexity, application demand and category.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

BASE_SCORE = 50
HIGH_IMPACT_CATEGORIES = {"education", "healthcare", "environment", "poverty"}


@dataclass(frozen=True)
class ImpactInput:
    category: str
    volunteers_needed: int = 0
    volunteers_applied: int = 0
    estimated_hours: int | None = None
    required_skill_count: int = 0
    application_count: int = 0


@dataclass
class ImpactPrediction:
    impact_score: int
    prediction: str
    factors: dict[str, Any] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)


def predict_impact(project: ImpactInput) -> ImpactPrediction:
    score = BASE_SCORE

    if project.volunteers_needed > 10:
        score += 15
    if (project.estimated_hours or 0) > 40:
        score += 10
    if project.required_skill_count > 3:
        score += 5

    application_rate = (
        project.application_count / project.volunteers_needed
        if project.volunteers_needed > 0
        else 0.0
    )
    if application_rate > 0.8:
        score += 10
    elif application_rate > 0.5:
        score += 5

    if (project.category or "").lower() in HIGH_IMPACT_CATEGORIES:
        score += 10

    score = min(100, max(0, score))
    if score > 75:
        label = "HIGH"
    elif score > 50:
        label = "MEDIUM"
    else:
        label = "LOW"

    return ImpactPrediction(
        impact_score=score,
        prediction=label,
        factors={
            "project_size": project.volunteers_needed,
            "duration": project.estimated_hours,
            "complexity": project.required_skill_count,
            "popularity": round(application_rate, 2),
            "category": project.category,
        },
        recommendations=_recommendations(project, score),
    )


def _recommendations(project: ImpactInput, score: int) -> list[str]:
    tips: list[str] = []
    if score < 50:
        tips.append("Consider adding more detailed project description")
        tips.append("Clarify the expected outcomes and impact")
    if project.volunteers_applied == 0:
        tips.append("Promote the project through social media")
        tips.append("Reach out to volunteers with relevant skills")
    if project.required_skill_count == 0:
        tips.append("Specify required skills to attract suitable volunteers")
    return tips
