"""Volunteer/project match scoring.

Computes five independent factor scores for a volunteer and a project:
skills, location, interests, availability and experience. Each factor is
bounded by its weight and the weights sum to 100, so the aggregate is a
0-100 match score.

Scoring is pure: it works on immutable snapshots, performs no I/O and
treats every missing input as a zero contribution.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime

from geopy.distance import geodesic

# Factor weights (sum to 100)
WEIGHTS: dict[str, float] = {
    "skills": 20.0,
    "location": 25.0,
    "interests": 25.0,
    "availability": 15.0,
    "experience": 15.0,
}

FACTOR_ORDER = ("skills", "location", "interests", "availability", "experience")

LEVEL_RANK = {"BEGINNER": 0, "INTERMEDIATE": 1, "ADVANCED": 2, "EXPERT": 3}

NEAR_DISTANCE_KM = 10.0
MAX_DISTANCE_KM = 100.0

OPTIONAL_SKILL_WEIGHT = 0.5
UNDER_LEVEL_CREDIT = 0.5

TAG_MATCH_POINTS = 5.0
TAG_MATCH_CAP = 15.0

EXPERIENCE_HOURS_CEILING = 500
EXPERIENCE_HOURS_POINTS = 12.0
EXPERIENCE_IMPACT_CEILING = 100.0
EXPERIENCE_IMPACT_POINTS = 3.0


@dataclass(frozen=True)
class VolunteerSkillEntry:
    name: str
    level: str = "BEGINNER"
    years_of_experience: float = 0.0


@dataclass(frozen=True)
class SkillRequirement:
    name: str
    required_level: str = "BEGINNER"
    is_required: bool = True


@dataclass(frozen=True)
class VolunteerSnapshot:
    """Point-in-time view of a volunteer profile used for matching."""

    user_id: uuid.UUID
    profile_id: uuid.UUID | None = None
    first_name: str = ""
    last_name: str = ""
    avatar: str | None = None
    bio: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    interests: tuple[str, ...] = ()
    hours_per_week: float | None = None
    total_hours: int = 0
    impact_score: float = 0.0
    level: int = 1
    status: str = "AVAILABLE"
    skills: tuple[VolunteerSkillEntry, ...] = ()
    created_at: datetime | None = None


@dataclass(frozen=True)
class ProjectSnapshot:
    """Point-in-time view of a project used for matching."""

    id: uuid.UUID
    title: str = ""
    category: str = ""
    description: str | None = None
    short_description: str | None = None
    tags: tuple[str, ...] = ()
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    volunteers_needed: int = 0
    volunteers_applied: int = 0
    estimated_hours: int | None = None
    status: str = "ACTIVE"
    creator_id: uuid.UUID | None = None
    creator_name: str = ""
    organization_name: str | None = None
    required_skills: tuple[SkillRequirement, ...] = ()
    created_at: datetime | None = None


@dataclass(frozen=True)
class MatchFactors:
    """Per-factor sub-scores. The aggregate is always their sum."""

    skills: float = 0.0
    location: float = 0.0
    interests: float = 0.0
    availability: float = 0.0
    experience: float = 0.0

    @property
    def total(self) -> float:
        return self.skills + self.location + self.interests + self.availability + self.experience

    def as_dict(self, ndigits: int | None = None) -> dict[str, float]:
        values = {name: getattr(self, name) for name in FACTOR_ORDER}
        if ndigits is None:
            return values
        return {name: round(value, ndigits) for name, value in values.items()}


@dataclass
class MatchResult:
    """A scored candidate. Computed on demand, never persisted."""

    entity: VolunteerSnapshot | ProjectSnapshot
    factors: MatchFactors
    reason: str = ""

    @property
    def score(self) -> float:
        return self.factors.total


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def distance_km(
    lat1: float | None, lon1: float | None, lat2: float | None, lon2: float | None
) -> float | None:
    """Geodesic distance in kilometres, or None when a coordinate is missing."""
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return None
    return geodesic((lat1, lon1), (lat2, lon2)).km


class ScoringEngine:
    """Weighted five-factor match scoring."""

    def __init__(self, weights: dict[str, float] | None = None) -> None:
        self.weights = dict(weights or WEIGHTS)

    def score(self, volunteer: VolunteerSnapshot, project: ProjectSnapshot) -> MatchFactors:
        """Score a volunteer against a project."""
        return MatchFactors(
            skills=self._score_skills(volunteer, project),
            location=self._score_location(volunteer, project),
            interests=self._score_interests(volunteer, project),
            availability=self._score_availability(volunteer, project),
            experience=self._score_experience(volunteer),
        )

    def _score_skills(self, volunteer: VolunteerSnapshot, project: ProjectSnapshot) -> float:
        """Weighted share of project skills the volunteer holds.

        Holding a skill at or above the required level earns full credit,
        holding it below the level earns half. Optional skills count half
        as much as required ones.
        """
        if not project.required_skills:
            return 0.0

        held = {_normalize(s.name): s for s in volunteer.skills}
        earned = 0.0
        possible = 0.0
        for requirement in project.required_skills:
            weight = 1.0 if requirement.is_required else OPTIONAL_SKILL_WEIGHT
            possible += weight
            skill = held.get(_normalize(requirement.name))
            if skill is None:
                continue
            have = LEVEL_RANK.get(skill.level, 0)
            need = LEVEL_RANK.get(requirement.required_level, 0)
            earned += weight * (1.0 if have >= need else UNDER_LEVEL_CREDIT)

        if possible <= 0:
            return 0.0
        return self.weights["skills"] * earned / possible

    def _score_location(self, volunteer: VolunteerSnapshot, project: ProjectSnapshot) -> float:
        """Full points nearby, linear decay to zero at the max radius."""
        distance = distance_km(
            volunteer.latitude, volunteer.longitude, project.latitude, project.longitude
        )
        if distance is None:
            return 0.0
        weight = self.weights["location"]
        if distance <= NEAR_DISTANCE_KM:
            return weight
        if distance >= MAX_DISTANCE_KM:
            return 0.0
        return weight * (MAX_DISTANCE_KM - distance) / (MAX_DISTANCE_KM - NEAR_DISTANCE_KM)

    def _score_interests(self, volunteer: VolunteerSnapshot, project: ProjectSnapshot) -> float:
        interests = {_normalize(i) for i in volunteer.interests if i}
        if not interests:
            return 0.0
        weight = self.weights["interests"]
        if project.category and _normalize(project.category) in interests:
            return weight

        overlap = len({_normalize(t) for t in project.tags if t} & interests)
        return min(overlap * TAG_MATCH_POINTS, TAG_MATCH_CAP, weight)

    def _score_availability(
        self, volunteer: VolunteerSnapshot, project: ProjectSnapshot
    ) -> float:
        """Volunteer weekly hours against the project's weekly demand."""
        if not volunteer.hours_per_week or volunteer.hours_per_week <= 0:
            return 0.0
        if not project.estimated_hours or project.estimated_hours <= 0:
            return 0.0

        weeks = 1.0
        if project.start_date and project.end_date and project.end_date > project.start_date:
            weeks = max((project.end_date - project.start_date).days / 7.0, 1.0)
        weekly_demand = project.estimated_hours / weeks

        ratio = min(volunteer.hours_per_week / weekly_demand, 1.0)
        return self.weights["availability"] * ratio

    def _score_experience(self, volunteer: VolunteerSnapshot) -> float:
        """Log-scaled hours plus an impact bonus, saturating at the weight."""
        score = 0.0
        if volunteer.total_hours and volunteer.total_hours > 0:
            hours_ratio = math.log1p(volunteer.total_hours) / math.log1p(
                EXPERIENCE_HOURS_CEILING
            )
            score += min(hours_ratio, 1.0) * EXPERIENCE_HOURS_POINTS
        if volunteer.impact_score and volunteer.impact_score > 0:
            impact_ratio = volunteer.impact_score / EXPERIENCE_IMPACT_CEILING
            score += min(impact_ratio, 1.0) * EXPERIENCE_IMPACT_POINTS
        return min(score, self.weights["experience"])
