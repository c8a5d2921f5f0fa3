"""Volunteer/project matcher.

Fixes one side of a match (the anchor), pulls the candidate set for the
other side from an injected candidate store, scores every candidate and
returns the top results. Read-only and idempotent.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Sequence
from typing import Protocol

from app.exceptions import NotFoundError, ValidationError
from app.logging_config import get_logger
from app.metrics import MATCH_CANDIDATES, MATCH_DURATION, MATCH_REQUESTS
from services.explainer import Audience, explain
from services.scoring import (
    MatchResult,
    ProjectSnapshot,
    ScoringEngine,
    VolunteerSnapshot,
)

logger = get_logger(__name__)


class CandidateStore(Protocol):
    """Read access to matchable entities."""

    async def get_volunteer(self, user_id: uuid.UUID) -> VolunteerSnapshot | None: ...

    async def get_project(self, project_id: uuid.UUID) -> ProjectSnapshot | None: ...

    async def list_active_projects(self, limit: int | None = None) -> Sequence[ProjectSnapshot]: ...

    async def list_available_volunteers(
        self, limit: int | None = None
    ) -> Sequence[VolunteerSnapshot]: ...


def _validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError(
            "limit must be a positive integer", details={"limit": str(limit)}
        )


def _recency(entity: VolunteerSnapshot | ProjectSnapshot) -> float:
    return entity.created_at.timestamp() if entity.created_at else float("-inf")


def _rank(results: list[MatchResult], limit: int) -> list[MatchResult]:
    """Sort by descending score, most recently created first on ties."""
    results.sort(key=lambda r: (-r.score, -_recency(r.entity)))
    return results[:limit]


class Matcher:
    """Ranks candidates for an anchor volunteer or project."""

    def __init__(
        self,
        store: CandidateStore,
        engine: ScoringEngine | None = None,
        candidate_limit: int | None = None,
    ) -> None:
        self.store = store
        self.engine = engine or ScoringEngine()
        self.candidate_limit = candidate_limit

    async def find_matches_for_volunteer(
        self, volunteer_id: uuid.UUID, limit: int = 10
    ) -> list[MatchResult]:
        """Best ACTIVE projects for a volunteer."""
        _validate_limit(limit)
        started = time.perf_counter()

        volunteer = await self.store.get_volunteer(volunteer_id)
        if volunteer is None:
            MATCH_REQUESTS.labels(direction="projects", status="not_found").inc()
            raise NotFoundError(
                "volunteer_profile",
                "Volunteer profile not found. Please complete your profile first.",
            )

        projects = await self.store.list_active_projects(self.candidate_limit)
        results = []
        for project in projects:
            factors = self.engine.score(volunteer, project)
            results.append(
                MatchResult(
                    entity=project,
                    factors=factors,
                    reason=explain(factors, Audience.VOLUNTEER),
                )
            )
        ranked = _rank(results, limit)

        MATCH_CANDIDATES.labels(direction="projects").observe(len(projects))
        MATCH_DURATION.labels(direction="projects").observe(time.perf_counter() - started)
        MATCH_REQUESTS.labels(direction="projects", status="ok").inc()
        logger.info(
            "project_matches_computed",
            candidates=len(projects),
            returned=len(ranked),
        )
        return ranked

    async def recommend_volunteers_for_project(
        self, project_id: uuid.UUID, limit: int = 10
    ) -> list[MatchResult]:
        """Best AVAILABLE volunteers for a project."""
        _validate_limit(limit)
        started = time.perf_counter()

        project = await self.store.get_project(project_id)
        if project is None:
            MATCH_REQUESTS.labels(direction="volunteers", status="not_found").inc()
            raise NotFoundError("project")

        volunteers = await self.store.list_available_volunteers(self.candidate_limit)
        results = []
        for volunteer in volunteers:
            factors = self.engine.score(volunteer, project)
            results.append(
                MatchResult(
                    entity=volunteer,
                    factors=factors,
                    reason=explain(factors, Audience.ORGANIZATION),
                )
            )
        ranked = _rank(results, limit)

        MATCH_CANDIDATES.labels(direction="volunteers").observe(len(volunteers))
        MATCH_DURATION.labels(direction="volunteers").observe(time.perf_counter() - started)
        MATCH_REQUESTS.labels(direction="volunteers", status="ok").inc()
        logger.info(
            "volunteer_recommendations_computed",
            candidates=len(volunteers),
            returned=len(ranked),
        )
        return ranked
