"""Skill catalog lookups and skill-gap recommendations."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Project, ProjectSkill, ProjectStatus, Skill

MAX_SKILL_RECOMMENDATIONS = 10


async def get_or_create_skills(
    session: AsyncSession, names: Iterable[str]
) -> dict[str, Skill]:
    """Resolve skill names to catalog rows, creating missing ones.

    Keys of the returned mapping are lower-cased names.
    """
    wanted = {n.strip().lower(): n.strip() for n in names if n and n.strip()}
    if not wanted:
        return {}

    stmt = select(Skill).where(func.lower(Skill.name).in_(list(wanted)))
    found = {s.name.lower(): s for s in (await session.execute(stmt)).scalars().all()}

    for key, display_name in wanted.items():
        if key not in found:
            skill = Skill(name=display_name)
            session.add(skill)
            found[key] = skill
    await session.flush()
    return found


@dataclass
class SkillRecommendation:
    skill_id: str
    name: str
    category: str | None
    description: str | None
    demand_score: int
    reason: str


async def recommend_skills(
    session: AsyncSession,
    current_skill_names: Iterable[str],
    interests: Iterable[str],
    limit: int = MAX_SKILL_RECOMMENDATIONS,
) -> list[SkillRecommendation]:
    """Skills demanded by active projects in the given interest categories.

    Skills already held are excluded; results are ordered by the number of
    active projects requiring them.
    """
    categories = [i.lower() for i in interests if i]
    if not categories:
        return []
    held = [n.lower() for n in current_skill_names if n]

    demand = func.count(ProjectSkill.id).label("demand")
    stmt = (
        select(Skill, demand)
        .join(ProjectSkill, ProjectSkill.skill_id == Skill.id)
        .join(Project, Project.id == ProjectSkill.project_id)
        .where(
            Project.status == ProjectStatus.ACTIVE,
            func.lower(Project.category).in_(categories),
        )
        .group_by(Skill.id)
        .order_by(demand.desc(), Skill.name)
        .limit(limit)
    )
    if held:
        stmt = stmt.where(func.lower(Skill.name).not_in(held))

    rows = (await session.execute(stmt)).all()
    return [
        SkillRecommendation(
            skill_id=str(skill.id),
            name=skill.name,
            category=skill.category,
            description=skill.description,
            demand_score=count,
            reason=(
                f"This skill is required in {count} active projects in your areas of interest"
            ),
        )
        for skill, count in rows
    ]
