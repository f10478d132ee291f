"""Health scoring, story cards and section fan-out shared by the dashboards."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional

from app.schemas_dashboards import HealthComponent, HealthScore, StoryCard

logger = logging.getLogger(__name__)

EXCELLENT_CUTOFF = 85
GOOD_CUTOFF = 70
FAIR_CUTOFF = 50

# Components scoring below this show up in `top_issues`.
ISSUE_CUTOFF = 70

# Relative change (percent) below which a story trend is STABLE.
STORY_TREND_THRESHOLD = 5.0


def health_status(score: float) -> str:
    if score >= EXCELLENT_CUTOFF:
        return "EXCELLENT"
    if score >= GOOD_CUTOFF:
        return "GOOD"
    if score >= FAIR_CUTOFF:
        return "FAIR"
    return "POOR"


def clamp_score(value: float) -> int:
    return int(max(0, min(100, round(value))))


def component(name: str, score: float, weight: float, details: str = "") -> HealthComponent:
    s = clamp_score(score)
    return HealthComponent(name=name, score=s, status=health_status(s), weight=weight, details=details)


def compose_health(
    components: Iterable[HealthComponent],
    recommendations: Optional[Mapping[str, str]] = None,
) -> HealthScore:
    """Weight-normalised overall score plus issues for weak components."""

    comps = list(components)
    total_weight = sum(c.weight for c in comps)
    if total_weight > 0:
        overall = clamp_score(sum(c.score * c.weight for c in comps) / total_weight)
    else:
        overall = 0

    weak = [c for c in comps if c.score < ISSUE_CUTOFF]
    top_issues = [f"{c.name}: {c.details}" if c.details else c.name for c in weak]
    recs = [recommendations[c.name] for c in weak if recommendations and c.name in recommendations]

    return HealthScore(
        overall_score=overall,
        status=health_status(overall),
        components=comps,
        top_issues=top_issues,
        recommendations=recs,
    )


def story_trend(current: float, previous: float, threshold: float = STORY_TREND_THRESHOLD) -> str:
    if not previous:
        return "UP" if current > 0 else "STABLE"
    change = (current - previous) / previous * 100
    if change > threshold:
        return "UP"
    if change < -threshold:
        return "DOWN"
    return "STABLE"


def story(
    title: str,
    trend: str,
    narrative: str,
    value: Any,
    metric: str,
    impact: str = "neutral",
) -> StoryCard:
    return StoryCard(title=title, trend=trend, narrative=narrative, value=str(value), metric=metric, impact=impact)


async def gather_sections(
    dashboard: str,
    fetches: Dict[str, Awaitable[Any]],
    defaults: Mapping[str, Any],
) -> Dict[str, Any]:
    """Await all section fetches concurrently.

    A failing fetch is logged and replaced by its default so the rest of the
    dashboard still renders.
    """

    names: List[str] = list(fetches)
    results = await asyncio.gather(*fetches.values(), return_exceptions=True)

    out: Dict[str, Any] = {}
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.warning(
                "%s dashboard: section %s failed, using empty default",
                dashboard,
                name,
                exc_info=result,
            )
            out[name] = defaults[name]
        elif isinstance(result, BaseException):
            raise result
        else:
            out[name] = result
    return out
