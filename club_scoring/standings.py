from __future__ import annotations

import logging
from typing import Iterable

from club_scoring.rules import classify_group, drops_allowed, select_dropped, tie_breaker_key
from club_scoring.schemas import (
    Event,
    GroupLabel,
    Participant,
    Result,
    ScoringSettings,
    Standing,
    StandingResult,
)


logger = logging.getLogger(__name__)


def _apply_drop_scores(standing: Standing, finished_event_count: int, drop_scores: int) -> None:
    points = [r.points for r in standing.results]
    count = drops_allowed(drop_scores, finished_event_count, len(points))
    for entry, dropped in zip(standing.results, select_dropped(points, count)):
        entry.is_dropped = dropped

    standing.total_points = sum(points)
    standing.final_points = standing.total_points - sum(
        r.points for r in standing.results if r.is_dropped
    )
    standing.tie_breaker_scores = sorted(points, reverse=True)


def compute_standings(
    results: Iterable[Result],
    participants: Iterable[Participant],
    events: Iterable[Event],
    settings: ScoringSettings,
) -> dict[GroupLabel, list[Standing]]:
    """
    Season standings per group.

    Only finished events count and participants without a result in one
    are left out. Each participant drops their lowest scores, reduced by
    the number of finished events they missed. Ties on final points are
    broken by the best individual scores, then by name.
    """
    participant_map = {p.id: p for p in participants}
    finished_event_ids = {e.id for e in events if e.finished}

    by_participant: dict[str, Standing] = {}
    for result in results:
        if result.event_id not in finished_event_ids:
            continue
        participant = participant_map.get(result.participant_id)
        if participant is None:
            continue
        standing = by_participant.get(participant.id)
        if standing is None:
            standing = Standing(
                participant_id=participant.id,
                participant_name=participant.display_name,
                participant_class=participant.perf_class,
                group=classify_group(participant),
            )
            by_participant[participant.id] = standing
        standing.results.append(StandingResult(event_id=result.event_id, points=result.points))

    for standing in by_participant.values():
        _apply_drop_scores(standing, len(finished_event_ids), settings.drop_scores)

    rows = list(by_participant.values())
    width = max((len(s.tie_breaker_scores) for s in rows), default=0)
    rows.sort(
        key=lambda s: (
            -s.final_points,
            tie_breaker_key(s.tie_breaker_scores, width),
            s.participant_name.casefold(),
        )
    )

    grouped: dict[GroupLabel, list[Standing]] = {label: [] for label in GroupLabel}
    for standing in rows:
        grouped[standing.group].append(standing)
    for group_rows in grouped.values():
        for idx, standing in enumerate(group_rows, start=1):
            standing.rank = idx

    logger.debug(
        "Standings over %d finished events: %s",
        len(finished_event_ids),
        {label.value: len(group_rows) for label, group_rows in grouped.items()},
    )
    return grouped
