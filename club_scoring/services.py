from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Any, Iterable, Optional, Sequence

from club_scoring.rules import (
    classify_group,
    competition_ranks,
    compute_handicap,
    has_valid_time,
    n_minus_one_time,
    placement_points,
    winner_bonus,
)
from club_scoring.schemas import (
    Event,
    EventType,
    GroupLabel,
    Participant,
    Result,
    ScoringSettings,
    Team,
    TeamMember,
)


logger = logging.getLogger(__name__)

TIME_TRIAL_TYPES = frozenset({EventType.INDIVIDUAL_TIME_TRIAL, EventType.MOUNTAIN_TIME_TRIAL})
TEAM_PENALTY_POINTS = 2


def participant_index(participants: Iterable[Participant]) -> dict[str, Participant]:
    return {p.id: p for p in participants}


# --- Individual / mountain time trial ---


def _rank_time_trial(
    event: Event,
    results: Sequence[Result],
    participants: dict[str, Participant],
    settings: ScoringSettings,
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for idx, result in enumerate(results):
        if not has_valid_time(result):
            continue
        participant = participants.get(result.participant_id)
        if participant is None:
            continue
        handicap = compute_handicap(participant, result, event, settings)
        rows.append(
            {
                "index": idx,
                "result": result,
                "participant": participant,
                "handicap_seconds": handicap,
                "adjusted_time_seconds": float(result.time_seconds) + handicap,
            }
        )

    # Stable sort keeps input order among equal adjusted times.
    rows.sort(key=lambda r: r["adjusted_time_seconds"])
    ranks = competition_ranks([r["adjusted_time_seconds"] for r in rows])
    for row, rank in zip(rows, ranks):
        row["rank"] = rank
        row["points"] = placement_points(rank) + winner_bonus(
            settings.winner_points, row["result"].winner_rank
        )
    return rows


def score_time_trial(
    event: Event,
    results: Sequence[Result],
    participants: Iterable[Participant],
    settings: ScoringSettings,
) -> list[Result]:
    """
    Rank riders by handicap-adjusted time. Every non-DNF rider keeps one
    finisher point even when they cannot be ranked.
    """
    scored = [
        r.model_copy(update={"points": 0 if r.dnf else 1, "rank_overall": None})
        for r in results
    ]
    rows = _rank_time_trial(event, results, participant_index(participants), settings)
    for row in rows:
        scored[row["index"]] = scored[row["index"]].model_copy(
            update={"points": row["points"], "rank_overall": row["rank"]}
        )
    logger.debug("Event %s: ranked %d of %d time trial results", event.id, len(rows), len(results))
    return scored


def time_trial_leaderboard(
    event: Event,
    results: Sequence[Result],
    participants: Iterable[Participant],
    settings: ScoringSettings,
) -> list[dict[str, Any]]:
    if not event.finished:
        return []
    rows = _rank_time_trial(event, results, participant_index(participants), settings)
    return [
        {
            "result_id": row["result"].id,
            "participant_id": row["participant"].id,
            "participant_name": row["participant"].display_name,
            "time_seconds": row["result"].time_seconds,
            "handicap_seconds": row["handicap_seconds"],
            "adjusted_time_seconds": row["adjusted_time_seconds"],
            "rank": row["rank"],
            "points": row["points"],
        }
        for row in rows
    ]


# --- Handicap race ---


def handicap_race_points(
    result: Result,
    participant: Optional[Participant],
    settings: ScoringSettings,
) -> int:
    if result.dnf or participant is None:
        return 0
    base = settings.handicap_base_points.get(participant.perf_class, 0)
    if result.finisher_group == 2:
        points = max(1, base - 1)
    else:
        # Group 1 or no group assigned; a class with no base points still earns the finisher point.
        points = max(1, base)
    return points + winner_bonus(settings.winner_points, result.winner_rank)


def score_handicap_race(
    results: Sequence[Result],
    participants: Iterable[Participant],
    settings: ScoringSettings,
) -> list[Result]:
    by_id = participant_index(participants)
    return [
        r.model_copy(
            update={"points": handicap_race_points(r, by_id.get(r.participant_id), settings)}
        )
        for r in results
    ]


def handicap_race_leaderboard(
    results: Sequence[Result],
    participants: Iterable[Participant],
    settings: ScoringSettings,
) -> dict[GroupLabel, list[dict[str, Any]]]:
    """
    Per-cohort display ranking: points descending, then name. Purely
    presentational; the points come from :func:`score_handicap_race`.
    """
    by_id = participant_index(participants)
    grouped: dict[GroupLabel, list[dict[str, Any]]] = {label: [] for label in GroupLabel}
    for result in score_handicap_race(results, by_id.values(), settings):
        participant = by_id.get(result.participant_id)
        if participant is None:
            continue
        grouped[classify_group(participant)].append(
            {
                "result_id": result.id,
                "participant_id": participant.id,
                "participant_name": participant.display_name,
                "finisher_group": result.finisher_group,
                "dnf": result.dnf,
                "points": result.points,
            }
        )
    for rows in grouped.values():
        rows.sort(key=lambda r: (-r["points"], r["participant_name"].casefold()))
        for idx, row in enumerate(rows, start=1):
            row["rank"] = idx
    return grouped


# --- Team time trial ---


def _rank_teams(
    event: Event,
    results: Sequence[Result],
    teams: Sequence[Team],
    team_members: Sequence[TeamMember],
    participants: dict[str, Participant],
    settings: ScoringSettings,
) -> list[dict[str, Any]]:
    result_by_participant = {r.participant_id: r for r in results}
    members_by_team: dict[str, list[TeamMember]] = defaultdict(list)
    for member in team_members:
        members_by_team[member.team_id].append(member)

    rows: list[dict[str, Any]] = []
    for team in teams:
        members = members_by_team.get(team.id, [])
        valid_times: list[float] = []
        team_handicap = 0.0
        for member in members:
            result = result_by_participant.get(member.participant_id)
            if result is None:
                continue
            if has_valid_time(result):
                valid_times.append(float(result.time_seconds))
            participant = participants.get(member.participant_id)
            # DNF riders still carry their handicap into the team total.
            if participant is not None:
                team_handicap += compute_handicap(participant, result, event, settings)

        base_time = n_minus_one_time(valid_times)
        rows.append(
            {
                "team_id": team.id,
                "team_name": team.name,
                "member_ids": [m.participant_id for m in members],
                "finisher_count": len(valid_times),
                "base_time_seconds": base_time,
                "team_handicap_seconds": team_handicap,
                "adjusted_time_seconds": math.inf if base_time is None else base_time + team_handicap,
                "rank": None,
                "points": 0,
            }
        )

    rows.sort(key=lambda r: r["adjusted_time_seconds"])
    qualified = [r for r in rows if r["base_time_seconds"] is not None]
    ranks = competition_ranks([r["adjusted_time_seconds"] for r in qualified])
    for row, rank in zip(qualified, ranks):
        row["rank"] = rank
        row["points"] = placement_points(rank) + winner_bonus(settings.winner_points, rank)
    return rows


def score_team_time_trial(
    event: Event,
    results: Sequence[Result],
    teams: Sequence[Team],
    team_members: Sequence[TeamMember],
    participants: Iterable[Participant],
    settings: ScoringSettings,
) -> list[Result]:
    """
    Team time is the n-1 rider's time plus the summed handicap of every
    member. Members inherit the team's points; results outside any team
    score nothing.
    """
    event_teams = [t for t in teams if t.event_id == event.id]
    team_ids = {t.id for t in event_teams}
    event_members = [m for m in team_members if m.team_id in team_ids]
    rows = _rank_teams(
        event, results, event_teams, event_members, participant_index(participants), settings
    )
    row_by_team = {row["team_id"]: row for row in rows}

    scored = [r.model_copy(update={"points": 0, "rank_overall": None}) for r in results]
    index_by_participant = {r.participant_id: idx for idx, r in enumerate(scored)}
    for member in event_members:
        idx = index_by_participant.get(member.participant_id)
        if idx is None or scored[idx].dnf:
            continue
        row = row_by_team[member.team_id]
        points = row["points"] if row["rank"] is not None else 1
        if member.penalty_minus_2:
            points = max(0, points - TEAM_PENALTY_POINTS)
        scored[idx] = scored[idx].model_copy(update={"points": points, "rank_overall": row["rank"]})

    logger.debug(
        "Event %s: %d of %d teams qualified",
        event.id,
        sum(1 for row in rows if row["rank"] is not None),
        len(rows),
    )
    return scored


def team_leaderboard(
    event: Event,
    results: Sequence[Result],
    teams: Sequence[Team],
    team_members: Sequence[TeamMember],
    participants: Iterable[Participant],
    settings: ScoringSettings,
) -> list[dict[str, Any]]:
    if not event.finished:
        return []
    event_teams = [t for t in teams if t.event_id == event.id]
    team_ids = {t.id for t in event_teams}
    rows = _rank_teams(
        event,
        results,
        event_teams,
        [m for m in team_members if m.team_id in team_ids],
        participant_index(participants),
        settings,
    )
    for row in rows:
        if row["rank"] is None:
            row["adjusted_time_seconds"] = None
    return rows


# --- Dispatch ---


def score_event(
    event: Event,
    results: Sequence[Result],
    participants: Sequence[Participant],
    teams: Sequence[Team],
    team_members: Sequence[TeamMember],
    settings: ScoringSettings,
) -> list[Result]:
    if not event.finished:
        return [r.model_copy(update={"points": 0, "rank_overall": None}) for r in results]

    match event.event_type:
        case EventType.INDIVIDUAL_TIME_TRIAL | EventType.MOUNTAIN_TIME_TRIAL:
            return score_time_trial(event, results, participants, settings)
        case EventType.HANDICAP_RACE:
            return score_handicap_race(results, participants, settings)
        case EventType.TEAM_TIME_TRIAL:
            return score_team_time_trial(event, results, teams, team_members, participants, settings)
        case _:
            logger.warning("Event %s has unknown type %r; results left unscored", event.id, event.event_type)
            return list(results)


def event_leaderboard(
    event: Event,
    results: Sequence[Result],
    participants: Sequence[Participant],
    teams: Sequence[Team],
    team_members: Sequence[TeamMember],
    settings: ScoringSettings,
) -> dict[str, Any]:
    """Boards stay empty until the event is marked finished."""
    payload: dict[str, Any] = {
        "event_id": event.id,
        "event_type": event.event_type,
        "finished": event.finished,
    }
    if event.event_type in TIME_TRIAL_TYPES:
        payload["riders"] = time_trial_leaderboard(event, results, participants, settings)
    elif event.event_type == EventType.TEAM_TIME_TRIAL:
        payload["teams"] = team_leaderboard(event, results, teams, team_members, participants, settings)
    elif event.event_type == EventType.HANDICAP_RACE:
        scored = results if event.finished else []
        payload["groups"] = handicap_race_leaderboard(scored, participants, settings)
    return payload


# --- Season ---


def available_seasons(events: Iterable[Event]) -> list[int]:
    return sorted({e.season for e in events}, reverse=True)


def season_slice(
    season: int,
    events: Iterable[Event],
    results: Iterable[Result],
    teams: Iterable[Team],
    team_members: Iterable[TeamMember],
) -> tuple[list[Event], list[Result], list[Team], list[TeamMember]]:
    season_events = [e for e in events if e.season == season]
    event_ids = {e.id for e in season_events}
    season_teams = [t for t in teams if t.event_id in event_ids]
    team_ids = {t.id for t in season_teams}
    return (
        season_events,
        [r for r in results if r.event_id in event_ids],
        season_teams,
        [m for m in team_members if m.team_id in team_ids],
    )


def rescore_season(
    events: Sequence[Event],
    results: Sequence[Result],
    participants: Sequence[Participant],
    teams: Sequence[Team],
    team_members: Sequence[TeamMember],
    settings: ScoringSettings,
) -> list[Result]:
    """
    Recompute every event from scratch. Output keeps the input order;
    results of unknown events pass through unchanged.
    """
    positions: dict[str, list[int]] = defaultdict(list)
    for idx, result in enumerate(results):
        positions[result.event_id].append(idx)

    rescored = list(results)
    for event in events:
        indexes = positions.get(event.id)
        if not indexes:
            continue
        scored = score_event(
            event,
            [results[i] for i in indexes],
            participants,
            [t for t in teams if t.event_id == event.id],
            team_members,
            settings,
        )
        for idx, result in zip(indexes, scored):
            rescored[idx] = result

    logger.info("Rescored %d results across %d events", len(results), len(events))
    return rescored
