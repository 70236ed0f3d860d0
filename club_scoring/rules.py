from __future__ import annotations

from collections import Counter
from typing import Optional, Sequence

from club_scoring.schemas import (
    Event,
    Gender,
    GroupLabel,
    Participant,
    PerfClass,
    Result,
    ScoringSettings,
    SecondsRule,
)


HOBBY_CLASSES = frozenset({PerfClass.A, PerfClass.B})
TIME_EPSILON = 1e-9


def classify_group(participant: Participant) -> GroupLabel:
    """
    Women take precedence over class; men split by class A/B (Hobby)
    and C/D (Ambitious).
    """
    if participant.gender == Gender.FEMALE:
        return GroupLabel.WOMEN
    if participant.perf_class in HOBBY_CLASSES:
        return GroupLabel.HOBBY
    return GroupLabel.AMBITIOUS


def _rule_seconds(rule: Optional[SecondsRule]) -> Optional[float]:
    if rule is None or not rule.enabled:
        return None
    return float(rule.seconds)


def compute_handicap(
    participant: Participant,
    result: Result,
    event: Event,
    settings: ScoringSettings,
) -> float:
    """
    Signed time adjustment in seconds for one rider in one race.
    Negative values are bonuses, positive values are penalties.
    """
    adjustment = 0.0
    handicap = settings.handicap_settings
    bonuses = settings.time_trial_bonuses

    if handicap is not None:
        if handicap.gender is not None and participant.gender == Gender.FEMALE:
            seconds = _rule_seconds(handicap.gender.female)
            if seconds is not None:
                adjustment += seconds

        age = event.season - participant.birth_year
        for bracket in handicap.age_brackets:
            if bracket.enabled and bracket.min_age <= age <= bracket.max_age:
                adjustment += float(bracket.seconds)
                break

        if handicap.perf_class is not None and participant.perf_class in HOBBY_CLASSES:
            seconds = _rule_seconds(handicap.perf_class.hobby)
            if seconds is not None:
                adjustment += seconds

    if bonuses is not None:
        aero = _rule_seconds(bonuses.aero_bars)
        if aero is not None and result.has_aero_bars:
            adjustment += aero
        equipment = _rule_seconds(bonuses.tt_equipment)
        if equipment is not None and result.has_tt_equipment:
            adjustment += equipment

    return adjustment


def placement_points(rank: int) -> int:
    if rank <= 3:
        return 8
    if rank <= 6:
        return 7
    if rank <= 10:
        return 6
    return 5


def winner_bonus(winner_points: Sequence[int], position: Optional[int]) -> int:
    if position is None or position < 1 or position > len(winner_points):
        return 0
    return int(winner_points[position - 1])


def has_valid_time(result: Result) -> bool:
    return not result.dnf and result.time_seconds is not None and result.time_seconds > 0


def competition_ranks(sorted_times: Sequence[float]) -> list[int]:
    """
    Standard competition ranking over ascending times: ties share a rank
    and the next distinct time takes its 1-based position (1, 1, 3).
    """
    ranks: list[int] = []
    last_time: Optional[float] = None
    rank = 0
    for idx, value in enumerate(sorted_times, start=1):
        if last_time is None or abs(value - last_time) > TIME_EPSILON:
            rank = idx
            last_time = value
        ranks.append(rank)
    return ranks


def n_minus_one_time(times: Sequence[float]) -> Optional[float]:
    """
    Team time under the n-1 rule: the second-slowest valid time.
    Needs at least two times.
    """
    if len(times) < 2:
        return None
    ordered = sorted(times)
    return ordered[len(ordered) - 2]


def drops_allowed(drop_scores: int, finished_event_count: int, attended: int) -> int:
    """
    Each missed event already counts as a drop, so only the remainder is
    taken from attended events.
    """
    missed = finished_event_count - attended
    return min(max(0, drop_scores - missed), attended)


def select_dropped(points: Sequence[float], count: int) -> list[bool]:
    """
    Flag the lowest ``count`` scores. Ties at the boundary are settled by
    counting occurrences so exactly ``count`` entries are flagged.
    """
    flags = [False] * len(points)
    if count <= 0:
        return flags
    to_drop = Counter(sorted(points)[:count])
    for idx, value in enumerate(points):
        if to_drop[value] > 0:
            flags[idx] = True
            to_drop[value] -= 1
    return flags


def tie_breaker_key(scores: Sequence[float], width: int) -> tuple[float, ...]:
    """Descending score list padded with zeros, negated for ascending sorts."""
    padded = list(scores) + [0.0] * (width - len(scores))
    return tuple(-float(s) for s in padded)
