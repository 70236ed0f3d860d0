from __future__ import annotations

import logging
import sys
from typing import Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from club_scoring.config import load_scoring_settings, settings
from club_scoring.rules import classify_group, compute_handicap
from club_scoring.schemas import (
    Event,
    EventScoreRequest,
    HandicapRequest,
    Participant,
    Result,
    ScoringSettings,
    SeasonPayload,
)
from club_scoring.services import event_leaderboard, rescore_season, score_event, season_slice
from club_scoring.standings import compute_standings


logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

default_scoring_settings = load_scoring_settings(settings.scoring_settings_file)
if settings.scoring_settings_file is not None:
    logger.info("Loaded scoring settings from %s", settings.scoring_settings_file)


def get_scoring_settings() -> ScoringSettings:
    return default_scoring_settings


def resolve_settings(override: Optional[ScoringSettings], default: ScoringSettings) -> ScoringSettings:
    return override if override is not None else default


def require_event_results(event: Event, results: Sequence[Result]) -> None:
    foreign = sorted({r.event_id for r in results if r.event_id != event.id})
    if foreign:
        raise HTTPException(
            status_code=400,
            detail=f"Results belong to other events: {', '.join(foreign)}",
        )


app = FastAPI(
    title="Club Cup - Scoring Engine",
    version="1.0.0",
    description=(
        "Stateless scoring for club time trials, team time trials and handicap "
        "races, plus season standings for the Women, Hobby and Ambitious groups."
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/settings/default")
def default_settings(scoring: ScoringSettings = Depends(get_scoring_settings)) -> ScoringSettings:
    return scoring


@app.post("/groups/classify")
def classify(participant: Participant) -> dict[str, str]:
    return {"participant_id": participant.id, "group": classify_group(participant).value}


@app.post("/handicap")
def handicap(payload: HandicapRequest, scoring: ScoringSettings = Depends(get_scoring_settings)):
    seconds = compute_handicap(
        payload.participant,
        payload.result,
        payload.event,
        resolve_settings(payload.settings, scoring),
    )
    return {"participant_id": payload.participant.id, "handicap_seconds": seconds}


@app.post("/events/score")
def score_single_event(
    payload: EventScoreRequest, scoring: ScoringSettings = Depends(get_scoring_settings)
):
    require_event_results(payload.event, payload.results)
    results = score_event(
        payload.event,
        payload.results,
        payload.participants,
        payload.teams,
        payload.team_members,
        resolve_settings(payload.settings, scoring),
    )
    return {"event_id": payload.event.id, "results": results}


@app.post("/events/leaderboard")
def single_event_leaderboard(
    payload: EventScoreRequest, scoring: ScoringSettings = Depends(get_scoring_settings)
):
    require_event_results(payload.event, payload.results)
    return event_leaderboard(
        payload.event,
        payload.results,
        payload.participants,
        payload.teams,
        payload.team_members,
        resolve_settings(payload.settings, scoring),
    )


@app.post("/seasons/{season}/rescore")
def rescore(
    season: int, payload: SeasonPayload, scoring: ScoringSettings = Depends(get_scoring_settings)
):
    events, results, teams, team_members = season_slice(
        season, payload.events, payload.results, payload.teams, payload.team_members
    )
    rescored = rescore_season(
        events,
        results,
        payload.participants,
        teams,
        team_members,
        resolve_settings(payload.settings, scoring),
    )
    return {"season": season, "results": rescored}


@app.post("/seasons/{season}/standings")
def season_standings(
    season: int, payload: SeasonPayload, scoring: ScoringSettings = Depends(get_scoring_settings)
):
    active = resolve_settings(payload.settings, scoring)
    events, results, teams, team_members = season_slice(
        season, payload.events, payload.results, payload.teams, payload.team_members
    )
    if not events:
        raise HTTPException(status_code=404, detail=f"No events for season {season}")
    rescored = rescore_season(events, results, payload.participants, teams, team_members, active)
    grouped = compute_standings(rescored, payload.participants, events, active)
    return {
        "season": season,
        "finished_events": [e.id for e in events if e.finished],
        "standings": {label.value: rows for label, rows in grouped.items()},
    }
