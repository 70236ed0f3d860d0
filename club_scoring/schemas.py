from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class EventType(str, Enum):
    INDIVIDUAL_TIME_TRIAL = "IndividualTimeTrial"
    MOUNTAIN_TIME_TRIAL = "MountainTimeTrial"
    TEAM_TIME_TRIAL = "TeamTimeTrial"
    HANDICAP_RACE = "HandicapRace"


class PerfClass(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class GroupLabel(str, Enum):
    HOBBY = "Hobby"
    AMBITIOUS = "Ambitious"
    WOMEN = "Women"


class Participant(BaseModel):
    id: str
    first_name: str
    last_name: str
    birth_year: int
    perf_class: PerfClass
    gender: Gender
    email: str = ""
    phone: str = ""

    @computed_field  # type: ignore[misc]
    @property
    def display_name(self) -> str:
        return f"{self.last_name}, {self.first_name}"


class Event(BaseModel):
    id: str
    name: str = ""
    date: Optional[str] = None  # YYYY-MM-DD
    location: str = ""
    event_type: EventType
    season: int
    finished: bool = False
    notes: str = ""


class Result(BaseModel):
    id: str
    event_id: str
    participant_id: str
    time_seconds: Optional[float] = None
    dnf: bool = False
    winner_rank: Optional[int] = Field(default=None, ge=1)
    finisher_group: Optional[int] = None  # handicap races only
    has_aero_bars: bool = False
    has_tt_equipment: bool = False
    points: float = 0
    rank_overall: Optional[int] = None


class Team(BaseModel):
    id: str
    event_id: str
    name: str


class TeamMember(BaseModel):
    id: str
    team_id: str
    participant_id: str
    penalty_minus_2: bool = False


# --- Scoring settings ---


class SecondsRule(BaseModel):
    enabled: bool = False
    seconds: float = 0


class AgeBracket(BaseModel):
    enabled: bool = True
    min_age: int
    max_age: int
    seconds: float


class TimeTrialBonuses(BaseModel):
    aero_bars: Optional[SecondsRule] = None
    tt_equipment: Optional[SecondsRule] = None


class GenderHandicap(BaseModel):
    female: Optional[SecondsRule] = None


class PerfClassHandicap(BaseModel):
    hobby: Optional[SecondsRule] = None


class HandicapSettings(BaseModel):
    gender: Optional[GenderHandicap] = None
    age_brackets: list[AgeBracket] = Field(default_factory=list)
    perf_class: Optional[PerfClassHandicap] = None


class ScoringSettings(BaseModel):
    """Every section left out of the input is disabled."""

    time_trial_bonuses: Optional[TimeTrialBonuses] = None
    winner_points: list[int] = Field(default_factory=list)
    handicap_base_points: dict[PerfClass, int] = Field(default_factory=dict)
    drop_scores: int = Field(default=0, ge=0)
    handicap_settings: Optional[HandicapSettings] = None


# --- Derived output records ---


class StandingResult(BaseModel):
    event_id: str
    points: float
    is_dropped: bool = False


class Standing(BaseModel):
    participant_id: str
    participant_name: str
    participant_class: PerfClass
    group: GroupLabel
    results: list[StandingResult] = Field(default_factory=list)
    total_points: float = 0
    final_points: float = 0
    tie_breaker_scores: list[float] = Field(default_factory=list)
    rank: Optional[int] = None


# --- Request payloads ---


class HandicapRequest(BaseModel):
    participant: Participant
    result: Result
    event: Event
    settings: Optional[ScoringSettings] = None


class EventScoreRequest(BaseModel):
    event: Event
    results: list[Result] = Field(default_factory=list)
    participants: list[Participant] = Field(default_factory=list)
    teams: list[Team] = Field(default_factory=list)
    team_members: list[TeamMember] = Field(default_factory=list)
    settings: Optional[ScoringSettings] = None


class SeasonPayload(BaseModel):
    events: list[Event] = Field(default_factory=list)
    results: list[Result] = Field(default_factory=list)
    participants: list[Participant] = Field(default_factory=list)
    teams: list[Team] = Field(default_factory=list)
    team_members: list[TeamMember] = Field(default_factory=list)
    settings: Optional[ScoringSettings] = None
