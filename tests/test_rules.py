from itertools import product

from club_scoring.rules import (
    classify_group,
    competition_ranks,
    compute_handicap,
    drops_allowed,
    n_minus_one_time,
    placement_points,
    select_dropped,
    winner_bonus,
)
from club_scoring.schemas import (
    AgeBracket,
    Event,
    EventType,
    Gender,
    GenderHandicap,
    GroupLabel,
    HandicapSettings,
    Participant,
    PerfClass,
    PerfClassHandicap,
    Result,
    ScoringSettings,
    SecondsRule,
    TimeTrialBonuses,
)


def _participant(gender=Gender.MALE, perf_class=PerfClass.C, birth_year=1985) -> Participant:
    return Participant(
        id="p1",
        first_name="Max",
        last_name="Mustermann",
        birth_year=birth_year,
        perf_class=perf_class,
        gender=gender,
    )


def _event(season=2025) -> Event:
    return Event(id="e1", event_type=EventType.INDIVIDUAL_TIME_TRIAL, season=season, finished=True)


def _result(**kwargs) -> Result:
    return Result(id="r1", event_id="e1", participant_id="p1", time_seconds=1800, **kwargs)


def test_classify_group():
    assert classify_group(_participant(Gender.FEMALE, PerfClass.A)) == GroupLabel.WOMEN
    assert classify_group(_participant(Gender.FEMALE, PerfClass.D)) == GroupLabel.WOMEN
    assert classify_group(_participant(Gender.MALE, PerfClass.A)) == GroupLabel.HOBBY
    assert classify_group(_participant(Gender.MALE, PerfClass.B)) == GroupLabel.HOBBY
    assert classify_group(_participant(Gender.MALE, PerfClass.C)) == GroupLabel.AMBITIOUS
    assert classify_group(_participant(Gender.MALE, PerfClass.D)) == GroupLabel.AMBITIOUS


def test_placement_points_scale():
    assert placement_points(1) == 8
    assert placement_points(3) == 8
    assert placement_points(4) == 7
    assert placement_points(6) == 7
    assert placement_points(7) == 6
    assert placement_points(10) == 6
    assert placement_points(11) == 5
    assert placement_points(40) == 5


def test_winner_bonus_bounds():
    assert winner_bonus([3, 2, 1], 1) == 3
    assert winner_bonus([3, 2, 1], 3) == 1
    assert winner_bonus([3, 2, 1], 4) == 0
    assert winner_bonus([3, 2, 1], None) == 0
    assert winner_bonus([], 1) == 0


def test_competition_ranks_share_ties():
    assert competition_ranks([200.0, 200.0, 210.0]) == [1, 1, 3]
    assert competition_ranks([100.0, 110.0, 110.0, 110.0, 120.0]) == [1, 2, 2, 2, 5]
    assert competition_ranks([]) == []


def test_n_minus_one_time():
    assert n_minus_one_time([130.0, 100.0, 120.0, 110.0]) == 120.0
    assert n_minus_one_time([100.0, 90.0]) == 90.0
    assert n_minus_one_time([100.0]) is None
    assert n_minus_one_time([]) is None


def test_drops_allowed_accounts_for_missed_events():
    assert drops_allowed(1, 4, 3) == 0
    assert drops_allowed(1, 4, 4) == 1
    assert drops_allowed(2, 4, 3) == 1
    assert drops_allowed(3, 4, 1) == 0
    assert drops_allowed(5, 2, 2) == 2
    assert drops_allowed(0, 4, 4) == 0


def test_select_dropped_exact_count_with_ties():
    flags = select_dropped([5, 3, 3, 8], 1)
    assert sum(flags) == 1
    assert flags[0] is False and flags[3] is False

    flags = select_dropped([5, 3, 3, 8], 2)
    assert flags == [False, True, True, False]

    assert select_dropped([5, 3], 0) == [False, False]


def test_handicap_with_missing_sections_is_zero():
    settings = ScoringSettings(time_trial_bonuses=None, handicap_settings=None)
    assert compute_handicap(
        _participant(Gender.FEMALE, PerfClass.A), _result(has_aero_bars=True), _event(), settings
    ) == 0.0

    partial = ScoringSettings(
        time_trial_bonuses=TimeTrialBonuses(),
        handicap_settings=HandicapSettings(gender=GenderHandicap()),
    )
    assert compute_handicap(
        _participant(Gender.FEMALE), _result(has_aero_bars=True, has_tt_equipment=True), _event(), partial
    ) == 0.0


def test_handicap_sections_left_out_of_json_are_disabled():
    settings = ScoringSettings.model_validate_json('{"winner_points": [3, 2, 1]}')
    assert settings.time_trial_bonuses is None
    assert settings.handicap_settings is None
    assert compute_handicap(
        _participant(Gender.FEMALE, PerfClass.A),
        _result(has_aero_bars=True, has_tt_equipment=True),
        _event(),
        settings,
    ) == 0.0


def test_handicap_additivity_over_all_combinations():
    female, age, hobby, aero, equipment = -60.0, -45.0, -30.0, 20.0, 10.0
    participant = _participant(Gender.FEMALE, PerfClass.B, birth_year=1965)  # 60 in 2025
    result = _result(has_aero_bars=True, has_tt_equipment=True)

    for flags in product([False, True], repeat=5):
        g_on, a_on, c_on, aero_on, eq_on = flags
        settings = ScoringSettings(
            time_trial_bonuses=TimeTrialBonuses(
                aero_bars=SecondsRule(enabled=aero_on, seconds=aero),
                tt_equipment=SecondsRule(enabled=eq_on, seconds=equipment),
            ),
            handicap_settings=HandicapSettings(
                gender=GenderHandicap(female=SecondsRule(enabled=g_on, seconds=female)),
                age_brackets=[AgeBracket(enabled=a_on, min_age=50, max_age=64, seconds=age)],
                perf_class=PerfClassHandicap(hobby=SecondsRule(enabled=c_on, seconds=hobby)),
            ),
        )
        expected = (
            (female if g_on else 0)
            + (age if a_on else 0)
            + (hobby if c_on else 0)
            + (aero if aero_on else 0)
            + (equipment if eq_on else 0)
        )
        assert compute_handicap(participant, result, _event(), settings) == expected


def test_only_first_matching_age_bracket_applies():
    settings = ScoringSettings(
        handicap_settings=HandicapSettings(
            age_brackets=[
                AgeBracket(enabled=False, min_age=30, max_age=49, seconds=-100),
                AgeBracket(enabled=True, min_age=40, max_age=49, seconds=-20),
                AgeBracket(enabled=True, min_age=35, max_age=60, seconds=-50),
            ]
        )
    )
    participant = _participant(birth_year=1980)  # 45 in 2025
    assert compute_handicap(participant, _result(), _event(), settings) == -20.0

    outside = _participant(birth_year=2000)  # 25
    assert compute_handicap(outside, _result(), _event(), settings) == 0.0


def test_age_bracket_bounds_are_inclusive():
    settings = ScoringSettings(
        handicap_settings=HandicapSettings(
            age_brackets=[AgeBracket(min_age=50, max_age=59, seconds=-30)]
        )
    )
    assert compute_handicap(_participant(birth_year=1975), _result(), _event(), settings) == -30.0
    assert compute_handicap(_participant(birth_year=1966), _result(), _event(), settings) == -30.0
    assert compute_handicap(_participant(birth_year=1965), _result(), _event(), settings) == 0.0


def test_hobby_bonus_ignores_ambitious_classes():
    settings = ScoringSettings(
        handicap_settings=HandicapSettings(
            perf_class=PerfClassHandicap(hobby=SecondsRule(enabled=True, seconds=-40))
        )
    )
    assert compute_handicap(_participant(perf_class=PerfClass.A), _result(), _event(), settings) == -40.0
    assert compute_handicap(_participant(perf_class=PerfClass.D), _result(), _event(), settings) == 0.0
