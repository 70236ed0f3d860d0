import json

import pytest
from pydantic import ValidationError

from club_scoring.config import Settings, load_scoring_settings
from club_scoring.schemas import PerfClass


def test_load_scoring_settings_defaults():
    scoring = load_scoring_settings()
    assert scoring.winner_points == [3, 2, 1]
    assert scoring.drop_scores == 1
    assert scoring.handicap_base_points[PerfClass.A] == 10
    assert scoring.time_trial_bonuses.aero_bars.enabled is True
    assert scoring.handicap_settings.age_brackets == []


def test_load_scoring_settings_from_file(tmp_path):
    path = tmp_path / "scoring.json"
    path.write_text(
        json.dumps(
            {
                "winner_points": [5, 3],
                "drop_scores": 2,
                "handicap_settings": {
                    "age_brackets": [{"min_age": 60, "max_age": 99, "seconds": -120}]
                },
            }
        )
    )
    scoring = load_scoring_settings(path)
    assert scoring.winner_points == [5, 3]
    assert scoring.drop_scores == 2
    assert scoring.handicap_settings.age_brackets[0].enabled is True
    # sections missing from the file stay disabled
    assert scoring.handicap_base_points == {}
    assert scoring.time_trial_bonuses is None


def test_load_scoring_settings_rejects_bad_file(tmp_path):
    path = tmp_path / "scoring.json"
    path.write_text(json.dumps({"drop_scores": -1}))
    with pytest.raises(ValidationError):
        load_scoring_settings(path)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, https://club.example")
    config = Settings(_env_file=None)
    assert config.log_level == "DEBUG"
    assert config.cors_origins == ["http://localhost:3000", "https://club.example"]
    assert config.scoring_settings_file is None
