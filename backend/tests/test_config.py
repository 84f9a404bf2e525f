import pytest
from pydantic import ValidationError

from planner.core.config import Settings
from planner.schemas.solver import SolverSettings, VenueRules


def test_cors_origins_accept_comma_and_json_lists():
    assert Settings(cors_origins="http://a.test, http://b.test").cors_origins == ["http://a.test", "http://b.test"]
    assert Settings(cors_origins='["http://c.test"]').cors_origins == ["http://c.test"]


def test_log_level_is_normalized_and_checked():
    assert Settings(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(log_level="chatty")


def test_solver_settings_relationships():
    with pytest.raises(ValidationError):
        SolverSettings(population_size=10, elite_count=10)
    with pytest.raises(ValidationError):
        SolverSettings(population_size=4, elite_count=1, tournament_size=5)
    with pytest.raises(ValidationError):
        SolverSettings(mutation_rate=0.6, max_mutation_rate=0.5)
    assert SolverSettings().local_search_top_k == 8


def test_venue_rules_validate_mandatory_days():
    assert VenueRules().mandatory_days == (1,)
    with pytest.raises(ValidationError):
        VenueRules(mandatory_days=())
    with pytest.raises(ValidationError):
        VenueRules(mandatory_days=(3,))
