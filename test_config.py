import logging

import pytest
from pydantic import ValidationError

from evocheckers import config as cfg
from evocheckers.config import (
    EvoCheckersConfig,
    FitnessWeights,
    LoggingSettings,
    TrainingConfig,
)


@pytest.fixture(autouse=True)
def fresh_config():
    cfg.reset_config()
    yield
    cfg.reset_config()


def test_training_defaults():
    t = TrainingConfig()
    assert t.population_size == 50
    assert t.mutation_rate == 0.1
    assert t.elite_fraction == 0.1
    assert t.games_per_pair == 2
    assert t.opponents_per_player == 5
    assert t.max_moves_per_game == 200
    assert t.use_parallel is True
    assert t.tournament_size == 5
    assert t.mutation_stagnation_threshold == 5
    assert t.stagnation_threshold == 20
    assert t.layer_sizes == [32, 64, 1]
    assert t.elite_count == 5
    assert t.fitness == FitnessWeights()


def test_training_validation():
    with pytest.raises(ValidationError):
        TrainingConfig(population_size=1)
    with pytest.raises(ValidationError):
        TrainingConfig(mutation_rate=1.5)
    with pytest.raises(ValidationError):
        TrainingConfig(hidden_sizes=[])
    with pytest.raises(ValidationError):
        TrainingConfig(hidden_sizes=[16, 0])


def test_hidden_sizes_shape_layers():
    assert TrainingConfig(hidden_sizes=[16, 8]).layer_sizes == [32, 16, 8, 1]


def test_log_level_validation():
    assert LoggingSettings(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        LoggingSettings(log_level="chatty")


def test_from_env(monkeypatch):
    monkeypatch.setenv("EVOCHECKERS_POPULATION", "12")
    monkeypatch.setenv("EVOCHECKERS_PARALLEL", "false")
    monkeypatch.setenv("EVOCHECKERS_SEED", "7")
    monkeypatch.setenv("EVOCHECKERS_LOG_LEVEL", "warning")
    config = EvoCheckersConfig.from_env()
    assert config.training.population_size == 12
    assert config.training.use_parallel is False
    assert config.training.seed == 7
    assert config.logging.log_level == "WARNING"


def test_global_config_is_cached(monkeypatch):
    monkeypatch.setenv("EVOCHECKERS_POPULATION", "8")
    first = cfg.get_config()
    assert first.training.population_size == 8
    assert cfg.get_config() is first
    assert cfg.get_training_config() is first.training


def test_save_and_load_round_trip(tmp_path):
    path = str(tmp_path / "config.json")
    config = EvoCheckersConfig(training=TrainingConfig(population_size=20, hidden_sizes=[16]))
    config.save_to_file(path)

    loaded = cfg.load_config_from_file(path)
    assert loaded.training == config.training
    assert loaded.config_file == path
    assert cfg.get_config() is loaded


def test_update_from_dict():
    config = EvoCheckersConfig()
    config.update_from_dict({"training": {"population_size": 10, "unknown": 1},
                             "logging": {"log_level": "ERROR"}})
    assert config.training.population_size == 10
    assert config.logging.log_level == "ERROR"
    with pytest.raises(ValidationError):
        config.update_from_dict({"training": {"elite_fraction": 2.0}})


def test_setup_logging_configures_root_once(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(cfg.setup_logging, "_configured", False, raising=False)
    cfg.setup_logging(LoggingSettings(log_level="DEBUG"))
    cfg.setup_logging(LoggingSettings(log_level="ERROR"))
    assert len(calls) == 1
    assert calls[0]["level"] == logging.DEBUG
    assert calls[0]["format"] == cfg.LOG_FORMAT
