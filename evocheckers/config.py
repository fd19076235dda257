"""
Central configuration for paths and tunables.
Pydantic models give type-safe, validated settings for the trainer.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .features import FEATURE_SIZE


class FitnessWeights(BaseModel):
    """Coefficients of the fitness formula. Rates are per game played."""

    win: float = Field(default=200.0, description="Weight of the win rate")
    loss: float = Field(default=100.0, ge=0, description="Penalty weight of the loss rate")
    draw: float = Field(default=50.0, description="Weight of the draw rate")
    capture_ratio: float = Field(default=50.0, description="Weight of pieces captured per move made")
    survival: float = Field(default=30.0, description="Weight of the share of own pieces kept")
    kings_made: float = Field(default=15.0, description="Bonus per king made per game")
    kings_captured: float = Field(default=20.0, description="Bonus per enemy king captured per game")
    kings_lost: float = Field(default=25.0, ge=0, description="Penalty per own king lost per game")


class TrainingConfig(BaseModel):
    """Evolutionary training settings, passed once to the trainer."""

    population_size: int = Field(default=50, ge=2, description="Players per generation")
    mutation_rate: float = Field(default=0.1, ge=0, le=1, description="Base per-parameter mutation probability")
    max_mutation_rate: float = Field(default=0.5, ge=0, le=1, description="Cap for the adaptive mutation rate")
    elite_fraction: float = Field(default=0.1, ge=0, le=1, description="Share of top players cloned unchanged")
    games_per_pair: int = Field(default=2, ge=1, description="Games per matchup, colors alternating")
    opponents_per_player: int = Field(default=5, ge=1, description="Opponent draws per player per generation")
    max_moves_per_game: int = Field(default=200, ge=1, description="Move cap; reaching it is a draw")
    use_parallel: bool = Field(default=True, description="Play games on a process pool")
    workers: int = Field(default=4, ge=1, description="Process pool size")
    seed: Optional[int] = Field(default=None, description="Seed for a reproducible run")
    tournament_size: int = Field(default=5, ge=1, description="Contestants per tournament selection")
    rank_window: int = Field(default=3, ge=0, description="Rank distance for nearby-opponent matchmaking")
    rank_bias: float = Field(default=0.6, ge=0, le=1, description="Chance of a nearby-ranked opponent after generation 1")
    mutation_stagnation_threshold: int = Field(default=5, ge=1, description="Stagnant generations before the mutation rate starts to climb")
    stagnation_threshold: int = Field(default=20, ge=1, description="Stagnant generations before diversity injection")
    diversity_fraction: float = Field(default=0.2, ge=0, le=0.5, description="Share of the population replaced / heavily mutated")
    diversity_mutation_rate: float = Field(default=0.3, ge=0, le=1, description="Mutation rate for the heavily mutated band")
    explore_rate: float = Field(default=0.05, ge=0, le=1, description="Random-move probability during training games")
    hidden_sizes: List[int] = Field(default_factory=lambda: [64], description="Hidden layer sizes of every evaluator")
    fitness: FitnessWeights = Field(default_factory=FitnessWeights)

    @field_validator('hidden_sizes')
    @classmethod
    def validate_hidden_sizes(cls, v):
        if not v or any(int(s) <= 0 for s in v):
            raise ValueError("hidden_sizes must be a non-empty list of positive sizes")
        return [int(s) for s in v]

    @field_validator('use_parallel', mode='before')
    @classmethod
    def validate_bool_fields(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ('1', 'true', 'yes', 'on')
        return bool(v)

    @property
    def layer_sizes(self) -> List[int]:
        return [FEATURE_SIZE, *self.hidden_sizes, 1]

    @property
    def elite_count(self) -> int:
        return min(self.population_size, max(1, round(self.population_size * self.elite_fraction)))


class LoggingSettings(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_to_file: bool = Field(default=False, description="Write logs to file")
    log_file_path: str = Field(default="evocheckers.log", description="Log file path")

    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR']
        v_upper = v.upper() if isinstance(v, str) else str(v).upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper


class EvoCheckersConfig(BaseModel):
    """Main configuration model."""

    training: TrainingConfig = Field(default_factory=TrainingConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    version: str = Field(default="1.0.0", description="Configuration version")
    config_file: Optional[str] = Field(default=None, description="Path to config file")

    @classmethod
    def from_env(cls) -> 'EvoCheckersConfig':
        """Create configuration from EVOCHECKERS_* environment variables."""
        training: Dict[str, Any] = {}
        env_map = {
            'EVOCHECKERS_POPULATION': 'population_size',
            'EVOCHECKERS_MUTATION_RATE': 'mutation_rate',
            'EVOCHECKERS_ELITE_FRACTION': 'elite_fraction',
            'EVOCHECKERS_GAMES_PER_PAIR': 'games_per_pair',
            'EVOCHECKERS_OPPONENTS': 'opponents_per_player',
            'EVOCHECKERS_MAX_MOVES': 'max_moves_per_game',
            'EVOCHECKERS_PARALLEL': 'use_parallel',
            'EVOCHECKERS_WORKERS': 'workers',
            'EVOCHECKERS_SEED': 'seed',
        }
        for var, key in env_map.items():
            value = os.getenv(var)
            if value is not None and value != '':
                training[key] = value
        return cls(
            training=TrainingConfig(**training),
            logging=LoggingSettings(
                log_level=os.getenv('EVOCHECKERS_LOG_LEVEL', 'INFO'),
                log_to_file=os.getenv('EVOCHECKERS_LOG_FILE', 'false').lower() == 'true',
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

    def save_to_file(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        config_dict = self.to_dict()
        config_dict['config_file'] = filepath
        with open(filepath, 'w') as f:
            json.dump(config_dict, f, indent=2)

    @classmethod
    def load_from_file(cls, filepath: str) -> 'EvoCheckersConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls(
            training=TrainingConfig(**data.get('training', {})),
            logging=LoggingSettings(**data.get('logging', {})),
            version=data.get('version', '1.0.0'),
            config_file=filepath,
        )

    def update_from_dict(self, updates: Dict[str, Any]) -> None:
        """Update sections in place; unknown keys are ignored."""
        for section, settings in updates.items():
            if hasattr(self, section) and isinstance(settings, dict):
                current = getattr(self, section)
                merged = current.model_dump()
                merged.update({k: v for k, v in settings.items() if k in merged})
                setattr(self, section, type(current)(**merged))


# Global configuration instance
_config: Optional[EvoCheckersConfig] = None


def get_config() -> EvoCheckersConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = EvoCheckersConfig.from_env()
    return _config


def load_config_from_file(filepath: str) -> EvoCheckersConfig:
    """Load configuration from file and update global instance."""
    global _config
    _config = EvoCheckersConfig.load_from_file(filepath)
    return _config


def reset_config() -> None:
    """Reset the global configuration to defaults."""
    global _config
    _config = None


def get_training_config() -> TrainingConfig:
    return get_config().training


# Directories
DATA_DIR = os.environ.get("EVOCHECKERS_DATA_DIR", os.path.join("data"))

# Default artifact paths
DEFAULT_BEST_PATH = os.path.join(DATA_DIR, "best_checkers_ai.dat")
DEFAULT_CHECKPOINT_PATH = os.path.join(DATA_DIR, "training_checkpoint.pkl")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def ensure_dirs() -> None:
    """Ensure required directories exist."""
    if DATA_DIR and not os.path.exists(DATA_DIR):
        os.makedirs(DATA_DIR, exist_ok=True)


def setup_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Configure root logging once, controlled by EVOCHECKERS_LOG_LEVEL."""
    if getattr(setup_logging, "_configured", False):
        return
    settings = settings or get_config().logging
    level: int = getattr(logging, settings.log_level, logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.log_to_file:
        handlers.append(logging.FileHandler(settings.log_file_path))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)
    setup_logging._configured = True  # type: ignore[attr-defined]
