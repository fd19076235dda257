import os
import threading
import time
from dataclasses import asdict

import numpy as np
import pytest

from evocheckers.config import TrainingConfig
from evocheckers.errors import ArchitectureMismatchError
from evocheckers.network import NeuralNetwork
from evocheckers.trainer import GenerationStats, Trainer, generation_report


def make_config(**overrides):
    params = dict(
        population_size=4,
        opponents_per_player=1,
        games_per_pair=2,
        max_moves_per_game=24,
        hidden_sizes=[8],
        use_parallel=False,
        workers=2,
        seed=42,
    )
    params.update(overrides)
    return TrainingConfig(**params)


def comparable(stats):
    d = asdict(stats)
    d.pop("elapsed")
    return d


def same_population(a, b):
    for pa, pb in zip(a.population.players, b.population.players):
        for x, y in zip(pa.network.weights + pa.network.biases,
                        pb.network.weights + pb.network.biases):
            if not np.array_equal(x, y):
                return False
    return len(a.population) == len(b.population)


def test_run_records_history_and_best():
    trainer = Trainer(make_config())
    seen = []
    best = trainer.run(2, progress_callback=seen.append)
    assert len(trainer.history) == 2
    assert [s.generation for s in seen] == [1, 2]
    assert best is trainer.best
    assert best is not None
    assert trainer.population.generation == 2
    assert all(s.games_played > 0 for s in seen)
    assert seen[-1].historical_best >= seen[-1].best_fitness


def test_same_seed_same_result():
    a = Trainer(make_config())
    b = Trainer(make_config())
    a.run(2)
    b.run(2)
    assert [comparable(s) for s in a.history] == [comparable(s) for s in b.history]
    assert same_population(a, b)


def test_parallel_matches_sequential():
    sequential = Trainer(make_config(use_parallel=False))
    parallel = Trainer(make_config(use_parallel=True, workers=2))
    sequential.run(2)
    parallel.run(2)
    assert [comparable(s) for s in parallel.history] == [comparable(s) for s in sequential.history]
    assert same_population(parallel, sequential)


def test_stop_before_run_plays_nothing():
    trainer = Trainer(make_config())
    trainer.stop()
    assert trainer.run(3) is None
    assert trainer.history == []


def test_stop_finishes_generation_and_saves_best(tmp_path):
    trainer = Trainer(make_config())
    path = str(tmp_path / "best.dat")
    trainer.run(5, progress_callback=lambda stats: trainer.stop(), best_path=path)
    assert len(trainer.history) == 1
    assert os.path.exists(path)
    loaded = NeuralNetwork.load(path, [32, 8, 1])
    assert loaded.layer_sizes == [32, 8, 1]


def test_pause_holds_training_until_resume():
    trainer = Trainer(make_config())
    trainer.pause()
    assert trainer.is_paused
    worker = threading.Thread(target=trainer.run, args=(1,))
    worker.start()
    time.sleep(0.2)
    assert trainer.history == []
    trainer.resume()
    worker.join(timeout=120)
    assert not worker.is_alive()
    assert not trainer.is_paused
    assert len(trainer.history) == 1


def test_save_best_without_generation():
    assert not Trainer(make_config()).save_best("unused.dat")


def test_checkpoint_round_trip(tmp_path):
    path = str(tmp_path / "ckpt" / "training.pkl")
    original = Trainer(make_config())
    original.run(1)
    original.save_checkpoint(path)

    restored = Trainer(make_config())
    assert restored.load_checkpoint(path)
    assert restored.population.generation == original.population.generation
    assert restored.population.historical_best == original.population.historical_best
    assert [comparable(s) for s in restored.history] == [comparable(s) for s in original.history]
    assert same_population(restored, original)

    # Continuing from the checkpoint replays the same next generation
    original.run(1)
    restored.run(1)
    assert comparable(restored.history[-1]) == comparable(original.history[-1])


def test_load_missing_checkpoint(tmp_path):
    assert not Trainer(make_config()).load_checkpoint(str(tmp_path / "missing.pkl"))


def test_checkpoint_architecture_mismatch(tmp_path):
    path = str(tmp_path / "training.pkl")
    Trainer(make_config()).save_checkpoint(path)
    with pytest.raises(ArchitectureMismatchError):
        Trainer(make_config(hidden_sizes=[4])).load_checkpoint(path)


def test_generation_report():
    stats = GenerationStats(
        generation=3, best_fitness=120.5, average_fitness=80.25, historical_best=130.0,
        best_win_rate=0.75, average_win_rate=0.5, best_games_played=8,
        stagnant_generations=1, games_played=16, draws=2, mutation_rate=0.12, elapsed=1.5,
    )
    line = generation_report(stats)
    assert line.startswith("Gen    3")
    assert "120.50" in line
    assert "75.0%" in line
    assert "stagnant   1" in line
