# network.py
# Feed-forward evaluator used by the AI players.
# Weights are the unit of inheritance (mutation/crossover) and persistence.

from __future__ import annotations

import logging
import os
import struct
from typing import List, Optional, Sequence

import numpy as np

from .errors import ArchitectureMismatchError, EvaluatorFormatError

logger = logging.getLogger(__name__)

# Parameters are clipped to [-WEIGHT_CLIP, WEIGHT_CLIP] after every mutation
WEIGHT_CLIP: float = 5.0
# Chance that crossover averages both parents at a position instead of picking one
BLEND_PROBABILITY: float = 0.05

_INT = struct.Struct("<i")
_FLOAT_DTYPE = np.dtype("<f8")


class NeuralNetwork:
    """
    Layered perceptron: input -> hidden layer(s) with ReLU -> one linear output.

    The output is unbounded in both training and play. Scoring is a pure
    function of the weights; nothing is cached between calls.
    """

    def __init__(self, layer_sizes: Sequence[int],
                 weights: Optional[List[np.ndarray]] = None,
                 biases: Optional[List[np.ndarray]] = None) -> None:
        sizes = [int(s) for s in layer_sizes]
        if len(sizes) < 3:
            raise ValueError("need an input size, at least one hidden size and an output size")
        if any(s <= 0 for s in sizes):
            raise ValueError(f"layer sizes must be positive: {sizes}")
        if sizes[-1] != 1:
            raise ValueError(f"the evaluator has one scalar output, got output size {sizes[-1]}")
        self.layer_sizes: List[int] = sizes
        self.weights: List[np.ndarray] = weights if weights is not None else [
            np.zeros((a, b), dtype=np.float64) for a, b in zip(sizes, sizes[1:])
        ]
        self.biases: List[np.ndarray] = biases if biases is not None else [
            np.zeros(b, dtype=np.float64) for b in sizes[1:]
        ]
        self._check_shapes()
        self.fitness: float = 0.0

    @classmethod
    def random(cls, layer_sizes: Sequence[int], rng: np.random.Generator) -> "NeuralNetwork":
        """Uniform init: weights in [-0.5, 0.5], biases in [-0.1, 0.1]."""
        sizes = [int(s) for s in layer_sizes]
        weights = [rng.uniform(-0.5, 0.5, size=(a, b)) for a, b in zip(sizes, sizes[1:])]
        biases = [rng.uniform(-0.1, 0.1, size=b) for b in sizes[1:]]
        return cls(sizes, weights, biases)

    def _check_shapes(self) -> None:
        # Weight shapes then bias shapes, in layer order
        expected = [(a, b) for a, b in zip(self.layer_sizes, self.layer_sizes[1:])]
        expected += [(b,) for b in self.layer_sizes[1:]]
        found = [tuple(np.shape(w)) for w in self.weights]
        found += [tuple(np.shape(b)) for b in self.biases]
        if found != expected:
            raise ArchitectureMismatchError(expected, found)

    @property
    def input_size(self) -> int:
        return self.layer_sizes[0]

    @property
    def output_size(self) -> int:
        return self.layer_sizes[-1]

    def parameter_count(self) -> int:
        return sum(w.size for w in self.weights) + sum(b.size for b in self.biases)

    # ----------------------------
    # Inference
    # ----------------------------
    def forward_batch(self, X: np.ndarray) -> np.ndarray:
        """Forward pass for a (N, input_size) batch; returns (N, output_size)."""
        a = np.asarray(X, dtype=np.float64)
        last = len(self.weights) - 1
        for i, (W, b) in enumerate(zip(self.weights, self.biases)):
            z = a @ W + b
            a = z if i == last else np.maximum(z, 0.0)
        return a

    def score_batch(self, X: np.ndarray) -> np.ndarray:
        return self.forward_batch(np.atleast_2d(X))[:, 0]

    def score(self, x: np.ndarray) -> float:
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (self.input_size,):
            raise ValueError(f"expected input of length {self.input_size}, got shape {x.shape}")
        return float(self.score_batch(x.reshape(1, -1))[0])

    # ----------------------------
    # Evolution operators
    # ----------------------------
    def clone(self) -> "NeuralNetwork":
        twin = NeuralNetwork(self.layer_sizes,
                             [w.copy() for w in self.weights],
                             [b.copy() for b in self.biases])
        twin.fitness = self.fitness
        return twin

    def mutate(self, rate: float, rng: np.random.Generator, strength: float = 0.3) -> int:
        """
        Perturb each parameter with probability `rate` by uniform noise.

        Weights get noise in [-strength, strength], biases a third of that.
        Returns the number of parameters touched.
        """
        touched = 0
        for arrays, scale in ((self.weights, strength), (self.biases, strength / 3.0)):
            for arr in arrays:
                mask = rng.random(arr.shape) < rate
                noise = rng.uniform(-scale, scale, size=arr.shape)
                arr += noise * mask
                np.clip(arr, -WEIGHT_CLIP, WEIGHT_CLIP, out=arr)
                touched += int(mask.sum())
        return touched

    def crossover(self, other: "NeuralNetwork", rng: np.random.Generator) -> "NeuralNetwork":
        """Uniform crossover with an occasional blend of both parents."""
        if other.layer_sizes != self.layer_sizes:
            raise ArchitectureMismatchError(self.layer_sizes, other.layer_sizes)

        def mix(a: np.ndarray, b: np.ndarray) -> np.ndarray:
            pick = rng.random(a.shape) < 0.5
            blend = rng.random(a.shape) < BLEND_PROBABILITY
            child = np.where(pick, a, b)
            return np.where(blend, (a + b) / 2.0, child)

        return NeuralNetwork(
            self.layer_sizes,
            [mix(a, b) for a, b in zip(self.weights, other.weights)],
            [mix(a, b) for a, b in zip(self.biases, other.biases)],
        )

    # ----------------------------
    # Persistence
    # ----------------------------
    def to_bytes(self) -> bytes:
        """
        Binary record, little-endian:
            int32 layer count, int32 size per layer (input, hidden..., output),
            every weight matrix in layer order (row-major, float64),
            every bias vector in layer order (float64).
        """
        parts = [_INT.pack(len(self.layer_sizes))]
        parts.extend(_INT.pack(s) for s in self.layer_sizes)
        parts.extend(np.ascontiguousarray(w, dtype=_FLOAT_DTYPE).tobytes() for w in self.weights)
        parts.extend(np.ascontiguousarray(b, dtype=_FLOAT_DTYPE).tobytes() for b in self.biases)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes,
                   expected_sizes: Optional[Sequence[int]] = None) -> "NeuralNetwork":
        """Rebuild a network, validating its dimensions before any weight is read."""
        view = memoryview(data)
        if len(view) < _INT.size:
            raise EvaluatorFormatError("record too short for a header")
        (count,) = _INT.unpack_from(view, 0)
        if count < 3 or count > 64:
            raise EvaluatorFormatError(f"implausible layer count {count}")
        header_len = _INT.size * (count + 1)
        if len(view) < header_len:
            raise EvaluatorFormatError("record too short for its layer sizes")
        sizes = [_INT.unpack_from(view, _INT.size * (i + 1))[0] for i in range(count)]
        if any(s <= 0 for s in sizes):
            raise EvaluatorFormatError(f"non-positive layer size in {sizes}")
        if sizes[-1] != 1:
            raise EvaluatorFormatError(f"output size must be 1, record has {sizes[-1]}")
        if expected_sizes is not None and list(expected_sizes) != sizes:
            raise ArchitectureMismatchError(expected_sizes, sizes)

        w_shapes = list(zip(sizes, sizes[1:]))
        n_floats = sum(a * b for a, b in w_shapes) + sum(sizes[1:])
        if len(view) != header_len + n_floats * _FLOAT_DTYPE.itemsize:
            raise EvaluatorFormatError(
                f"expected {n_floats} parameters, record holds "
                f"{(len(view) - header_len) / _FLOAT_DTYPE.itemsize:g}"
            )
        flat = np.frombuffer(view, dtype=_FLOAT_DTYPE, offset=header_len).astype(np.float64)
        weights: List[np.ndarray] = []
        offset = 0
        for a, b in w_shapes:
            weights.append(flat[offset:offset + a * b].reshape(a, b).copy())
            offset += a * b
        biases: List[np.ndarray] = []
        for b in sizes[1:]:
            biases.append(flat[offset:offset + b].copy())
            offset += b
        return cls(sizes, weights, biases)

    def save(self, filepath: str) -> None:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, "wb") as f:
            f.write(self.to_bytes())
        logger.info("Evaluator saved to: %s", filepath)

    @classmethod
    def load(cls, filepath: str,
             expected_sizes: Optional[Sequence[int]] = None) -> "NeuralNetwork":
        with open(filepath, "rb") as f:
            data = f.read()
        network = cls.from_bytes(data, expected_sizes)
        logger.info("Evaluator loaded from: %s", filepath)
        return network

    def __repr__(self) -> str:
        return f"NeuralNetwork(layers={self.layer_sizes}, fitness={self.fitness:.2f})"
