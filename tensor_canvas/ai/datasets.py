"""
Synthetic 2-D Datasets
======================

Pure generators for the toy classification problems shown on the canvas.

Every generator takes a NumPy Generator, so a split is reproducible from
(shape, sample count, noise, split fraction, seed). Shapes:

    circle        inner disc (label 1) inside an outer ring (label 0)
    xor           quadrant parity
    gaussian      two blobs around (2, 2) and (-2, -2)
    spiral        two interleaved spirals
    checkerboard  unit squares over [-5, 5]^2
    moons         two interleaving half circles
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

import numpy as np


class DatasetShape(Enum):
    """Closed set of dataset shapes."""
    CIRCLE = 'circle'
    XOR = 'xor'
    GAUSSIAN = 'gaussian'
    SPIRAL = 'spiral'
    CHECKERBOARD = 'checkerboard'
    MOONS = 'moons'

    @classmethod
    def parse(cls, value: Union[str, 'DatasetShape']) -> 'DatasetShape':
        """Resolve a selector string (e.g. 'moons') to a shape."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ', '.join(s.value for s in cls)
            raise ValueError(f"Unknown dataset shape {value!r} (choose from {choices})") from None


@dataclass(frozen=True)
class Sample:
    """A labeled 2-D point."""
    features: Tuple[float, float]
    label: int


@dataclass(frozen=True)
class DatasetSplit:
    """Train and test samples generated together."""
    train: Tuple[Sample, ...]
    test: Tuple[Sample, ...]

    @property
    def is_empty(self) -> bool:
        """True if either split has no samples (training is disabled)."""
        return len(self.train) == 0 or len(self.test) == 0

    def train_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Training features (n, 2) and labels (n, 1) as float32 arrays."""
        return _to_arrays(self.train)

    def test_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Test features (n, 2) and labels (n, 1) as float32 arrays."""
        return _to_arrays(self.test)


def _to_arrays(samples: Sequence[Sample]) -> Tuple[np.ndarray, np.ndarray]:
    features = np.array([s.features for s in samples], dtype=np.float32).reshape(-1, 2)
    labels = np.array([s.label for s in samples], dtype=np.float32).reshape(-1, 1)
    return features, labels


def _jitter(rng: np.random.Generator, n: int, scale: float) -> np.ndarray:
    """Uniform noise in [-scale/2, scale/2)."""
    return (rng.random(n) - 0.5) * scale


# =============================================================================
# GENERATORS
# =============================================================================
# Each returns (points (n, 2), labels (n,)) in generation order.

def generate_circle(n: int, noise: float, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    radius = 5.0
    inner = np.arange(n) < n / 2
    r = rng.random(n) * radius * 0.5
    r = np.where(inner, r, r + radius * 0.7)
    angle = rng.random(n) * math.pi * 2
    x = r * np.cos(angle) + _jitter(rng, n, noise * 10)
    y = r * np.sin(angle) + _jitter(rng, n, noise * 10)
    labels = inner.astype(np.int64)
    return np.stack([x, y], axis=1), labels


def generate_xor(n: int, noise: float, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    padding = 0.3
    x = (rng.random(n) - 0.5) * 10
    y = (rng.random(n) - 0.5) * 10
    x += np.where(x > 0, padding, -padding)
    y += np.where(y > 0, padding, -padding)
    labels = (x * y > 0).astype(np.int64)
    x += _jitter(rng, n, noise * 10)
    y += _jitter(rng, n, noise * 10)
    return np.stack([x, y], axis=1), labels


def generate_gaussian(n: int, noise: float, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    positive = np.arange(n) < n / 2
    center = np.where(positive, 2.0, -2.0)
    x = center + _jitter(rng, n, 4) + _jitter(rng, n, noise * 10)
    y = center + _jitter(rng, n, 4) + _jitter(rng, n, noise * 10)
    return np.stack([x, y], axis=1), positive.astype(np.int64)


def generate_spiral(n: int, noise: float, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    half = int(math.ceil(n / 2))
    i = np.arange(half)
    r = i / half * 5
    t = 1.75 * i / half * 2 * math.pi
    x1 = r * np.sin(t) + _jitter(rng, half, noise)
    y1 = r * np.cos(t) + _jitter(rng, half, noise)
    x2 = -r * np.sin(t) + _jitter(rng, half, noise)
    y2 = -r * np.cos(t) + _jitter(rng, half, noise)

    # Interleave the two arms so truncation to an odd count stays balanced
    points = np.empty((half * 2, 2))
    points[0::2] = np.stack([x1, y1], axis=1)
    points[1::2] = np.stack([x2, y2], axis=1)
    labels = np.tile([1, 0], half)
    return points[:n], labels[:n]


def generate_checkerboard(n: int, noise: float, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    x = (rng.random(n) - 0.5) * 10
    y = (rng.random(n) - 0.5) * 10
    labels = (np.floor(x + 5) % 2 == np.floor(y + 5) % 2).astype(np.int64)
    x += _jitter(rng, n, noise * 5)
    y += _jitter(rng, n, noise * 5)
    return np.stack([x, y], axis=1), labels


def generate_moons(n: int, noise: float, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    half = int(math.ceil(n / 2))
    t = np.arange(half) / half * math.pi
    x1 = np.cos(t) * 4 + _jitter(rng, half, noise * 2)
    y1 = np.sin(t) * 4 + _jitter(rng, half, noise * 2)
    x2 = 1 - np.cos(t) * 4 + _jitter(rng, half, noise * 2)
    y2 = 0.5 - np.sin(t) * 4 + _jitter(rng, half, noise * 2)

    points = np.empty((half * 2, 2))
    points[0::2] = np.stack([x1, y1], axis=1)
    points[1::2] = np.stack([x2, y2], axis=1)
    labels = np.tile([1, 0], half)
    return points[:n], labels[:n]


Generator = Callable[[int, float, np.random.Generator], Tuple[np.ndarray, np.ndarray]]

_GENERATORS: Dict[DatasetShape, Generator] = {
    DatasetShape.CIRCLE: generate_circle,
    DatasetShape.XOR: generate_xor,
    DatasetShape.GAUSSIAN: generate_gaussian,
    DatasetShape.SPIRAL: generate_spiral,
    DatasetShape.CHECKERBOARD: generate_checkerboard,
    DatasetShape.MOONS: generate_moons,
}


def generate_samples(
    shape: Union[str, DatasetShape],
    num_samples: int,
    noise: float,
    rng: np.random.Generator
) -> Tuple[Sample, ...]:
    """
    Generate exactly num_samples labeled points for a shape.

    Args:
        shape: Dataset shape or its selector string
        num_samples: Number of points to generate
        noise: Jitter amount (shape-specific scaling)
        rng: Random generator driving every draw

    Returns:
        Samples in generation order
    """
    if num_samples < 0:
        raise ValueError(f"num_samples must be non-negative, got {num_samples}")
    if num_samples == 0:
        return ()

    points, labels = _GENERATORS[DatasetShape.parse(shape)](num_samples, noise, rng)
    return tuple(
        Sample(features=(float(px), float(py)), label=int(label))
        for (px, py), label in zip(points, labels)
    )


def build_split(
    shape: Union[str, DatasetShape],
    num_samples: int,
    noise: float,
    train_fraction: float,
    seed: Optional[int] = None
) -> DatasetSplit:
    """
    Generate, shuffle and split a dataset.

    The same seeded generator drives sampling and shuffling, so equal
    arguments always produce an equal split. seed=None draws fresh entropy.

    Args:
        shape: Dataset shape or its selector string
        num_samples: Total number of points
        noise: Jitter amount
        train_fraction: Fraction of points in the train split
        seed: Optional RNG seed

    Returns:
        DatasetSplit with floor(num_samples * train_fraction) training samples
    """
    if not 0.0 <= train_fraction <= 1.0:
        raise ValueError(f"train_fraction must be in [0, 1], got {train_fraction}")

    rng = np.random.default_rng(seed)
    samples = generate_samples(shape, num_samples, noise, rng)
    order = rng.permutation(len(samples))
    shuffled = tuple(samples[i] for i in order)

    split_idx = int(math.floor(len(shuffled) * train_fraction))
    return DatasetSplit(train=shuffled[:split_idx], test=shuffled[split_idx:])
