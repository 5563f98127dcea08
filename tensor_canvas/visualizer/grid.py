"""
Grid Introspection
==================

Turns a model into scalar fields over the square input domain [-R, R]^2.

Every field is a dense, row-major sampling: rows run from y = +R down towards
-R, columns from x = -R towards +R, with a step of 2R / resolution. The first
value is therefore the point (-R, +R), and boundary and activation fields share
this layout so they can be overlaid.

    decision boundary   one batched predict() over the grid
    layer activations   one batched predict_all(), sliced per unit
    input ramps         synthetic x / y gradients for the input layer
"""

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

import numpy as np

from ..utils.logger import get_logger

_logger = get_logger(__name__)

DEFAULT_EXTENT = 6.0


def frozen_copy(values: np.ndarray) -> np.ndarray:
    """Independent read-only copy of an array."""
    copy = np.array(values, copy=True)
    copy.setflags(write=False)
    return copy


@dataclass(frozen=True, eq=False)
class GridField:
    """
    A scalar function sampled on the grid.

    Attributes:
        values: Read-only array of shape (resolution, resolution)
        resolution: Samples per axis
        extent: Half-width R of the domain
    """
    values: np.ndarray
    resolution: int
    extent: float = DEFAULT_EXTENT

    def __post_init__(self):
        expected = (self.resolution, self.resolution)
        if self.values.shape != expected:
            raise ValueError(f"GridField values must have shape {expected}, got {self.values.shape}")
        if self.values.flags.writeable:
            object.__setattr__(self, 'values', frozen_copy(self.values))

    @classmethod
    def from_flat(cls, flat: Sequence[float], resolution: int, extent: float = DEFAULT_EXTENT) -> 'GridField':
        """Build a field from resolution² row-major values."""
        values = np.asarray(flat, dtype=np.float32).reshape(resolution, resolution)
        return cls(values=frozen_copy(values), resolution=resolution, extent=extent)

    @property
    def flat(self) -> np.ndarray:
        """Row-major values as a 1-D read-only array."""
        return self.values.reshape(-1)

    def at(self, row: int, col: int) -> float:
        return float(self.values[row, col])

    def coordinates(self, row: int, col: int) -> Tuple[float, float]:
        """Input-space (x, y) of a cell."""
        step = 2 * self.extent / self.resolution
        return (-self.extent + col * step, self.extent - row * step)

    def to_list(self) -> List[float]:
        return self.flat.astype(float).tolist()

    def equals(self, other: 'GridField') -> bool:
        """Bitwise equality of values and grid geometry."""
        return (
            self.resolution == other.resolution
            and self.extent == other.extent
            and np.array_equal(self.values, other.values)
        )


def grid_axes(resolution: int, extent: float = DEFAULT_EXTENT) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample coordinates along each axis.

    Returns:
        (xs ascending from -extent, ys descending from +extent)
    """
    if resolution <= 0:
        raise ValueError(f"resolution must be positive, got {resolution}")
    step = 2 * extent / resolution
    steps = np.arange(resolution, dtype=np.float64) * step
    return -extent + steps, extent - steps


def grid_points(resolution: int, extent: float = DEFAULT_EXTENT) -> np.ndarray:
    """
    All grid points in row-major order.

    Args:
        resolution: Samples per axis
        extent: Half-width of the domain

    Returns:
        float32 array of shape (resolution², 2), first point (-extent, +extent)
    """
    xs, ys = grid_axes(resolution, extent)
    grid_x, grid_y = np.meshgrid(xs, ys)  # rows follow ys, columns follow xs
    return np.stack([grid_x.ravel(), grid_y.ravel()], axis=1).astype(np.float32)


def compute_decision_boundary(model: Any, resolution: int, extent: float = DEFAULT_EXTENT) -> GridField:
    """
    Sample the model's output over the grid in a single batched call.

    Args:
        model: Anything with predict(points) -> (n, 1)
        resolution: Samples per axis
        extent: Half-width of the domain

    Returns:
        GridField of raw output values (not re-normalized)
    """
    points = grid_points(resolution, extent)
    outputs = np.asarray(model.predict(points))
    return GridField.from_flat(outputs.reshape(-1), resolution, extent)


def compute_all_layer_activations(
    model: Any,
    resolution: int,
    extent: float = DEFAULT_EXTENT
) -> List[List[GridField]]:
    """
    Sample every unit of every dense layer in one batched multi-output pass.

    Args:
        model: Anything with predict_all(points) -> [(n, units), ...]
        resolution: Samples per axis
        extent: Half-width of the domain

    Returns:
        One list per dense layer (output layer last) with one field per unit
    """
    points = grid_points(resolution, extent)
    layer_outputs = model.predict_all(points)

    groups: List[List[GridField]] = []
    for outputs in layer_outputs:
        outputs = np.asarray(outputs).reshape(resolution * resolution, -1)
        groups.append([
            GridField.from_flat(outputs[:, unit], resolution, extent)
            for unit in range(outputs.shape[1])
        ])

    _logger.debug(f"Layer activations sampled: {[len(g) for g in groups]} units at {resolution}x{resolution}")
    return groups


def compute_input_fields(resolution: int, extent: float = DEFAULT_EXTENT) -> Tuple[GridField, GridField]:
    """
    Synthetic activations for the two input nodes.

    The raw input has nothing learned to show, so node 0 renders the x ramp
    and node 1 the y ramp, both normalized to [0, 1].
    """
    xs, ys = grid_axes(resolution, extent)
    x_ramp = np.tile((xs + extent) / (2 * extent), (resolution, 1))
    y_ramp = np.tile(((ys + extent) / (2 * extent))[:, None], (1, resolution))
    return (
        GridField(values=frozen_copy(x_ramp.astype(np.float32)), resolution=resolution, extent=extent),
        GridField(values=frozen_copy(y_ramp.astype(np.float32)), resolution=resolution, extent=extent),
    )
