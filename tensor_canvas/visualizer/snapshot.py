"""
Visualization Snapshots
=======================

Immutable bundles of everything the renderer needs after a training increment:
weights, the decision boundary, every node's activation heatmap and the epoch.

capture() only reads the model. The weights are deep copies and every field is
a read-only array, so a snapshot can be held indefinitely while the model keeps
training; replacing the published snapshot is the only way consumers observe
progress.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from config import Config
from .colors import field_to_rgb
from .grid import (
    GridField,
    frozen_copy,
    compute_all_layer_activations,
    compute_decision_boundary,
    compute_input_fields,
)


@dataclass(frozen=True, eq=False)
class LayerWeightSnapshot:
    """
    One dense layer's parameters at capture time.

    Attributes:
        name: Display name ('Hidden 1', ..., 'Output')
        kernel: Read-only (in, out) array; kernel[j][k] is the edge j -> k
        bias: Read-only (out,) array
    """
    name: str
    kernel: np.ndarray
    bias: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return (int(self.kernel.shape[0]), int(self.kernel.shape[1]))

    def equals(self, other: 'LayerWeightSnapshot') -> bool:
        return (
            self.name == other.name
            and np.array_equal(self.kernel, other.kernel)
            and np.array_equal(self.bias, other.bias)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'kernel': self.kernel.astype(float).tolist(),
            'bias': self.bias.astype(float).tolist(),
        }


@dataclass(frozen=True, eq=False)
class VisualizationSnapshot:
    """
    Everything drawn for one epoch.

    Attributes:
        weights: One LayerWeightSnapshot per dense layer
        activation_fields: Indexed by dense layer, then unit
        boundary_field: Model output over the full-canvas grid
        input_fields: Synthetic x / y ramps for the two input nodes
        layer_sizes: Widths from input to output, e.g. (2, 4, 2, 1)
        epoch: Epoch counter when the snapshot was taken
    """
    weights: Tuple[LayerWeightSnapshot, ...]
    activation_fields: Tuple[Tuple[GridField, ...], ...]
    boundary_field: GridField
    input_fields: Tuple[GridField, ...]
    layer_sizes: Tuple[int, ...]
    epoch: int = 0

    def equals(self, other: 'VisualizationSnapshot') -> bool:
        """Bitwise equality of weights and fields."""
        if (self.epoch, self.layer_sizes) != (other.epoch, other.layer_sizes):
            return False
        if len(self.weights) != len(other.weights) or len(self.activation_fields) != len(other.activation_fields):
            return False
        if not all(a.equals(b) for a, b in zip(self.weights, other.weights)):
            return False
        for group, other_group in zip(self.activation_fields, other.activation_fields):
            if len(group) != len(other_group) or not all(a.equals(b) for a, b in zip(group, other_group)):
                return False
        return self.boundary_field.equals(other.boundary_field)

    def node_field(self, layer: int, node: int) -> GridField:
        """
        Heatmap for a node using diagram numbering.

        Layer 0 is the input layer (synthetic ramps); layer i > 0 is the
        i-th dense layer.
        """
        if layer == 0:
            return self.input_fields[node]
        return self.activation_fields[layer - 1][node]

    def to_dict(self, rgb: bool = False) -> Dict[str, Any]:
        """
        JSON-ready representation.

        Args:
            rgb: Also include color-mapped fields as nested [r, g, b] lists
        """
        def encode(grid: GridField) -> Dict[str, Any]:
            data: Dict[str, Any] = {
                'resolution': grid.resolution,
                'extent': grid.extent,
                'values': grid.to_list(),
            }
            if rgb:
                data['rgb'] = field_to_rgb(grid).reshape(-1, 3).tolist()
            return data

        return {
            'epoch': self.epoch,
            'layer_sizes': list(self.layer_sizes),
            'weights': [w.to_dict() for w in self.weights],
            'boundary': encode(self.boundary_field),
            'input_fields': [encode(f) for f in self.input_fields],
            'activations': [[encode(f) for f in group] for group in self.activation_fields],
        }


def capture(
    model: Any,
    epoch: int = 0,
    boundary_resolution: Optional[int] = None,
    activation_resolution: Optional[int] = None,
    extent: Optional[float] = None,
    config: Optional[Config] = None
) -> VisualizationSnapshot:
    """
    Take a consistent snapshot of a model.

    Safe right after construction (untrained weights) and after every
    increment. Two calls without training in between produce bitwise-equal
    snapshots.

    Args:
        model: Model exposing get_layer_weights(), layer_sizes, predict(), predict_all()
        epoch: Epoch counter to stamp on the snapshot
        boundary_resolution: Decision boundary grid size (default from config)
        activation_resolution: Per-node heatmap grid size (default from config)
        extent: Domain half-width (default from config)
        config: Configuration object

    Returns:
        Immutable VisualizationSnapshot
    """
    cfg = config or Config()
    boundary_resolution = boundary_resolution or cfg.BOUNDARY_RESOLUTION
    activation_resolution = activation_resolution or cfg.ACTIVATION_RESOLUTION
    extent = extent if extent is not None else cfg.GRID_RANGE

    layer_weights = model.get_layer_weights()
    names = [f'Hidden {i + 1}' for i in range(len(layer_weights) - 1)] + ['Output']
    weights = tuple(
        LayerWeightSnapshot(name=name, kernel=frozen_copy(kernel), bias=frozen_copy(bias))
        for name, (kernel, bias) in zip(names, layer_weights)
    )

    boundary = compute_decision_boundary(model, boundary_resolution, extent)
    activations: List[List[GridField]] = compute_all_layer_activations(model, activation_resolution, extent)
    inputs = compute_input_fields(activation_resolution, extent)

    return VisualizationSnapshot(
        weights=weights,
        activation_fields=tuple(tuple(group) for group in activations),
        boundary_field=boundary,
        input_fields=inputs,
        layer_sizes=tuple(model.layer_sizes),
        epoch=epoch,
    )
