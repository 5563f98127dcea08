"""
Visualizer Module
=================

Grid introspection of a live model and immutable snapshots for rendering.

Classes:
    GridField             - Scalar field sampled on the square input grid
    VisualizationSnapshot - Weights, boundary and node heatmaps for one epoch
"""

from .grid import (
    GridField,
    compute_all_layer_activations,
    compute_decision_boundary,
    compute_input_fields,
    grid_points,
)
from .colors import field_to_rgb, value_to_rgb, values_to_rgb
from .snapshot import LayerWeightSnapshot, VisualizationSnapshot, capture

__all__ = [
    'GridField', 'compute_all_layer_activations', 'compute_decision_boundary',
    'compute_input_fields', 'grid_points',
    'field_to_rgb', 'value_to_rgb', 'values_to_rgb',
    'LayerWeightSnapshot', 'VisualizationSnapshot', 'capture',
]
