"""
Tests for grid introspection.

These tests verify:
    - Row-major grid layout (first point at (-R, +R))
    - Decision boundary sampling
    - Per-layer activation fields
    - Synthetic input ramps
    - Color encoding of field values
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tensor_canvas.ai.network import build_model
from tensor_canvas.visualizer.colors import field_to_rgb, value_to_rgb, values_to_rgb
from tensor_canvas.visualizer.grid import (
    GridField,
    compute_all_layer_activations,
    compute_decision_boundary,
    compute_input_fields,
    grid_points,
)
from tests.fakes import ConstantModel


class TestGridPoints:
    """Test grid geometry."""

    def test_first_point_is_top_left(self):
        """The first point is (-R, +R)."""
        points = grid_points(4, 6.0)
        assert points.shape == (16, 2)
        assert tuple(points[0]) == (-6.0, 6.0)

    def test_row_major_order(self):
        """x advances within a row, y descends between rows."""
        points = grid_points(4, 6.0)
        assert tuple(points[1]) == (-3.0, 6.0)
        assert tuple(points[4]) == (-6.0, 3.0)

    def test_invalid_resolution(self):
        """Resolution must be positive."""
        with pytest.raises(ValueError):
            grid_points(0)


class TestGridField:
    """Test the immutable field type."""

    def test_values_read_only(self):
        """Field values cannot be written."""
        field = GridField.from_flat([0.0] * 4, 2)
        with pytest.raises(ValueError):
            field.values[0, 0] = 1.0

    def test_writable_input_is_copied(self):
        """A writable source array is copied, not aliased."""
        source = np.zeros((2, 2), dtype=np.float32)
        field = GridField(values=source, resolution=2)
        source[0, 0] = 9.0
        assert field.at(0, 0) == 0.0

    def test_shape_checked(self):
        """Values must be resolution x resolution."""
        with pytest.raises(ValueError):
            GridField(values=np.zeros((2, 3)), resolution=2)

    def test_coordinates(self):
        """Cell coordinates follow the grid layout."""
        field = GridField.from_flat([0.0] * 16, 4, extent=6.0)
        assert field.coordinates(0, 0) == (-6.0, 6.0)
        assert field.coordinates(1, 2) == (0.0, 3.0)


class TestDecisionBoundary:
    """Test boundary sampling."""

    def test_constant_model(self):
        """A constant 0.5 model gives 16 values of 0.5 at resolution 4."""
        field = compute_decision_boundary(ConstantModel(value=0.5), 4)
        assert field.resolution == 4
        assert field.to_list() == [0.5] * 16

    def test_matches_predict(self):
        """Boundary values equal the model's predictions on the grid."""
        model = build_model([4], 'tanh', 0.03, seed=0)
        field = compute_decision_boundary(model, 5, 6.0)
        expected = model.predict(grid_points(5, 6.0)).reshape(-1)
        np.testing.assert_array_equal(field.flat, expected)


class TestLayerActivations:
    """Test per-unit activation fields."""

    def test_group_sizes(self):
        """Topology [4, 2] gives field groups of 4, 2 and 1."""
        model = build_model([4, 2], 'tanh', 0.03, seed=0)
        groups = compute_all_layer_activations(model, 3)
        assert [len(g) for g in groups] == [4, 2, 1]
        assert all(f.resolution == 3 for g in groups for f in g)

    def test_output_group_matches_boundary(self):
        """The output unit's field is the decision boundary at the same resolution."""
        model = build_model([3], 'relu', 0.03, seed=1)
        groups = compute_all_layer_activations(model, 6)
        boundary = compute_decision_boundary(model, 6)
        assert groups[-1][0].equals(boundary)


class TestInputFields:
    """Test synthetic input ramps."""

    def test_x_ramp_columns(self):
        """Node 0 ramps along x: col / resolution."""
        x_field, _ = compute_input_fields(4)
        assert x_field.values[0].tolist() == [0.0, 0.25, 0.5, 0.75]
        assert x_field.values[3].tolist() == [0.0, 0.25, 0.5, 0.75]

    def test_y_ramp_rows(self):
        """Node 1 ramps along y: 1 - row / resolution."""
        _, y_field = compute_input_fields(4)
        assert y_field.values[:, 0].tolist() == [1.0, 0.75, 0.5, 0.25]


class TestColors:
    """Test diverging color encoding."""

    def test_endpoints(self):
        """0 and 1 map to the configured colors."""
        assert value_to_rgb(0.0, (255, 150, 50), (50, 150, 255)) == (255, 150, 50)
        assert value_to_rgb(1.0, (255, 150, 50), (50, 150, 255)) == (50, 150, 255)

    def test_out_of_range_saturates(self):
        """Values outside [0, 1] clip to valid channels."""
        rgb = values_to_rgb(np.array([-5.0, 5.0]), (255, 150, 50), (50, 150, 255))
        assert rgb.dtype == np.uint8
        assert rgb.min() >= 0 and rgb.max() <= 255

    def test_nan_is_midpoint(self):
        """NaN renders like 0.5."""
        assert value_to_rgb(float('nan'), (0, 0, 0), (200, 200, 200)) == (100, 100, 100)

    def test_field_to_rgb_shape(self):
        """Field colors keep the grid layout."""
        field = GridField.from_flat([0.5] * 9, 3)
        assert field_to_rgb(field).shape == (3, 3, 3)
