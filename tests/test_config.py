"""
Tests for Config validation.

These tests verify that invalid configurations are caught early
rather than causing cryptic runtime errors during training.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import torch

from config import Config


class TestConfigValidation:
    """Test Config.__post_init__ validation."""

    def test_valid_config_passes(self):
        """Default config should validate without errors."""
        cfg = Config()
        assert cfg is not None

    def test_invalid_learning_rate_zero(self):
        """LEARNING_RATE=0 should fail validation."""
        cfg = Config()
        cfg.LEARNING_RATE = 0
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_invalid_batch_size(self):
        """BATCH_SIZE must be positive."""
        cfg = Config()
        cfg.BATCH_SIZE = 0
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_invalid_split(self):
        """TRAIN_TEST_SPLIT outside (0, 1) should fail validation."""
        cfg = Config()
        cfg.TRAIN_TEST_SPLIT = 1.5
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_invalid_dropout(self):
        """Dropout of 1 would zero every hidden activation."""
        cfg = Config()
        cfg.DROPOUT_RATE = 1.0
        with pytest.raises(AssertionError):
            cfg.__post_init__()

    def test_invalid_resolution(self):
        """Grid resolutions must be positive."""
        cfg = Config()
        cfg.BOUNDARY_RESOLUTION = 0
        with pytest.raises(AssertionError):
            cfg.__post_init__()


class TestConfigDefaults:
    """Test the defaults a fresh session starts from."""

    def test_grid_defaults(self):
        """Boundary and node grids use the standard resolutions and range."""
        cfg = Config()
        assert cfg.GRID_RANGE == 6.0
        assert cfg.BOUNDARY_RESOLUTION == 60
        assert cfg.ACTIVATION_RESOLUTION == 20

    def test_hidden_layers_not_shared(self):
        """Each Config gets its own HIDDEN_LAYERS list."""
        a, b = Config(), Config()
        a.HIDDEN_LAYERS.append(3)
        assert b.HIDDEN_LAYERS == [4, 2]

    def test_force_cpu_device(self):
        """FORCE_CPU pins the device to CPU."""
        cfg = Config()
        cfg.FORCE_CPU = True
        assert cfg.DEVICE == torch.device('cpu')

    def test_no_shared_instance(self):
        """Importing config creates no module-level Config."""
        import config as config_module
        assert not hasattr(config_module, 'config')
