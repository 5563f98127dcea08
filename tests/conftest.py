"""
Pytest configuration for the test suite.

This file is automatically loaded by pytest and applies configuration
to all tests in the tests/ directory.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def small_config():
    """Configuration with small grids and no loop delay for fast tests."""
    cfg = Config()
    cfg.BOUNDARY_RESOLUTION = 8
    cfg.ACTIVATION_RESOLUTION = 4
    cfg.TRAIN_YIELD_SECONDS = 0.0
    cfg.CANCEL_TIMEOUT_SECONDS = 10.0
    cfg.SAMPLE_COUNT = 60
    cfg.SEED = 7
    return cfg
