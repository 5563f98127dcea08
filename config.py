"""
Configuration file for Tensor Canvas
====================================

All dataset, network, training and visualization defaults are centralized here.
Modify these values to change what a fresh playground session starts with.

Usage:
    from config import Config
    cfg = Config()
    print(cfg.LEARNING_RATE)
"""

from dataclasses import dataclass, field
from typing import List, Tuple, Optional
import torch


@dataclass
class Config:
    """
    Central configuration for the entire project.

    Sections:
    1. Dataset - Synthetic data generation defaults
    2. Neural Network - Architecture configuration
    3. Training - Learning hyperparameters and loop pacing
    4. Visualization - Grid sampling and color encoding
    5. Web - Dashboard server settings
    6. System - Hardware, paths and seeding
    """

    # =========================================================================
    # DATASET
    # =========================================================================

    # Dataset shape
    # Options: 'circle', 'xor', 'gaussian', 'spiral', 'checkerboard', 'moons'
    DATASET: str = 'circle'

    # Total number of generated points (train + test)
    SAMPLE_COUNT: int = 500

    # Label-preserving jitter added to every point (0 = clean shapes)
    NOISE: float = 0.1

    # Fraction of the points used for training, the rest is the test split
    TRAIN_TEST_SPLIT: float = 0.7

    # =========================================================================
    # NEURAL NETWORK ARCHITECTURE
    # =========================================================================

    # Input is a 2-D point, output is a single sigmoid probability
    INPUT_SIZE: int = 2
    OUTPUT_SIZE: int = 1

    # Hidden layer widths (1-3 layers, each clamped to [1, MAX_LAYER_WIDTH])
    HIDDEN_LAYERS: List[int] = field(default_factory=lambda: [4, 2])
    MAX_HIDDEN_LAYERS: int = 3
    MAX_LAYER_WIDTH: int = 8

    # Width used when a topology has no valid layers left after validation
    DEFAULT_LAYER_WIDTH: int = 4

    # Activation function for hidden layers: 'relu', 'tanh', 'sigmoid', 'linear'
    ACTIVATION: str = 'tanh'

    # =========================================================================
    # TRAINING HYPERPARAMETERS
    # =========================================================================

    # Learning rate for plain SGD
    # Too high: loss explodes (the controller halts on non-finite loss)
    # Too low: the boundary barely moves between epochs
    LEARNING_RATE: float = 0.03

    # Mini-batch size for each epoch
    BATCH_SIZE: int = 10

    # L2 penalty on hidden kernels (0 = disabled)
    REGULARIZATION: float = 0.0

    # Dropout after each hidden layer (0 = disabled)
    DROPOUT_RATE: float = 0.0

    # =========================================================================
    # TRAINING CONTROL
    # =========================================================================

    # Seconds the training loop blocks between increments so pause/reset
    # requests and dashboard redraws are served promptly
    TRAIN_YIELD_SECONDS: float = 0.01

    # Seconds reset/rebuild wait for an in-flight increment (None = forever)
    CANCEL_TIMEOUT_SECONDS: Optional[float] = None

    # Log a metrics line every N epochs
    LOG_EVERY: int = 10

    # =========================================================================
    # VISUALIZATION SETTINGS
    # =========================================================================

    # Half-width of the square input domain [-R, R] x [-R, R]
    GRID_RANGE: float = 6.0

    # Grid resolution of the full-canvas decision boundary
    BOUNDARY_RESOLUTION: int = 60

    # Grid resolution of the compact per-node heatmaps
    ACTIVATION_RESOLUTION: int = 20

    # Diverging color encoding for field values (RGB tuples)
    COLOR_LOW: Tuple[int, int, int] = (255, 150, 50)     # Orange (value 0)
    COLOR_HIGH: Tuple[int, int, int] = (50, 150, 255)    # Blue (value 1)

    # =========================================================================
    # WEB DASHBOARD
    # =========================================================================

    WEB_HOST: str = '0.0.0.0'
    WEB_PORT: int = 5000

    # Console log messages kept for newly connected clients
    WEB_LOG_HISTORY: int = 500

    # =========================================================================
    # SYSTEM SETTINGS
    # =========================================================================

    # Force CPU device (the networks here are tiny, transfers dominate on GPU)
    FORCE_CPU: bool = True

    # Device selection
    @property
    def DEVICE(self) -> torch.device:
        """Auto-detect CUDA/MPS/CPU, or force CPU if configured."""
        if self.FORCE_CPU:
            return torch.device('cpu')
        if torch.cuda.is_available():
            return torch.device('cuda')
        elif hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
            return torch.device('mps')
        return torch.device('cpu')

    # Paths
    LOG_DIR: str = 'logs'

    # Random seed for datasets, weight init and batch order (None for random)
    SEED: Optional[int] = None

    def __post_init__(self):
        """Validation and derived calculations."""
        assert self.LEARNING_RATE > 0, "Learning rate must be positive"
        assert self.BATCH_SIZE > 0, "Batch size must be positive"
        assert self.SAMPLE_COUNT >= 0, "Sample count cannot be negative"
        assert 0 < self.TRAIN_TEST_SPLIT < 1, "Train/test split must be in (0, 1)"
        assert self.REGULARIZATION >= 0, "Regularization cannot be negative"
        assert 0 <= self.DROPOUT_RATE < 1, "Dropout rate must be in [0, 1)"
        assert self.GRID_RANGE > 0, "Grid range must be positive"
        assert self.BOUNDARY_RESOLUTION > 0, "Boundary resolution must be positive"
        assert self.ACTIVATION_RESOLUTION > 0, "Activation resolution must be positive"


if __name__ == "__main__":
    # Print configuration summary
    cfg = Config()
    print("=" * 60)
    print("Tensor Canvas - Configuration Summary")
    print("=" * 60)
    print(f"\nDataset: {cfg.DATASET} ({cfg.SAMPLE_COUNT} samples, noise {cfg.NOISE})")
    print(f"   Train/test split: {cfg.TRAIN_TEST_SPLIT}")
    print(f"\nNeural Network:")
    print(f"   Input size: {cfg.INPUT_SIZE}")
    print(f"   Hidden layers: {cfg.HIDDEN_LAYERS}")
    print(f"   Output size: {cfg.OUTPUT_SIZE}")
    print(f"   Activation: {cfg.ACTIVATION}")
    print(f"\nTraining:")
    print(f"   Learning rate: {cfg.LEARNING_RATE}")
    print(f"   Batch size: {cfg.BATCH_SIZE}")
    print(f"   L2: {cfg.REGULARIZATION}  Dropout: {cfg.DROPOUT_RATE}")
    print(f"\nGrid: [-{cfg.GRID_RANGE}, {cfg.GRID_RANGE}]^2, "
          f"boundary {cfg.BOUNDARY_RESOLUTION}x{cfg.BOUNDARY_RESOLUTION}, "
          f"nodes {cfg.ACTIVATION_RESOLUTION}x{cfg.ACTIVATION_RESOLUTION}")
    print(f"\nDevice: {cfg.DEVICE}")
    print("=" * 60)
