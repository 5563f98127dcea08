"""
AI Module
=========

Datasets, the classifier model and incremental training.

Classes:
    ClassifierModel     - Dense binary classifier with a Keras-like fit()
    DatasetSplit        - Train/test samples for one generated dataset
    TrainingController  - Start/pause/step/reset state machine over the model
"""

from .datasets import DatasetShape, DatasetSplit, Sample, build_split
from .errors import (
    ErrorKind,
    FitError,
    IntrospectionError,
    ModelDisposedError,
    NumericDivergenceError,
    PlaygroundError,
    ShareStringError,
)
from .network import ClassifierModel, ClassifierNetwork, FitResult, build_model, normalize_topology
from .trainer import ControllerState, IncrementResult, TrainingController, TrainingMetricsHistory

__all__ = [
    'DatasetShape', 'DatasetSplit', 'Sample', 'build_split',
    'ErrorKind', 'PlaygroundError', 'NumericDivergenceError', 'FitError',
    'IntrospectionError', 'ModelDisposedError', 'ShareStringError',
    'ClassifierModel', 'ClassifierNetwork', 'FitResult', 'build_model', 'normalize_topology',
    'ControllerState', 'IncrementResult', 'TrainingController', 'TrainingMetricsHistory',
]
