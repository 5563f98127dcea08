"""
Lightweight stand-ins for the model contract.

Used where a real torch model would make a test slow or nondeterministic.
"""

import threading
from typing import List, Optional

import numpy as np

from tensor_canvas.ai.network import FitResult


class ConstantModel:
    """
    Model whose every unit outputs a constant.

    fit() records calls and can be scripted to return bad metrics, raise, or
    block until released. predict() and predict_all() raise predict_error
    when it is set.
    """

    def __init__(self, hidden_layers=(4, 2), value: float = 0.5, events: Optional[List[str]] = None, name: str = 'model'):
        self.hidden = tuple(hidden_layers)
        self.value = value
        self.events = events if events is not None else []
        self.name = name
        self.fit_calls = 0
        self.disposed = False
        self.next_loss = 0.5
        self.fit_error: Optional[Exception] = None
        self.fit_gate: Optional[threading.Event] = None
        self.fit_started = threading.Event()
        self.bias_shift = 0.0
        self.predict_error: Optional[Exception] = None

    @property
    def layer_sizes(self):
        return (2,) + self.hidden + (1,)

    def describe(self) -> str:
        return f"fake {self.name}"

    def get_layer_weights(self):
        sizes = self.layer_sizes
        return [
            (np.full((sizes[i], sizes[i + 1]), 0.1, dtype=np.float32),
             np.full((sizes[i + 1],), self.bias_shift, dtype=np.float32))
            for i in range(len(sizes) - 1)
        ]

    def fit(self, inputs, labels, batch_size, validation_inputs=None, validation_labels=None, epochs=1):
        self.fit_calls += 1
        self.fit_started.set()
        if self.fit_gate is not None:
            self.fit_gate.wait(5)
        if self.fit_error is not None:
            raise self.fit_error
        self.bias_shift += 0.01
        loss = self.next_loss
        return FitResult(loss=loss, val_loss=loss, accuracy=0.5, val_accuracy=0.5)

    def predict(self, inputs):
        if self.predict_error is not None:
            raise self.predict_error
        n = np.asarray(inputs).shape[0]
        return np.full((n, 1), self.value, dtype=np.float32)

    def predict_all(self, inputs):
        if self.predict_error is not None:
            raise self.predict_error
        n = np.asarray(inputs).shape[0]
        return [np.full((n, w), self.value, dtype=np.float32) for w in self.layer_sizes[1:]]

    def dispose(self):
        self.disposed = True
        self.events.append(f"dispose:{self.name}")
