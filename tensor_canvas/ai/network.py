"""
Classifier Network and Model Factory
====================================

The trainable binary classifier behind the canvas.

Architecture:
    Input (x, y) → Dense hidden layers (shared activation, optional dropout)
                 → Dense(1) with sigmoid

Training minimizes binary cross-entropy with plain SGD, optionally adding an
L2 penalty on the hidden kernels:
    Loss = BCE(p, y) + λ * Σ ||W_hidden||²

Key Features:
    - Topology validation (1-3 layers, widths clamped to [1, 8])
    - One-epoch fit with validation metrics
    - Batched single-output and all-layer inference for grid introspection
    - Deterministic disposal of parameters and optimizer state
"""

import math
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, cast

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

from config import Config
from .errors import ErrorKind, ModelDisposedError
from ..utils.logger import get_logger, log_model_event

_logger = get_logger(__name__)

# Clamp for probabilities inside the loss (NaN passes through untouched)
_EPSILON = 1e-7

ACTIVATIONS = ('relu', 'tanh', 'sigmoid', 'linear')


def normalize_topology(
    hidden_layers: Iterable[Any],
    config: Optional[Config] = None
) -> Tuple[int, ...]:
    """
    Validate hidden layer widths.

    Non-numeric, NaN and non-positive entries are dropped, the rest are
    clamped to [1, MAX_LAYER_WIDTH] and truncated to MAX_HIDDEN_LAYERS.
    An empty result falls back to a single DEFAULT_LAYER_WIDTH layer.

    Args:
        hidden_layers: Requested widths
        config: Configuration object (limits and default width)

    Returns:
        Tuple of valid widths (never empty)
    """
    cfg = config or Config()
    requested = list(hidden_layers)
    widths: List[int] = []
    for value in requested:
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isnan(number) or number <= 0:
            continue
        widths.append(max(1, min(cfg.MAX_LAYER_WIDTH, int(number))))

    widths = widths[:cfg.MAX_HIDDEN_LAYERS]
    if not widths:
        _logger.warning(
            f"{ErrorKind.INVALID_TOPOLOGY.value}: no valid hidden layers in "
            f"{requested!r}, using [{cfg.DEFAULT_LAYER_WIDTH}]"
        )
        widths = [cfg.DEFAULT_LAYER_WIDTH]
    return tuple(widths)


def _linear(x: torch.Tensor) -> torch.Tensor:
    return x


def _binary_cross_entropy(probs: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
    """BCE on clamped probabilities; NaN inputs yield a NaN loss instead of raising."""
    probs = probs.clamp(_EPSILON, 1.0 - _EPSILON)
    return -(targets * torch.log(probs) + (1.0 - targets) * torch.log(1.0 - probs)).mean()


def _binary_accuracy(probs: torch.Tensor, targets: torch.Tensor) -> float:
    return ((probs > 0.5).float() == targets).float().mean().item()


@contextmanager
def _inference_mode(net: nn.Module) -> Iterator[nn.Module]:
    """Eval mode without gradient tracking; the previous mode is restored on every exit path."""
    was_training = net.training
    net.eval()
    try:
        with torch.no_grad():
            yield net
    finally:
        net.train(was_training)


@dataclass(frozen=True)
class FitResult:
    """Scalar metrics for one epoch of training."""
    loss: float
    val_loss: float
    accuracy: float
    val_accuracy: float
    duration: float = 0.0

    def is_finite(self) -> bool:
        """True if every metric is a finite number."""
        return all(math.isfinite(v) for v in (self.loss, self.val_loss, self.accuracy, self.val_accuracy))


class ClassifierNetwork(nn.Module):
    """
    Feed-forward binary classifier over 2-D points.

    Attributes:
        layers (nn.ModuleList): Dense layers, hidden layers first, output last
        dropout (nn.Dropout): Applied after every hidden layer when rate > 0

    Example:
        >>> net = ClassifierNetwork(hidden_layers=[4, 2], activation='tanh')
        >>> points = torch.randn(16, 2)
        >>> net(points).shape
        torch.Size([16, 1])
    """

    def __init__(
        self,
        hidden_layers: Sequence[int],
        activation: str = 'tanh',
        dropout_rate: float = 0.0,
        input_size: int = 2,
        output_size: int = 1,
        generator: Optional[torch.Generator] = None
    ):
        """
        Initialize the network.

        Args:
            hidden_layers: Validated hidden widths
            activation: Hidden activation ('relu', 'tanh', 'sigmoid', 'linear')
            dropout_rate: Dropout probability after hidden layers
            input_size: Input dimension
            output_size: Output dimension
            generator: Optional RNG for weight initialization
        """
        super().__init__()

        if activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation {activation!r} (choose from {', '.join(ACTIVATIONS)})")

        self.input_size = input_size
        self.output_size = output_size
        self.hidden_sizes = list(hidden_layers)
        self.activation = activation
        self.dropout_rate = dropout_rate

        self._activation_fn = self._get_activation_fn()
        self.dropout = nn.Dropout(dropout_rate) if dropout_rate > 0 else None

        self.layers = nn.ModuleList()
        self._build_network()
        self._init_weights(generator)

    def _build_network(self) -> None:
        """Construct the dense layers."""
        layer_sizes = [self.input_size] + self.hidden_sizes + [self.output_size]

        for i in range(len(layer_sizes) - 1):
            self.layers.append(nn.Linear(layer_sizes[i], layer_sizes[i + 1]))

    def _init_weights(self, generator: Optional[torch.Generator]) -> None:
        """Glorot-uniform kernels and zero biases."""
        with torch.no_grad():
            for layer in self.layers:
                fan_out, fan_in = layer.weight.shape
                bound = math.sqrt(6.0 / (fan_in + fan_out))
                layer.weight.uniform_(-bound, bound, generator=generator)
                layer.bias.zero_()

    def _get_activation_fn(self) -> Callable[..., Any]:
        """Get the hidden activation function."""
        activation_map: Dict[str, Callable[..., Any]] = {
            'relu': F.relu,
            'tanh': torch.tanh,
            'sigmoid': torch.sigmoid,
            'linear': _linear,
        }
        return cast(Callable[..., Any], activation_map[self.activation])

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass through the network.

        Args:
            x: Points of shape (batch_size, 2)

        Returns:
            Probabilities of shape (batch_size, 1)
        """
        return self.forward_all(x)[-1]

    def forward_all(self, x: torch.Tensor) -> List[torch.Tensor]:
        """
        Forward pass returning every dense layer's (post-activation) output.

        Dropout is applied between layers but the returned tensors are the
        activations themselves, as a layer-output probe would report them.
        """
        outputs = []
        for layer in self.layers[:-1]:
            x = self._activation_fn(layer(x))
            outputs.append(x)
            if self.dropout is not None:
                x = self.dropout(x)
        outputs.append(torch.sigmoid(self.layers[-1](x)))
        return outputs

    def regularization_penalty(self) -> torch.Tensor:
        """Sum of squared hidden kernel weights (output layer excluded)."""
        penalty = torch.zeros((), device=self.layers[0].weight.device)
        for layer in self.layers[:-1]:
            penalty = penalty + layer.weight.pow(2).sum()
        return penalty

    def get_layer_info(self) -> List[Dict]:
        """
        Get information about each layer for visualization.

        Returns:
            List of dicts with layer metadata (input layer included)
        """
        info = [{'name': 'Input', 'neurons': self.input_size, 'type': 'input'}]

        for i, layer in enumerate(self.layers[:-1]):
            info.append({
                'name': f'Hidden {i + 1}',
                'neurons': layer.out_features,
                'type': 'hidden'
            })

        info.append({'name': 'Output', 'neurons': self.output_size, 'type': 'output'})
        return info

    def count_parameters(self) -> int:
        """Return total number of trainable parameters."""
        return sum(p.numel() for p in self.parameters() if p.requires_grad)


class ClassifierModel:
    """
    Trainable classifier handed to the training controller.

    Wraps a ClassifierNetwork with its optimizer and exposes the narrow
    contract the core relies on: an ordered layer list with weights, a
    one-epoch fit, batched predict/predict_all, and dispose().

    Example:
        >>> model = build_model([4, 2], 'tanh', learning_rate=0.03, seed=1)
        >>> result = model.fit(x_train, y_train, batch_size=10,
        ...                    validation_inputs=x_test, validation_labels=y_test)
        >>> result.val_accuracy
        0.83
        >>> model.dispose()
    """

    def __init__(
        self,
        network: ClassifierNetwork,
        learning_rate: float,
        regularization: float = 0.0,
        device: Optional[torch.device] = None,
        generator: Optional[torch.Generator] = None
    ):
        self.device = device or torch.device('cpu')
        self.network: Optional[ClassifierNetwork] = network.to(self.device)
        self.learning_rate = learning_rate
        self.regularization = regularization
        self.optimizer: Optional[torch.optim.Optimizer] = torch.optim.SGD(
            self.network.parameters(), lr=learning_rate
        )
        # Batch order RNG (CPU generator, indices are moved to the device)
        self._generator = generator
        self._disposed = False

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _require_network(self) -> ClassifierNetwork:
        if self._disposed or self.network is None:
            raise ModelDisposedError("Model has been disposed")
        return self.network

    @property
    def layers(self) -> List[nn.Linear]:
        """Dense layers in order; the last one is the sigmoid output."""
        return list(self._require_network().layers)

    @property
    def layer_sizes(self) -> Tuple[int, ...]:
        """Widths from input to output, e.g. (2, 4, 2, 1)."""
        net = self._require_network()
        return tuple([net.input_size] + [layer.out_features for layer in net.layers])

    @property
    def hidden_layers(self) -> Tuple[int, ...]:
        return tuple(self._require_network().hidden_sizes)

    @property
    def activation(self) -> str:
        return self._require_network().activation

    def get_layer_weights(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        """
        Copy every layer's kernel and bias.

        Returns:
            List of (kernel, bias) where kernel has shape (in, out) so that
            kernel[j][k] is the edge from node j to node k
        """
        weights = []
        for layer in self._require_network().layers:
            kernel = layer.weight.detach().cpu().numpy().T.copy()
            bias = layer.bias.detach().cpu().numpy().copy()
            weights.append((kernel, bias))
        return weights

    def count_parameters(self) -> int:
        return self._require_network().count_parameters()

    def describe(self) -> str:
        """Short topology description, e.g. '2-4-2-1 tanh'."""
        return f"{'-'.join(str(s) for s in self.layer_sizes)} {self.activation}"

    # -------------------------------------------------------------------------
    # Training and inference
    # -------------------------------------------------------------------------

    def _as_tensor(self, values: Any) -> torch.Tensor:
        return torch.as_tensor(np.asarray(values, dtype=np.float32), device=self.device)

    def fit(
        self,
        inputs: Any,
        labels: Any,
        batch_size: int,
        validation_inputs: Any = None,
        validation_labels: Any = None,
        epochs: int = 1
    ) -> FitResult:
        """
        Train for a number of epochs (one by default) with mini-batch SGD.

        Loss and accuracy are averaged over the last epoch's batches, weighted
        by batch size, and include the L2 penalty like the validation loss.

        Args:
            inputs: Training points (n, 2)
            labels: Training labels (n,) or (n, 1)
            batch_size: Mini-batch size
            validation_inputs: Optional validation points
            validation_labels: Optional validation labels
            epochs: Number of passes over the data

        Returns:
            FitResult for the last epoch
        """
        net = self._require_network()
        optimizer = self.optimizer
        if optimizer is None:
            raise ModelDisposedError("Model has been disposed")

        x = self._as_tensor(inputs).reshape(-1, net.input_size)
        y = self._as_tensor(labels).reshape(-1, 1)
        n = x.shape[0]
        if n == 0:
            raise ValueError("Cannot fit on an empty training set")
        batch_size = max(1, int(batch_size))

        start_time = time.time()
        was_training = net.training
        net.train()
        try:
            for _ in range(max(1, epochs)):
                order = torch.randperm(n, generator=self._generator).to(self.device)
                total_loss = 0.0
                total_correct = 0.0

                for start in range(0, n, batch_size):
                    idx = order[start:start + batch_size]
                    xb, yb = x[idx], y[idx]

                    optimizer.zero_grad()
                    probs = net(xb)
                    loss = _binary_cross_entropy(probs, yb)
                    if self.regularization > 0:
                        loss = loss + self.regularization * net.regularization_penalty()
                    loss.backward()
                    optimizer.step()

                    total_loss += loss.item() * len(idx)
                    total_correct += _binary_accuracy(probs.detach(), yb) * len(idx)
        finally:
            net.train(was_training)

        train_loss = total_loss / n
        train_accuracy = total_correct / n

        if validation_inputs is not None and validation_labels is not None:
            val_loss, val_accuracy = self.evaluate(validation_inputs, validation_labels)
        else:
            val_loss, val_accuracy = float('nan'), float('nan')

        return FitResult(
            loss=train_loss,
            val_loss=val_loss,
            accuracy=train_accuracy,
            val_accuracy=val_accuracy,
            duration=time.time() - start_time
        )

    def evaluate(self, inputs: Any, labels: Any) -> Tuple[float, float]:
        """Loss (with L2 penalty) and accuracy in inference mode."""
        net = self._require_network()
        x = self._as_tensor(inputs).reshape(-1, net.input_size)
        y = self._as_tensor(labels).reshape(-1, 1)
        if x.shape[0] == 0:
            return float('nan'), float('nan')

        with _inference_mode(net):
            probs = net(x)
            loss = _binary_cross_entropy(probs, y)
            if self.regularization > 0:
                loss = loss + self.regularization * net.regularization_penalty()
            return loss.item(), _binary_accuracy(probs, y)

    def predict(self, inputs: Any) -> np.ndarray:
        """
        Batched inference.

        Args:
            inputs: Points (n, 2)

        Returns:
            Probabilities (n, 1) as an independent NumPy array
        """
        net = self._require_network()
        x = self._as_tensor(inputs).reshape(-1, net.input_size)
        with _inference_mode(net):
            return net(x).cpu().numpy().copy()

    def predict_all(self, inputs: Any) -> List[np.ndarray]:
        """
        Batched inference capturing every dense layer's output in one pass.

        Args:
            inputs: Points (n, 2)

        Returns:
            One (n, units) NumPy array per dense layer, output layer last
        """
        net = self._require_network()
        x = self._as_tensor(inputs).reshape(-1, net.input_size)
        with _inference_mode(net):
            return [out.cpu().numpy().copy() for out in net.forward_all(x)]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def dispose(self) -> None:
        """Release parameters and optimizer state. Safe to call twice."""
        if self._disposed:
            return
        description = self.describe()
        self._disposed = True
        if self.optimizer is not None:
            self.optimizer.state.clear()
        self.optimizer = None
        self.network = None
        log_model_event('dispose', description)


def build_model(
    hidden_layers: Iterable[Any],
    activation: str,
    learning_rate: float,
    regularization: float = 0.0,
    dropout_rate: float = 0.0,
    seed: Optional[int] = None,
    config: Optional[Config] = None
) -> ClassifierModel:
    """
    Model Factory: build a fresh, untrained classifier.

    Args:
        hidden_layers: Requested hidden widths (validated and clamped)
        activation: Hidden activation kind
        learning_rate: SGD learning rate
        regularization: L2 strength on hidden kernels
        dropout_rate: Dropout after each hidden layer
        seed: Seed for weight initialization and batch order
        config: Configuration object

    Returns:
        ClassifierModel with len(hidden_layers) + 1 dense layers
    """
    cfg = config or Config()
    widths = normalize_topology(hidden_layers, cfg)

    generator = torch.Generator()
    if seed is not None:
        generator.manual_seed(seed)
    else:
        generator.seed()

    network = ClassifierNetwork(
        hidden_layers=widths,
        activation=activation,
        dropout_rate=dropout_rate,
        input_size=cfg.INPUT_SIZE,
        output_size=cfg.OUTPUT_SIZE,
        generator=generator
    )
    model = ClassifierModel(
        network,
        learning_rate=learning_rate,
        regularization=regularization,
        device=cfg.DEVICE,
        generator=generator
    )
    log_model_event(
        'build', model.describe(),
        lr=learning_rate, l2=regularization, dropout=dropout_rate,
        params=model.count_parameters()
    )
    return model


# Testing
if __name__ == "__main__":
    config = Config()

    model = build_model(config.HIDDEN_LAYERS, config.ACTIVATION, config.LEARNING_RATE, seed=0)

    print("=" * 60)
    print("Classifier Architecture")
    print("=" * 60)

    for i, info in enumerate(model.network.get_layer_info()):
        print(f"Layer {i}: {info['name']} - {info['neurons']} neurons ({info['type']})")

    print(f"\nTotal parameters: {model.count_parameters():,}")

    points = np.random.uniform(-6, 6, size=(32, 2))
    print(f"\nTest forward pass:")
    print(f"  Output shape: {model.predict(points).shape}")
    for i, out in enumerate(model.predict_all(points)):
        print(f"  layer_{i}: {out.shape}")

    print("=" * 60)
