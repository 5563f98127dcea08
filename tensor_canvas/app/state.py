"""
Application State
=================

The Playground owns one session: the current settings, the dataset split and
the training controller. Every mutation goes through a command method, and the
effect of each change is spelled out here rather than left to observers:

    dataset parameters changed  -> regenerate split -> controller.set_dataset()
    model parameters changed    -> controller.rebuild()
    batch size changed          -> controller.set_batch_size()

Presentation layers read status() / the controller snapshot and subscribe to
'dataset_changed' and 'model_rebuilt' for anything else they need to refresh.
"""

import random
import threading
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from config import Config
from ..ai.datasets import DatasetShape, DatasetSplit, build_split
from ..ai.network import ACTIVATIONS, build_model, normalize_topology
from ..ai.trainer import IncrementResult, TrainingController
from ..utils.logger import get_logger
from .sharing import decode_share_string, encode_share_string

_logger = get_logger(__name__)

DATASET_FIELDS = ('dataset', 'sample_count', 'noise', 'train_fraction')
MODEL_FIELDS = ('hidden_layers', 'activation', 'learning_rate', 'regularization', 'dropout_rate')

EVENTS = ('dataset_changed', 'model_rebuilt')


@dataclass(frozen=True)
class PlaygroundSettings:
    """User-editable session settings."""
    dataset: str = 'circle'
    sample_count: int = 500
    noise: float = 0.1
    train_fraction: float = 0.7
    seed: Optional[int] = None
    hidden_layers: Sequence[int] = field(default_factory=lambda: (4, 2))
    activation: str = 'tanh'
    learning_rate: float = 0.03
    batch_size: int = 10
    regularization: float = 0.0
    dropout_rate: float = 0.0

    @classmethod
    def from_config(cls, config: Config) -> 'PlaygroundSettings':
        return cls(
            dataset=config.DATASET,
            sample_count=config.SAMPLE_COUNT,
            noise=config.NOISE,
            train_fraction=config.TRAIN_TEST_SPLIT,
            seed=config.SEED,
            hidden_layers=tuple(config.HIDDEN_LAYERS),
            activation=config.ACTIVATION,
            learning_rate=config.LEARNING_RATE,
            batch_size=config.BATCH_SIZE,
            regularization=config.REGULARIZATION,
            dropout_rate=config.DROPOUT_RATE,
        )

    def validated(self, config: Config) -> 'PlaygroundSettings':
        """
        Check value ranges and normalize the topology.

        Raises:
            ValueError: For values the model or dataset cannot accept
        """
        shape = DatasetShape.parse(self.dataset)
        if self.activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation '{self.activation}', expected one of {ACTIVATIONS}")
        if self.sample_count < 0:
            raise ValueError(f"sample_count must be non-negative, got {self.sample_count}")
        if not 0.0 <= self.train_fraction <= 1.0:
            raise ValueError(f"train_fraction must be in [0, 1], got {self.train_fraction}")
        if self.noise < 0:
            raise ValueError(f"noise must be non-negative, got {self.noise}")
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.regularization < 0:
            raise ValueError(f"regularization must be non-negative, got {self.regularization}")
        if not 0.0 <= self.dropout_rate < 1.0:
            raise ValueError(f"dropout_rate must be in [0, 1), got {self.dropout_rate}")
        return replace(
            self,
            dataset=shape.value,
            hidden_layers=tuple(normalize_topology(self.hidden_layers, config)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['hidden_layers'] = list(self.hidden_layers)
        return data


class Playground:
    """
    One interactive session.

    Example:
        >>> playground = Playground()
        >>> playground.set_topology([6, 3])
        >>> playground.step()
        >>> playground.controller.snapshot.epoch
        1
    """

    def __init__(self, settings: Optional[PlaygroundSettings] = None, config: Optional[Config] = None):
        self.config = config or Config()
        self._settings = (settings or PlaygroundSettings.from_config(self.config)).validated(self.config)
        self.controller = TrainingController(self.config, batch_size=self._settings.batch_size)
        self._split: Optional[DatasetSplit] = None

        self._lock = threading.RLock()
        self._subscribers: Dict[str, List[Callable[[Any], None]]] = {name: [] for name in EVENTS}

        self._regenerate_dataset()
        self._rebuild_model()

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def settings(self) -> PlaygroundSettings:
        return self._settings

    @property
    def split(self) -> Optional[DatasetSplit]:
        return self._split

    def status(self) -> Dict[str, Any]:
        """Everything the presentation layer may show about the session."""
        controller = self.controller
        failure = controller.last_failure
        history = controller.get_history()
        return {
            'state': controller.state.value,
            'epoch': controller.epoch,
            'can_train': controller.can_train,
            'last_failure': None if failure is None else {
                'kind': failure.kind.value if failure.kind else None,
                'message': str(failure),
            },
            'latest': {name: values[-1] for name, values in history.items() if values} or None,
            'train_size': len(self._split.train) if self._split else 0,
            'test_size': len(self._split.test) if self._split else 0,
            'settings': self._settings.to_dict(),
        }

    def subscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        """
        Register a callback for a session event.

        Events:
            dataset_changed: called with the new DatasetSplit
            model_rebuilt: called with the new model
        """
        if event not in self._subscribers:
            raise ValueError(f"Unknown event '{event}', expected one of {EVENTS}")
        with self._lock:
            self._subscribers[event].append(callback)

    def _emit(self, event: str, payload: Any) -> None:
        with self._lock:
            callbacks = list(self._subscribers[event])
        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                _logger.exception(f"'{event}' subscriber failed")

    # =========================================================================
    # Training commands
    # =========================================================================

    def start(self) -> bool:
        return self.controller.start()

    def pause(self) -> bool:
        return self.controller.pause()

    def step(self) -> Optional[IncrementResult]:
        return self.controller.step()

    def reset(self) -> None:
        self.controller.reset()

    def shutdown(self) -> None:
        self.controller.shutdown()

    # =========================================================================
    # Configuration commands
    # =========================================================================

    def select_dataset(self, **changes: Any) -> PlaygroundSettings:
        """Change dataset, sample_count, noise and/or train_fraction."""
        unknown = set(changes) - set(DATASET_FIELDS)
        if unknown:
            raise ValueError(f"Not dataset parameters: {sorted(unknown)}")
        return self.apply_settings(changes)

    def set_topology(self, widths: Sequence[Any]) -> PlaygroundSettings:
        return self.apply_settings({'hidden_layers': list(widths)})

    def set_activation(self, kind: str) -> PlaygroundSettings:
        return self.apply_settings({'activation': kind})

    def set_hyperparameters(
        self,
        learning_rate: Optional[float] = None,
        regularization: Optional[float] = None,
        dropout_rate: Optional[float] = None,
        batch_size: Optional[int] = None
    ) -> PlaygroundSettings:
        changes = {
            'learning_rate': learning_rate,
            'regularization': regularization,
            'dropout_rate': dropout_rate,
            'batch_size': batch_size,
        }
        return self.apply_settings({k: v for k, v in changes.items() if v is not None})

    def randomize(self) -> PlaygroundSettings:
        """Draw a new seed and rebuild dataset and model with it."""
        return self.apply_settings({'seed': random.randrange(2 ** 31)})

    def apply_settings(self, changes: Mapping[str, Any]) -> PlaygroundSettings:
        """
        Apply a batch of setting changes and run the matching edges.

        Args:
            changes: Mapping of PlaygroundSettings field names to new values

        Returns:
            The settings now in effect

        Raises:
            ValueError: Unknown field or invalid value (settings unchanged)
        """
        known = PlaygroundSettings.__dataclass_fields__
        unknown = [name for name in changes if name not in known]
        if unknown:
            raise ValueError(f"Unknown settings: {unknown}")

        with self._lock:
            old = self._settings
            new = replace(old, **dict(changes)).validated(self.config)
            self._settings = new

        changed = {name for name in known if getattr(old, name) != getattr(new, name)}
        if not changed:
            return new

        _logger.info(f"Settings changed: {', '.join(sorted(changed))}")

        # A new seed regenerates both the data and the initial weights
        reseeded = 'seed' in changed
        if reseeded or changed & set(DATASET_FIELDS):
            self._regenerate_dataset()
        if reseeded or changed & set(MODEL_FIELDS):
            self._rebuild_model()
        if 'batch_size' in changed:
            self.controller.set_batch_size(new.batch_size)
        return new

    def share_string(self) -> str:
        return encode_share_string(self._settings)

    def load_share_string(self, text: str) -> PlaygroundSettings:
        """
        Replace the settings with those in a share string.

        Raises:
            ShareStringError: Malformed string (current settings are kept)
        """
        decoded = decode_share_string(text, self._settings)
        return self.apply_settings(asdict(decoded))

    # =========================================================================
    # Edges
    # =========================================================================

    def _regenerate_dataset(self) -> None:
        s = self._settings
        split = build_split(s.dataset, s.sample_count, s.noise, s.train_fraction, seed=s.seed)
        self._split = split
        self.controller.set_dataset(split)
        if split.is_empty:
            _logger.warning("Dataset split is empty, training is disabled")
        self._emit('dataset_changed', split)

    def _rebuild_model(self) -> None:
        s = self._settings
        model = self.controller.rebuild(lambda: build_model(
            s.hidden_layers,
            s.activation,
            s.learning_rate,
            regularization=s.regularization,
            dropout_rate=s.dropout_rate,
            seed=s.seed,
            config=self.config
        ))
        self._emit('model_rebuilt', model)
