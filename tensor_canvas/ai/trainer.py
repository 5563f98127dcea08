"""
Training Loop Controller
========================

Orchestrates incremental training of the live model:
    1. Run one epoch of fit() on the train split (test split for validation)
    2. Capture a fresh visualization snapshot
    3. Commit metrics, epoch and snapshot together
    4. Yield so pause/reset requests and redraws are served
    5. Repeat while running

State machine:

    IDLE ──start()──▶ RUNNING ──pause() / failure──▶ IDLE
    IDLE ──step()───▶ STEPPING_ONCE ───────────────▶ IDLE
    any  ──reset()──▶ RESETTING ───────────────────▶ IDLE

Cancellation is cooperative: pause() and reset() set an event that the loop
checks only between increments, so an increment is never interrupted and a
partially updated snapshot is never published.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from config import Config
from .datasets import DatasetSplit
from .errors import (
    ErrorKind,
    FitError,
    IntrospectionError,
    NumericDivergenceError,
    PlaygroundError,
)
from .network import FitResult
from ..visualizer.snapshot import VisualizationSnapshot, capture
from ..utils.logger import get_logger, log_epoch_metrics, log_model_event

_logger = get_logger(__name__)


class ControllerState(Enum):
    """Training controller states."""
    IDLE = 'idle'
    RUNNING = 'running'
    STEPPING_ONCE = 'stepping_once'
    RESETTING = 'resetting'


@dataclass(frozen=True)
class IncrementResult:
    """Outcome of one completed increment."""
    epoch: int
    train_loss: float
    test_loss: float
    train_accuracy: float
    test_accuracy: float
    duration: float


class TrainingMetricsHistory:
    """
    Append-only per-epoch metrics.

    Series tracked (all indexed by epoch - 1):
        - train_loss / test_loss
        - train_accuracy / test_accuracy
    """

    SERIES = ('train_loss', 'test_loss', 'train_accuracy', 'test_accuracy')

    def __init__(self):
        self.train_loss: List[float] = []
        self.test_loss: List[float] = []
        self.train_accuracy: List[float] = []
        self.test_accuracy: List[float] = []

    def __len__(self) -> int:
        return len(self.train_loss)

    def add(self, result: FitResult) -> None:
        """Append one epoch's metrics to every series."""
        self.train_loss.append(result.loss)
        self.test_loss.append(result.val_loss)
        self.train_accuracy.append(result.accuracy)
        self.test_accuracy.append(result.val_accuracy)

    def clear(self) -> None:
        for name in self.SERIES:
            getattr(self, name).clear()

    def latest(self) -> Optional[Dict[str, float]]:
        """Most recent value of every series, or None before the first epoch."""
        if not self.train_loss:
            return None
        return {name: getattr(self, name)[-1] for name in self.SERIES}

    def get_recent_average(self, metric: str, n: int = 10) -> Optional[float]:
        """Average of the last n values for a series (None when empty)."""
        values = getattr(self, metric, [])
        if not values:
            return None
        return float(np.mean(values[-n:]))

    def best(self, metric: str = 'test_accuracy') -> Optional[float]:
        """Highest value seen for a series."""
        values = getattr(self, metric, [])
        return max(values) if values else None

    def as_dict(self) -> Dict[str, List[float]]:
        """Copy of every series (safe to hand to other threads)."""
        return {name: list(getattr(self, name)) for name in self.SERIES}


# Callback signatures
SnapshotCallback = Callable[[VisualizationSnapshot], None]
StateCallback = Callable[[ControllerState], None]
FailureCallback = Callable[[PlaygroundError], None]


class TrainingController:
    """
    Owns the live model and drives training increments.

    The model is only ever touched while holding the model lock, whether by
    the background loop, a synchronous step() or a rebuild, so there is never
    parallel mutation. Published fields (state, epoch, history, snapshot) are
    guarded by a separate state lock and are swapped, never edited in place.

    Example:
        >>> controller = TrainingController(config)
        >>> controller.set_dataset(build_split('circle', 500, 0.1, 0.7, seed=1))
        >>> controller.rebuild(lambda: build_model([4, 2], 'tanh', 0.03))
        >>> controller.step()
        >>> controller.start(); ...; controller.pause()
    """

    def __init__(self, config: Optional[Config] = None, batch_size: Optional[int] = None):
        """
        Initialize the controller.

        Args:
            config: Configuration object
            batch_size: Mini-batch size (default from config)
        """
        self.config = config or Config()
        self.batch_size = batch_size or self.config.BATCH_SIZE

        self._state = ControllerState.IDLE
        self._epoch = 0
        self._history = TrainingMetricsHistory()
        self._snapshot: Optional[VisualizationSnapshot] = None
        self._last_failure: Optional[PlaygroundError] = None

        self._model: Any = None
        self._split: Optional[DatasetSplit] = None
        self._arrays: Optional[Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]] = None

        # State lock guards published fields; model lock serializes model access
        self._lock = threading.RLock()
        self._model_lock = threading.RLock()
        self._cancel = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._worker: Optional[threading.Thread] = None

        self._callback_lock = threading.Lock()
        self._on_snapshot_callbacks: List[SnapshotCallback] = []
        self._on_state_callbacks: List[StateCallback] = []
        self._on_failure_callbacks: List[FailureCallback] = []

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def snapshot(self) -> Optional[VisualizationSnapshot]:
        """Latest published snapshot (from the last completed increment)."""
        return self._snapshot

    @property
    def last_failure(self) -> Optional[PlaygroundError]:
        return self._last_failure

    @property
    def model(self) -> Any:
        return self._model

    @property
    def split(self) -> Optional[DatasetSplit]:
        return self._split

    @property
    def is_running(self) -> bool:
        return self._state == ControllerState.RUNNING

    @property
    def can_train(self) -> bool:
        """False when there is no model or either split is empty."""
        split = self._split
        return self._model is not None and split is not None and not split.is_empty

    def get_history(self) -> Dict[str, List[float]]:
        with self._lock:
            return self._history.as_dict()

    def history_length(self) -> int:
        with self._lock:
            return len(self._history)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def on_snapshot(self, callback: SnapshotCallback) -> None:
        """Register a callback for every published snapshot."""
        with self._callback_lock:
            self._on_snapshot_callbacks.append(callback)

    def on_state_change(self, callback: StateCallback) -> None:
        """Register a callback for state transitions."""
        with self._callback_lock:
            self._on_state_callbacks.append(callback)

    def on_failure(self, callback: FailureCallback) -> None:
        """Register a callback for training failures."""
        with self._callback_lock:
            self._on_failure_callbacks.append(callback)

    def _notify(self, callbacks: List[Callable[[Any], None]], payload: Any) -> None:
        # Copy under the lock so callbacks can register more callbacks
        with self._callback_lock:
            targets = list(callbacks)
        for callback in targets:
            try:
                callback(payload)
            except Exception:
                _logger.exception(f"Subscriber {callback!r} failed")

    def _set_state(self, state: ControllerState) -> None:
        with self._lock:
            if self._state == state:
                return
            self._state = state
            if state == ControllerState.IDLE:
                self._idle.set()
            else:
                self._idle.clear()
        self._notify(self._on_state_callbacks, state)

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_batch_size(self, batch_size: int) -> None:
        """Batch size used from the next increment on."""
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = int(batch_size)

    def set_dataset(self, split: DatasetSplit) -> None:
        """Stop training, install a new split and reset progress."""
        self._cancel_and_join()
        with self._model_lock:
            with self._lock:
                self._split = split
                self._arrays = None
            _logger.info(f"Dataset installed: {len(split.train)} train / {len(split.test)} test")
        self.reset()

    def rebuild(self, factory: Callable[[], Any]) -> Any:
        """
        Replace the model.

        The current model is disposed before factory() is called, so two
        models never hold resources at the same time. Training state resets
        with the new model and its initial snapshot is published.

        Args:
            factory: Zero-argument callable returning a new model

        Returns:
            The new model
        """
        self._cancel_and_join()
        self._set_state(ControllerState.RESETTING)
        try:
            with self._model_lock:
                with self._lock:
                    old_model = self._model
                    self._model = None
                    self._snapshot = None
                    self._history.clear()
                    self._epoch = 0
                    self._last_failure = None

                if old_model is not None:
                    old_model.dispose()

                new_model = factory()
                try:
                    snapshot = self._capture(new_model, epoch=0)
                except IntrospectionError:
                    new_model.dispose()
                    raise

                with self._lock:
                    self._model = new_model
                    self._snapshot = snapshot
        finally:
            self._set_state(ControllerState.IDLE)

        log_model_event('rebuild', new_model.describe())
        self._notify(self._on_snapshot_callbacks, snapshot)
        return new_model

    # =========================================================================
    # Commands
    # =========================================================================

    def start(self) -> bool:
        """
        Begin continuous training.

        Returns:
            True if the loop is running afterwards
        """
        with self._lock:
            pending_stop = self._state == ControllerState.RUNNING and self._cancel.is_set()
            if self._state == ControllerState.RUNNING and not pending_stop:
                return True

        if pending_stop:
            # A pause was requested but not yet observed: let that loop finish
            self._join_worker()

        with self._lock:
            if self._state != ControllerState.IDLE:
                _logger.debug(f"start() ignored in state {self._state.value}")
                return False
            if not self.can_train:
                _logger.warning(f"start() ignored: {ErrorKind.EMPTY_DATASET.value}")
                return False

            self._cancel.clear()
            self._last_failure = None
            self._worker = threading.Thread(target=self._run_loop, name='canvas-training', daemon=True)
            self._set_state(ControllerState.RUNNING)
            self._worker.start()

        _logger.info(f"Training started at epoch {self._epoch}")
        return True

    def pause(self) -> bool:
        """
        Request the loop to stop after the in-flight increment.

        Returns:
            True if a stop was requested
        """
        with self._lock:
            if self._state != ControllerState.RUNNING:
                return False
            self._cancel.set()
        _logger.info("Pause requested")
        return True

    def step(self) -> Optional[IncrementResult]:
        """
        Run exactly one increment in the caller's thread.

        Returns:
            The increment result, or None if stepping is not allowed now

        Raises:
            PlaygroundError: If the increment failed (state returns to IDLE)
        """
        with self._lock:
            if self._state != ControllerState.IDLE:
                _logger.debug(f"step() rejected in state {self._state.value}")
                return None
            if not self.can_train:
                _logger.warning(f"step() ignored: {ErrorKind.EMPTY_DATASET.value}")
                return None
            self._last_failure = None
            self._set_state(ControllerState.STEPPING_ONCE)

        try:
            result = self._run_increment()
        except PlaygroundError as e:
            self._set_state(ControllerState.IDLE)
            self._record_failure(e)
            raise
        except BaseException:
            self._set_state(ControllerState.IDLE)
            raise
        self._set_state(ControllerState.IDLE)
        return result

    def reset(self) -> None:
        """
        Stop training and clear progress.

        Waits for an in-flight increment, clears the metrics history, zeroes
        the epoch and republishes an epoch-0 snapshot of the current model.
        The model itself is kept.
        """
        self._cancel_and_join()
        self._set_state(ControllerState.RESETTING)
        snapshot = None
        try:
            with self._model_lock:
                with self._lock:
                    self._history.clear()
                    self._epoch = 0
                    self._last_failure = None
                    model = self._model
                if model is not None:
                    try:
                        snapshot = self._capture(model, epoch=0)
                    except IntrospectionError:
                        _logger.exception("Snapshot after reset failed, keeping the previous one")
                    else:
                        with self._lock:
                            self._snapshot = snapshot
        finally:
            self._set_state(ControllerState.IDLE)

        _logger.info("Training reset")
        if snapshot is not None:
            self._notify(self._on_snapshot_callbacks, snapshot)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the controller is IDLE. Returns False on timeout."""
        return self._idle.wait(timeout)

    def shutdown(self) -> None:
        """Stop training and dispose the model."""
        self._cancel_and_join()
        with self._model_lock:
            with self._lock:
                model = self._model
                self._model = None
            if model is not None:
                model.dispose()
        self._set_state(ControllerState.IDLE)

    # =========================================================================
    # Internals
    # =========================================================================

    def _cancel_and_join(self) -> None:
        with self._lock:
            worker = self._worker
            if worker is not None:
                self._cancel.set()
        if worker is not None:
            self._join_worker()

    def _join_worker(self) -> None:
        worker = self._worker
        if worker is None or worker is threading.current_thread():
            return
        worker.join(self.config.CANCEL_TIMEOUT_SECONDS)
        if worker.is_alive():
            _logger.warning("Training loop did not stop within the cancel timeout")

    def _run_loop(self) -> None:
        """Background loop: increments back to back until cancelled or failed."""
        failure: Optional[PlaygroundError] = None
        try:
            while not self._cancel.is_set():
                try:
                    result = self._run_increment()
                except PlaygroundError as e:
                    failure = e
                    break
                if result is None:
                    break

                # Yield point: block briefly so commands and redraws get through
                if self._cancel.wait(self.config.TRAIN_YIELD_SECONDS):
                    break
        finally:
            self._release_worker()

        # Reported only once IDLE, so a handler may start() a fresh loop
        if failure is not None:
            self._record_failure(failure)

    def _release_worker(self) -> None:
        with self._lock:
            # A newer loop owns the controller now; leave its state alone
            if self._worker is not threading.current_thread():
                return
            self._worker = None
            if self._state == ControllerState.RUNNING:
                self._set_state(ControllerState.IDLE)
                _logger.info(f"Training stopped at epoch {self._epoch}")

    def _training_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        with self._lock:
            if self._arrays is None:
                if self._split is None:
                    raise RuntimeError("No dataset installed")
                x_train, y_train = self._split.train_arrays()
                x_test, y_test = self._split.test_arrays()
                self._arrays = (x_train, y_train, x_test, y_test)
            return self._arrays

    def _capture(self, model: Any, epoch: int) -> VisualizationSnapshot:
        try:
            return capture(model, epoch=epoch, config=self.config)
        except PlaygroundError:
            raise
        except Exception as e:
            raise IntrospectionError(f"Snapshot capture failed: {type(e).__name__}: {e}") from e

    def _run_increment(self) -> Optional[IncrementResult]:
        """
        One epoch of training plus snapshot publication.

        Nothing is committed unless fit and capture both succeed.
        """
        with self._model_lock:
            model = self._model
            if model is None or not self.can_train:
                return None
            x_train, y_train, x_test, y_test = self._training_arrays()

            start_time = time.time()
            try:
                fit = model.fit(
                    x_train, y_train,
                    batch_size=self.batch_size,
                    validation_inputs=x_test,
                    validation_labels=y_test,
                    epochs=1
                )
            except PlaygroundError:
                raise
            except Exception as e:
                raise FitError(f"fit() failed: {type(e).__name__}: {e}") from e

            if not fit.is_finite():
                raise NumericDivergenceError(
                    f"Non-finite metrics at epoch {self._epoch + 1}: "
                    f"loss={fit.loss}, val_loss={fit.val_loss}"
                )

            epoch = self._epoch + 1
            snapshot = self._capture(model, epoch=epoch)

            with self._lock:
                self._history.add(fit)
                self._epoch = epoch
                self._snapshot = snapshot

        duration = time.time() - start_time
        if epoch == 1 or epoch % self.config.LOG_EVERY == 0:
            log_epoch_metrics(epoch, fit.loss, fit.val_loss, fit.accuracy, fit.val_accuracy, duration)

        self._notify(self._on_snapshot_callbacks, snapshot)
        return IncrementResult(
            epoch=epoch,
            train_loss=fit.loss,
            test_loss=fit.val_loss,
            train_accuracy=fit.accuracy,
            test_accuracy=fit.val_accuracy,
            duration=duration
        )

    def _record_failure(self, error: PlaygroundError) -> None:
        kind = error.kind.value if error.kind else 'unknown'
        _logger.error(f"Training halted ({kind}): {error}")
        with self._lock:
            self._last_failure = error
        self._notify(self._on_failure_callbacks, error)
