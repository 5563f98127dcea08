"""
Web Dashboard Server
====================

Flask + SocketIO server that presents a Playground session.

Features:
    - REST API for status, metrics history, snapshots and settings
    - Training controls (start, pause, step, reset, randomize)
    - Share strings for exporting / importing settings
    - WebSocket events for live snapshot and state streaming
    - Console log ring buffer mirrored to connected clients

Usage:
    >>> from tensor_canvas.app import Playground
    >>> from tensor_canvas.web import WebDashboard
    >>> dashboard = WebDashboard(Playground(), port=5000)
    >>> dashboard.start()
    >>> # ... session runs ...
    >>> dashboard.stop()
"""

import base64
import logging
import os
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

import numpy as np
from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit

from config import Config
from ..ai.errors import PlaygroundError, ShareStringError
from ..ai.trainer import ControllerState
from ..app.state import Playground
from ..utils.logger import get_logger

# Module logger
_logger = get_logger(__name__)

CONTROL_ACTIONS = ('start', 'pause', 'step', 'reset', 'randomize')


def _make_json_safe(obj: Any) -> Any:
    """
    Convert NumPy types to native Python types for JSON serialization.

    Non-finite floats become None so a diverged metric never produces
    invalid JSON.
    """
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        value = float(obj)
        return value if np.isfinite(value) else None
    elif isinstance(obj, np.ndarray):
        return _make_json_safe(obj.tolist())
    elif isinstance(obj, dict):
        return {k: _make_json_safe(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_make_json_safe(item) for item in obj]
    return obj


@dataclass
class LogMessage:
    """A single console entry."""
    timestamp: str
    level: str
    message: str
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'level': self.level,
            'message': self.message,
            'data': self.data
        }


class PlaygroundPublisher:
    """
    Bridge between a Playground and connected clients.

    Subscribes to the training controller and the session, keeps a console
    log ring buffer and fans events out to registered broadcasters.
    """

    def __init__(self, playground: Playground, history_length: int = 500):
        self.playground = playground
        self.console_logs: Deque[LogMessage] = deque(maxlen=history_length)

        # Thread safety for callbacks
        self._callback_lock = threading.Lock()
        self._on_log_callbacks: List[Callable[[LogMessage], None]] = []
        self._on_event_callbacks: List[Callable[[str, Dict[str, Any]], None]] = []

        controller = playground.controller
        controller.on_snapshot(self._handle_snapshot)
        controller.on_state_change(self._handle_state)
        controller.on_failure(self._handle_failure)
        playground.subscribe('dataset_changed', self._handle_dataset)
        playground.subscribe('model_rebuilt', self._handle_model)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        return _make_json_safe(self.playground.status())

    def get_metrics(self) -> Dict[str, Any]:
        controller = self.playground.controller
        return _make_json_safe({
            'epoch': controller.epoch,
            'history': controller.get_history(),
        })

    def get_snapshot(self, rgb: bool = False) -> Optional[Dict[str, Any]]:
        snapshot = self.playground.controller.snapshot
        if snapshot is None:
            return None
        return _make_json_safe(snapshot.to_dict(rgb=rgb))

    def get_console_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get recent console logs."""
        logs = list(self.console_logs)[-limit:]
        return [log.to_dict() for log in logs]

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def on_log(self, callback: Callable[[LogMessage], None]) -> None:
        """Register a callback for console messages."""
        with self._callback_lock:
            self._on_log_callbacks.append(callback)

    def on_event(self, callback: Callable[[str, Dict[str, Any]], None]) -> None:
        """Register a callback receiving (event_name, payload) pairs."""
        with self._callback_lock:
            self._on_event_callbacks.append(callback)

    def log(self, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
        """Add a message to the console."""
        entry = LogMessage(
            timestamp=datetime.now().strftime("%H:%M:%S.%f")[:12],
            level=level,
            message=message,
            data=data
        )
        self.console_logs.append(entry)

        with self._callback_lock:
            callbacks = self._on_log_callbacks.copy()
        for callback in callbacks:
            callback(entry)

    def _publish(self, event: str, payload: Dict[str, Any]) -> None:
        with self._callback_lock:
            callbacks = self._on_event_callbacks.copy()
        for callback in callbacks:
            callback(event, payload)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _handle_snapshot(self, snapshot) -> None:
        self._publish('snapshot_update', _make_json_safe(snapshot.to_dict()))
        if snapshot.epoch and snapshot.epoch % self.playground.config.LOG_EVERY == 0:
            latest = self.playground.status()['latest'] or {}
            self.log(f"Epoch {snapshot.epoch}", level="metric", data=_make_json_safe(latest))

    def _handle_state(self, state: ControllerState) -> None:
        self._publish('state_update', self.get_status())
        if state in (ControllerState.RUNNING, ControllerState.IDLE):
            self.log(f"Training {state.value}", level="action")

    def _handle_failure(self, error: PlaygroundError) -> None:
        kind = error.kind.value if error.kind else 'unknown'
        self._publish('training_failure', {'kind': kind, 'message': str(error)})
        self.log(f"Training halted: {error}", level="error", data={'kind': kind})

    def _handle_dataset(self, split) -> None:
        self.log(
            f"Dataset regenerated: {len(split.train)} train / {len(split.test)} test",
            level="info"
        )

    def _handle_model(self, model) -> None:
        self.log(f"Model rebuilt: {model.describe()}", level="info")


class WebDashboard:
    """
    Flask web dashboard for a playground session.

    Runs a web server in a background thread. Routes and socket events are
    thin wrappers around Playground commands; PlaygroundError becomes a JSON
    error response instead of crashing the server.

    Example:
        >>> dashboard = WebDashboard(playground, port=5000)
        >>> dashboard.start()
        >>> dashboard.log("Session ready", level="success")
        >>> dashboard.stop()
    """

    def __init__(
        self,
        playground: Playground,
        config: Optional[Config] = None,
        host: Optional[str] = None,
        port: Optional[int] = None
    ):
        """
        Initialize the web dashboard.

        Args:
            playground: Session to present and control
            config: Configuration object
            host: Host address (0.0.0.0 for all interfaces)
            port: Port to run the server on
        """
        self.config = config or playground.config
        self.playground = playground
        self.host = host or self.config.WEB_HOST
        self.port = port or self.config.WEB_PORT

        self.publisher = PlaygroundPublisher(playground, history_length=self.config.WEB_LOG_HISTORY)

        self.app = Flask(__name__)
        # Generate random secret key (not hardcoded)
        self.app.config['SECRET_KEY'] = base64.b64encode(os.urandom(24)).decode('utf-8')

        self.socketio = SocketIO(self.app, cors_allowed_origins="*", async_mode='threading')

        self._register_routes()
        self._register_socket_events()

        self._server_thread: Optional[threading.Thread] = None
        self._running = False

    # -------------------------------------------------------------------------
    # Commands shared by REST and socket handlers
    # -------------------------------------------------------------------------

    def handle_control(self, action: Optional[str]) -> Tuple[Dict[str, Any], int]:
        """Run a control action and return (payload, http_status)."""
        if action not in CONTROL_ACTIONS:
            return {'error': 'unknown_action', 'message': f"Unknown action {action!r}"}, 400

        playground = self.playground
        try:
            if action == 'start':
                accepted = playground.start()
            elif action == 'pause':
                accepted = playground.pause()
            elif action == 'step':
                accepted = playground.step() is not None
            elif action == 'reset':
                playground.reset()
                accepted = True
            else:
                playground.randomize()
                accepted = True
        except PlaygroundError as e:
            kind = e.kind.value if e.kind else 'unknown'
            return {'error': kind, 'message': str(e)}, 409

        self.publisher.log(f"Control: {action}", level="action")
        return {'action': action, 'accepted': accepted, 'status': self.publisher.get_status()}, 200

    def handle_config_change(self, changes: Any) -> Tuple[Dict[str, Any], int]:
        """Apply settings changes and return (payload, http_status)."""
        if not isinstance(changes, dict):
            return {'error': 'invalid_settings', 'message': 'Expected a JSON object'}, 400
        try:
            settings = self.playground.apply_settings(changes)
        except PlaygroundError as e:
            kind = e.kind.value if e.kind else 'unknown'
            return {'error': kind, 'message': str(e)}, 409
        except (TypeError, ValueError) as e:
            return {'error': 'invalid_settings', 'message': str(e)}, 400

        self.publisher.log("Settings updated", level="action", data=_make_json_safe(dict(changes)))
        return {'settings': settings.to_dict()}, 200

    def handle_share_import(self, text: Any) -> Tuple[Dict[str, Any], int]:
        if not isinstance(text, str) or not text:
            return {'error': 'invalid_share_string', 'message': 'Missing share string'}, 400
        try:
            settings = self.playground.load_share_string(text)
        except ShareStringError as e:
            _logger.warning(f"Rejected share string: {e}")
            return {'error': 'invalid_share_string', 'message': str(e)}, 400
        except (TypeError, ValueError) as e:
            return {'error': 'invalid_settings', 'message': str(e)}, 400
        self.publisher.log("Settings loaded from share string", level="action")
        return {'settings': settings.to_dict()}, 200

    # -------------------------------------------------------------------------
    # Flask / SocketIO wiring
    # -------------------------------------------------------------------------

    def _register_routes(self) -> None:
        """Register Flask routes."""

        @self.app.route('/')
        def index():
            return jsonify({
                'name': 'tensor-canvas',
                'routes': sorted(str(rule) for rule in self.app.url_map.iter_rules() if str(rule).startswith('/api')),
            })

        @self.app.route('/api/status')
        def api_status():
            return jsonify(self.publisher.get_status())

        @self.app.route('/api/metrics')
        def api_metrics():
            return jsonify(self.publisher.get_metrics())

        @self.app.route('/api/snapshot')
        def api_snapshot():
            rgb = request.args.get('rgb', '0').lower() in ('1', 'true', 'yes')
            snapshot = self.publisher.get_snapshot(rgb=rgb)
            if snapshot is None:
                return jsonify({'error': 'no_snapshot', 'message': 'No model built yet'}), 404
            return jsonify(snapshot)

        @self.app.route('/api/config', methods=['GET'])
        def api_config():
            cfg = self.config
            return jsonify({
                'settings': self.playground.settings.to_dict(),
                'limits': {
                    'max_hidden_layers': cfg.MAX_HIDDEN_LAYERS,
                    'max_layer_width': cfg.MAX_LAYER_WIDTH,
                },
                'grid': {
                    'extent': cfg.GRID_RANGE,
                    'boundary_resolution': cfg.BOUNDARY_RESOLUTION,
                    'activation_resolution': cfg.ACTIVATION_RESOLUTION,
                },
                'device': str(cfg.DEVICE),
            })

        @self.app.route('/api/config', methods=['POST'])
        def api_update_config():
            payload, status = self.handle_config_change(request.get_json(silent=True))
            return jsonify(payload), status

        @self.app.route('/api/control', methods=['POST'])
        def api_control():
            data = request.get_json(silent=True) or {}
            payload, status = self.handle_control(data.get('action'))
            return jsonify(payload), status

        @self.app.route('/api/share', methods=['GET'])
        def api_share():
            return jsonify({'share': self.playground.share_string()})

        @self.app.route('/api/share', methods=['POST'])
        def api_load_share():
            data = request.get_json(silent=True) or {}
            payload, status = self.handle_share_import(data.get('share'))
            return jsonify(payload), status

        @self.app.route('/api/logs')
        def api_logs():
            limit = request.args.get('limit', 100, type=int)
            return jsonify({'logs': self.publisher.get_console_logs(limit)})

    def _register_socket_events(self) -> None:
        """Register SocketIO events."""

        @self.socketio.on('connect')
        def handle_connect():
            emit('state_update', self.publisher.get_status())
            snapshot = self.publisher.get_snapshot()
            if snapshot is not None:
                emit('snapshot_update', snapshot)
            emit('console_logs', {'logs': self.publisher.get_console_logs(100)})

        @self.socketio.on('control')
        def handle_control(data):
            action = (data or {}).get('action')
            payload, status = self.handle_control(action)
            if status != 200:
                emit('control_error', payload)

        @self.socketio.on('config_change')
        def handle_config_change(data):
            payload, status = self.handle_config_change(data)
            if status == 200:
                emit('config_update', payload)
            else:
                emit('config_error', payload)

        @self.socketio.on('clear_logs')
        def handle_clear_logs():
            self.publisher.console_logs.clear()
            emit('console_logs', {'logs': []})

        def broadcast_event(event: str, payload: Dict[str, Any]):
            if self.socketio and self._running:
                self.socketio.emit(event, payload)

        def broadcast_log(log_entry: LogMessage):
            if self.socketio and self._running:
                self.socketio.emit('console_log', log_entry.to_dict())

        self.publisher.on_event(broadcast_event)
        self.publisher.on_log(broadcast_log)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the web server in a background thread."""
        if self._running:
            return
        self._running = True

        # Keep request logging out of the console
        logging.getLogger('werkzeug').setLevel(logging.ERROR)
        logging.getLogger('engineio').setLevel(logging.ERROR)
        logging.getLogger('socketio').setLevel(logging.ERROR)

        def run_server():
            _logger.info(f"Web Dashboard running at http://localhost:{self.port}")
            try:
                self.socketio.run(
                    self.app,
                    host=self.host,
                    port=self.port,
                    debug=False,
                    use_reloader=False,
                    log_output=False,
                    allow_unsafe_werkzeug=True
                )
            except (OSError, RuntimeError) as e:
                _logger.error(f"Failed to start web dashboard on port {self.port}: {type(e).__name__}: {e}")
                _logger.error(f"Port {self.port} may already be in use. Try a different port with --port")

        self._server_thread = threading.Thread(target=run_server, name='canvas-web', daemon=True)
        self._server_thread.start()

    def stop(self) -> None:
        """Stop the web server and release the port."""
        self._running = False
        try:
            self.socketio.stop()
        except RuntimeError as e:
            # Raised when called outside a request context; the daemon thread dies with the process
            _logger.debug(f"Server stop (best effort): {e}")

    def log(self, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
        """
        Add a log message to the console.

        Args:
            message: Log message text
            level: One of 'debug', 'info', 'success', 'warning', 'error', 'metric', 'action'
            data: Optional dictionary of additional data
        """
        self.publisher.log(message, level, data)
