"""
Tests for the web dashboard server.

Tests cover:
- Utility functions
- PlaygroundPublisher console and events
- REST routes driving the playground
- Socket events on connect
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tensor_canvas.app.state import Playground, PlaygroundSettings
from tensor_canvas.web.server import LogMessage, WebDashboard, _make_json_safe
from tests.fakes import ConstantModel


@pytest.fixture
def playground(small_config):
    pg = Playground(PlaygroundSettings.from_config(small_config), small_config)
    yield pg
    pg.shutdown()


@pytest.fixture
def dashboard(playground, small_config):
    return WebDashboard(playground, small_config, port=5999)


@pytest.fixture
def client(dashboard):
    dashboard.app.config['TESTING'] = True
    return dashboard.app.test_client()


class TestMakeJsonSafe:
    """Tests for the _make_json_safe utility function."""

    def test_native_types_unchanged(self):
        """Native Python types should pass through unchanged."""
        assert _make_json_safe(42) == 42
        assert _make_json_safe("hello") == "hello"
        assert _make_json_safe(True) is True
        assert _make_json_safe(None) is None

    def test_numpy_values_converted(self):
        """NumPy scalars and arrays become native types."""
        data = {'a': np.float32(0.5), 'b': np.int64(3), 'c': np.array([1, 2])}
        assert _make_json_safe(data) == {'a': 0.5, 'b': 3, 'c': [1, 2]}
        assert isinstance(_make_json_safe(np.int64(3)), int)

    def test_non_finite_become_none(self):
        """NaN and infinity are not valid JSON."""
        assert _make_json_safe([float('nan'), np.float64('inf'), 1.0]) == [None, None, 1.0]

    def test_tuples_become_lists(self):
        """Tuples serialize as lists."""
        assert _make_json_safe((1, 2)) == [1, 2]


class TestLogMessage:
    """Tests for the LogMessage dataclass."""

    def test_to_dict(self):
        """to_dict should contain every field."""
        msg = LogMessage(timestamp="12:00:00.000", level="info", message="hi", data={'x': 1})
        assert msg.to_dict() == {'timestamp': "12:00:00.000", 'level': "info", 'message': "hi", 'data': {'x': 1}}


class TestPublisher:
    """Tests for the playground publisher."""

    def test_log_ring_buffer(self, dashboard):
        """Console messages are kept up to the configured history."""
        dashboard.log("hello", level="success")
        logs = dashboard.publisher.get_console_logs()
        assert logs[-1]['message'] == "hello"
        assert logs[-1]['level'] == "success"

    def test_events_forwarded(self, dashboard, playground):
        """Controller snapshots are re-published as snapshot_update events."""
        events = []
        dashboard.publisher.on_event(lambda name, payload: events.append((name, payload)))
        playground.step()
        names = [name for name, _ in events]
        assert 'snapshot_update' in names
        snapshot = [payload for name, payload in events if name == 'snapshot_update'][-1]
        assert snapshot['epoch'] == 1

    def test_model_rebuild_logged(self, dashboard, playground):
        """Rebuilding the model adds a console line."""
        playground.set_topology([3])
        messages = [log['message'] for log in dashboard.publisher.get_console_logs()]
        assert any(m.startswith("Model rebuilt") for m in messages)


class TestRoutes:
    """Tests for the REST API."""

    def test_index_lists_routes(self, client):
        """The index lists the API routes."""
        data = client.get('/').get_json()
        assert '/api/status' in data['routes']

    def test_status(self, client):
        """Status reports controller state and settings."""
        data = client.get('/api/status').get_json()
        assert data['state'] == 'idle'
        assert data['epoch'] == 0
        assert data['settings']['hidden_layers'] == [4, 2]

    def test_control_step(self, client):
        """POST step runs one increment."""
        response = client.post('/api/control', json={'action': 'step'})
        assert response.status_code == 200
        assert response.get_json()['status']['epoch'] == 1
        metrics = client.get('/api/metrics').get_json()
        assert len(metrics['history']['train_loss']) == 1

    def test_control_start_pause(self, client, playground):
        """start and pause drive the background loop."""
        assert client.post('/api/control', json={'action': 'start'}).get_json()['accepted']
        assert client.post('/api/control', json={'action': 'pause'}).status_code == 200
        assert playground.controller.wait_until_idle(5)

    def test_control_reset(self, client, playground):
        """reset clears progress."""
        playground.step()
        client.post('/api/control', json={'action': 'reset'})
        assert playground.controller.epoch == 0

    def test_control_unknown(self, client):
        """Unknown actions are a 400."""
        response = client.post('/api/control', json={'action': 'explode'})
        assert response.status_code == 400

    def test_control_failure_is_409(self, client, playground):
        """A training failure becomes a JSON error with its kind."""
        diverging = ConstantModel()
        diverging.next_loss = float('nan')
        playground.controller.rebuild(lambda: diverging)
        response = client.post('/api/control', json={'action': 'step'})
        assert response.status_code == 409
        assert response.get_json()['error'] == 'numeric_divergence'
        status = client.get('/api/status').get_json()
        assert status['last_failure']['kind'] == 'numeric_divergence'

    def test_snapshot(self, client, small_config):
        """The snapshot route returns the current fields."""
        data = client.get('/api/snapshot').get_json()
        assert data['epoch'] == 0
        assert len(data['boundary']['values']) == small_config.BOUNDARY_RESOLUTION ** 2
        assert 'rgb' not in data['boundary']
        rgb = client.get('/api/snapshot?rgb=1').get_json()
        assert 'rgb' in rgb['boundary']

    def test_get_config(self, client, small_config):
        """Config lists limits and grid geometry."""
        data = client.get('/api/config').get_json()
        assert data['limits']['max_layer_width'] == small_config.MAX_LAYER_WIDTH
        assert data['grid']['boundary_resolution'] == small_config.BOUNDARY_RESOLUTION

    def test_post_config(self, client, playground):
        """Posting settings applies them."""
        response = client.post('/api/config', json={'hidden_layers': [5], 'activation': 'relu'})
        assert response.status_code == 200
        assert playground.controller.model.layer_sizes == (2, 5, 1)

    def test_post_config_invalid(self, client):
        """Invalid settings are a 400."""
        assert client.post('/api/config', json={'activation': 'swish'}).status_code == 400
        assert client.post('/api/config', json=[1, 2]).status_code == 400

    def test_share_round_trip(self, client, playground):
        """A share string fetched from GET can be posted back."""
        share = client.get('/api/share').get_json()['share']
        playground.set_topology([2])
        response = client.post('/api/share', json={'share': share})
        assert response.status_code == 200
        assert response.get_json()['settings']['hidden_layers'] == [4, 2]

    def test_share_invalid(self, client):
        """A malformed share string is a 400."""
        response = client.post('/api/share', json={'share': '%%%'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'invalid_share_string'

    def test_logs(self, client, dashboard):
        """Console logs are available over REST."""
        dashboard.log("from test")
        logs = client.get('/api/logs?limit=5').get_json()['logs']
        assert logs[-1]['message'] == "from test"


class TestSocketEvents:
    """Tests for SocketIO events."""

    def test_connect_sends_state_and_snapshot(self, dashboard):
        """Connecting clients receive the current state and snapshot."""
        socket_client = dashboard.socketio.test_client(dashboard.app)
        names = [event['name'] for event in socket_client.get_received()]
        assert 'state_update' in names
        assert 'snapshot_update' in names
        socket_client.disconnect()

    def test_control_event(self, dashboard, playground):
        """The control event mirrors POST /api/control."""
        socket_client = dashboard.socketio.test_client(dashboard.app)
        socket_client.emit('control', {'action': 'step'})
        assert playground.controller.epoch == 1
        socket_client.disconnect()
