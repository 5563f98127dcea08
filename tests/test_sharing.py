"""
Tests for share strings.
"""

import base64
import json

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tensor_canvas.ai.errors import ShareStringError
from tensor_canvas.app.sharing import decode_share_string, encode_share_string
from tensor_canvas.app.state import PlaygroundSettings


def _encode(payload):
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


class TestShareStrings:
    """Test encoding and decoding settings."""

    def test_round_trip(self):
        """Decoding an encoded string restores the settings."""
        settings = PlaygroundSettings(
            dataset='spiral', sample_count=300, noise=0.25, train_fraction=0.6,
            seed=42, hidden_layers=(8, 4, 2), activation='relu',
            learning_rate=0.1, batch_size=20, regularization=0.001, dropout_rate=0.2
        )
        restored = decode_share_string(encode_share_string(settings), PlaygroundSettings())
        assert restored.to_dict() == settings.to_dict()

    def test_short_keys(self):
        """The payload uses the compact key names."""
        payload = json.loads(base64.urlsafe_b64decode(encode_share_string(PlaygroundSettings())))
        assert set(payload) == {'dt', 'n', 'ts', 'sc', 'hl', 'a', 'lr', 'bs', 'r', 'dr', 'sd'}

    def test_missing_keys_use_defaults(self):
        """Keys absent from the string keep their default values."""
        defaults = PlaygroundSettings(learning_rate=0.3)
        restored = decode_share_string(_encode({'dt': 'xor'}), defaults)
        assert restored.dataset == 'xor'
        assert restored.learning_rate == 0.3

    def test_unknown_keys_ignored(self):
        """Extra keys do not break decoding."""
        restored = decode_share_string(_encode({'a': 'relu', 'zz': 1}), PlaygroundSettings())
        assert restored.activation == 'relu'

    @pytest.mark.parametrize('text', ['not base64 !!', _encode([1, 2]), 'aGVsbG8='])
    def test_malformed(self, text):
        """Garbage raises ShareStringError."""
        with pytest.raises(ShareStringError):
            decode_share_string(text, PlaygroundSettings())

    def test_bad_value_type(self):
        """Values of the wrong type raise ShareStringError."""
        with pytest.raises(ShareStringError):
            decode_share_string(_encode({'bs': 'many'}), PlaygroundSettings())
