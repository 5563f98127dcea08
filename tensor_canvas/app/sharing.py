"""
Share strings: compact, URL-safe encodings of playground settings.

A share string is base64 of a compact JSON object with short keys, so a
session's dataset and model configuration can be pasted into another session.
"""

import base64
import binascii
import json
from dataclasses import replace
from typing import Any, Dict

from ..ai.errors import ShareStringError
from ..utils.logger import get_logger

_logger = get_logger(__name__)

# Settings attribute -> short key
_KEYS = {
    'dataset': 'dt',
    'sample_count': 'n',
    'train_fraction': 'ts',
    'noise': 'sc',
    'hidden_layers': 'hl',
    'activation': 'a',
    'learning_rate': 'lr',
    'batch_size': 'bs',
    'regularization': 'r',
    'dropout_rate': 'dr',
    'seed': 'sd',
}

_CASTS = {
    'dataset': str,
    'sample_count': int,
    'train_fraction': float,
    'noise': float,
    'hidden_layers': lambda v: [int(w) for w in v],
    'activation': str,
    'learning_rate': float,
    'batch_size': int,
    'regularization': float,
    'dropout_rate': float,
    'seed': lambda v: None if v is None else int(v),
}


def encode_share_string(settings) -> str:
    """Encode PlaygroundSettings as a share string."""
    payload = {key: getattr(settings, attr) for attr, key in _KEYS.items()}
    payload['hl'] = list(payload['hl'])
    text = json.dumps(payload, separators=(',', ':'), sort_keys=True)
    return base64.urlsafe_b64encode(text.encode('utf-8')).decode('ascii')


def decode_share_string(text: str, defaults):
    """
    Decode a share string on top of default settings.

    Keys missing from the string keep their default value.

    Args:
        text: Share string produced by encode_share_string()
        defaults: PlaygroundSettings supplying missing values

    Returns:
        New PlaygroundSettings

    Raises:
        ShareStringError: If the string is not valid base64 JSON or a value
            has the wrong type
    """
    try:
        raw = base64.urlsafe_b64decode(text.strip().encode('ascii'))
        payload = json.loads(raw.decode('utf-8'))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise ShareStringError(f"Malformed share string: {e}") from e

    if not isinstance(payload, dict):
        raise ShareStringError("Share string does not contain an object")

    changes: Dict[str, Any] = {}
    for attr, key in _KEYS.items():
        if key not in payload:
            continue
        try:
            changes[attr] = _CASTS[attr](payload[key])
        except (TypeError, ValueError) as e:
            raise ShareStringError(f"Invalid value for '{key}': {payload[key]!r}") from e

    unknown = set(payload) - set(_KEYS.values())
    if unknown:
        _logger.debug(f"Ignoring unknown share keys: {sorted(unknown)}")

    return replace(defaults, **changes)
