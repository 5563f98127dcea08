"""
App Module
==========

Session state and the commands that mutate it.

Classes:
    Playground         - One interactive session (settings, dataset, controller)
    PlaygroundSettings - User-editable settings
"""

from .state import Playground, PlaygroundSettings
from .sharing import encode_share_string, decode_share_string

__all__ = ['Playground', 'PlaygroundSettings', 'encode_share_string', 'decode_share_string']
