"""
Web Module
==========

Flask-based web dashboard for driving a playground session remotely.

Components:
    server.py    - Flask + SocketIO server and the playground publisher
"""

from .server import WebDashboard, PlaygroundPublisher

__all__ = ['WebDashboard', 'PlaygroundPublisher']
