"""
Tensor Canvas - Source Package
==============================

An interactive neural network playground: train a small classifier on 2-D
toy datasets and watch its decision boundary and neurons evolve.

Modules:
    ai/         - Datasets, classifier model and training controller
    visualizer/ - Grid introspection, color encoding and snapshots
    app/        - Session state, commands and share strings
    web/        - Flask + SocketIO dashboard
    utils/      - Logging
"""

__version__ = "1.0.0"
