#!/usr/bin/env python3
"""
Tensor Canvas - Main Entry Point
================================

Train a small classifier on a 2-D toy dataset and watch it learn.

Usage:
    # Train headless for 200 epochs and log metrics
    python main.py --headless --epochs 200

    # Serve the interactive dashboard (REST + WebSocket)
    python main.py --web --port 5000

    # Custom dataset and network
    python main.py --headless --dataset spiral --noise 0.2 --layers 8 8 4 --activation relu

    # Reproduce a shared session
    python main.py --web --share eyJhIjoidGFuaCIsLi4ufQ==
"""

import argparse
import signal
import sys
import os
import threading
import time
from typing import List, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import Config
from tensor_canvas.ai.datasets import DatasetShape
from tensor_canvas.ai.errors import PlaygroundError, ShareStringError
from tensor_canvas.ai.network import ACTIVATIONS
from tensor_canvas.app.state import Playground, PlaygroundSettings
from tensor_canvas.utils.logger import LogLevel, get_logger, get_log_path, setup_logging

_logger = get_logger(__name__)


class HeadlessRunner:
    """
    Runs a fixed number of training increments without any UI.

    Steps synchronously so every epoch is logged and the run ends exactly at
    the requested epoch, or earlier if training halts.
    """

    def __init__(self, playground: Playground, epochs: int):
        self.playground = playground
        self.epochs = epochs

    def run(self) -> int:
        """
        Train and report.

        Returns:
            Process exit code (0 on success, 1 if training halted)
        """
        controller = self.playground.controller
        if not controller.can_train:
            _logger.error("Dataset split is empty, nothing to train on")
            return 1

        settings = self.playground.settings
        print(f"🧠 Training {controller.model.describe()} on '{settings.dataset}' for {self.epochs} epochs")

        start_time = time.time()
        for _ in range(self.epochs):
            try:
                result = self.playground.step()
            except PlaygroundError as e:
                print(f"❌ Training halted at epoch {controller.epoch}: {e}")
                return 1
            if result is None:
                break

        elapsed = time.time() - start_time
        latest = self.playground.status()['latest'] or {}
        print("=" * 60)
        print(f"Finished {controller.epoch} epochs in {elapsed:.1f}s")
        if latest:
            print(f"   Train loss: {latest['train_loss']:.4f}  Test loss: {latest['test_loss']:.4f}")
            print(f"   Train acc:  {latest['train_accuracy']:.3f}  Test acc:  {latest['test_accuracy']:.3f}")
        print(f"   Share: {self.playground.share_string()}")
        print("=" * 60)
        return 0


def run_web_mode(playground: Playground, config: Config, args: argparse.Namespace) -> int:
    """Serve the dashboard until interrupted."""
    from tensor_canvas.web.server import WebDashboard

    dashboard = WebDashboard(playground, config, host=args.host, port=args.port)
    dashboard.start()
    dashboard.log("Session ready", level="success")

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
    try:
        while not stop_event.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("\n\n⛔ Stopped by user")
    finally:
        dashboard.stop()
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    shapes = [s.value for s in DatasetShape]

    parser = argparse.ArgumentParser(
        description="Tensor Canvas - interactive neural network playground",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
EXAMPLES
========
    python main.py --headless --epochs 200
    python main.py --web --port 5001
    python main.py --headless --dataset xor --layers 4 4 --lr 0.1

DATASETS: {', '.join(shapes)}
ACTIVATIONS: {', '.join(ACTIVATIONS)}
        """
    )

    # Mode selection
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        '--headless', action='store_true',
        help='Train for --epochs increments and exit'
    )
    mode_group.add_argument(
        '--web', action='store_true',
        help='Serve the web dashboard (default mode)'
    )
    parser.add_argument(
        '--epochs', type=int, default=100,
        help='Epochs to train in headless mode (default: 100)'
    )
    parser.add_argument(
        '--host', type=str, default=None,
        help='Web dashboard host (default from config)'
    )
    parser.add_argument(
        '--port', type=int, default=None,
        help='Web dashboard port (default from config)'
    )

    # Dataset options
    parser.add_argument('--dataset', type=str, choices=shapes, default=None, help='Dataset shape')
    parser.add_argument('--samples', type=int, default=None, help='Total number of points')
    parser.add_argument('--noise', type=float, default=None, help='Point jitter')
    parser.add_argument('--split', type=float, default=None, help='Train fraction of the points')

    # Model options
    parser.add_argument('--layers', type=int, nargs='+', default=None, help='Hidden layer widths')
    parser.add_argument('--activation', type=str, choices=ACTIVATIONS, default=None, help='Hidden activation')
    parser.add_argument('--lr', type=float, default=None, help='Learning rate')
    parser.add_argument('--batch-size', type=int, default=None, help='Mini-batch size')
    parser.add_argument('--l2', type=float, default=None, help='L2 regularization strength')
    parser.add_argument('--dropout', type=float, default=None, help='Dropout rate')

    # Session options
    parser.add_argument('--seed', type=int, default=None, help='Seed for data, weights and batch order')
    parser.add_argument('--share', type=str, default=None, help='Start from a share string')
    parser.add_argument(
        '--log-level', type=str, default='INFO',
        choices=[level.name for level in LogLevel],
        help='Console log level (default: INFO)'
    )
    parser.add_argument('--log-file', action='store_true', help='Also write logs to a timestamped file')

    return parser.parse_args(argv)


def build_settings(config: Config, args: argparse.Namespace) -> PlaygroundSettings:
    """Config defaults, then share string, then explicit flags."""
    settings = PlaygroundSettings.from_config(config)
    if args.share:
        from tensor_canvas.app.sharing import decode_share_string
        settings = decode_share_string(args.share, settings)

    overrides = {
        'dataset': args.dataset,
        'sample_count': args.samples,
        'noise': args.noise,
        'train_fraction': args.split,
        'hidden_layers': args.layers,
        'activation': args.activation,
        'learning_rate': args.lr,
        'batch_size': args.batch_size,
        'regularization': args.l2,
        'dropout_rate': args.dropout,
        'seed': args.seed,
    }
    return PlaygroundSettings(**{
        **settings.to_dict(),
        **{k: v for k, v in overrides.items() if v is not None}
    })


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = Config()

    setup_logging(
        log_dir=config.LOG_DIR,
        level=LogLevel.from_name(args.log_level),
        file_output=args.log_file,
        force=True
    )
    if args.log_file:
        print(f"📝 Logging to {get_log_path()}")

    if args.epochs <= 0:
        _logger.error(f"--epochs must be positive, got {args.epochs}")
        return 2

    try:
        settings = build_settings(config, args)
        playground = Playground(settings, config)
    except ShareStringError as e:
        _logger.error(f"Invalid --share string: {e}")
        return 2
    except ValueError as e:
        _logger.error(f"Invalid settings: {e}")
        return 2

    try:
        if args.headless:
            return HeadlessRunner(playground, args.epochs).run()
        return run_web_mode(playground, config, args)
    except KeyboardInterrupt:
        print("\n\n⛔ Training interrupted by user")
        return 130
    finally:
        playground.shutdown()


if __name__ == "__main__":
    sys.exit(main())
