"""
Workers - Run slow controller calls off the interactive thread.

Key derivation with Argon2id takes around a second at default parameters,
so unlock, password setup and password change go through a worker when
called from an event loop.
"""

import logging
from typing import Callable

from PyQt6.QtCore import QThread, pyqtSignal

from wallet import WalletError

logger = logging.getLogger(__name__)


class TransitionWorker(QThread):
    """
    Background thread for one controller call.

    Usage:
        worker = TransitionWorker(controller.unlock, password)
        worker.completed.connect(on_result)
        worker.failed.connect(on_error)
        worker.start()
    """

    completed = pyqtSignal(object)  # Return value of the call
    failed = pyqtSignal(str)  # Error message

    def __init__(self, fn: Callable, *args, **kwargs):
        super().__init__()
        self._fn = fn
        self._args = args
        self._kwargs = kwargs

    def run(self):
        try:
            result = self._fn(*self._args, **self._kwargs)
        except WalletError as e:
            logger.warning(f"Background call failed: {e.code}")
            self.failed.emit(e.message)
            return
        except Exception as e:
            # Message may carry library detail; only the type is logged
            logger.warning(f"Background call error: {e.__class__.__name__}")
            self.failed.emit("Operation failed")
            return
        finally:
            # Arguments may include passwords
            self._args = ()
            self._kwargs = {}
        self.completed.emit(result)
