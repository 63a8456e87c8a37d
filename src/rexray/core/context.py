"""Operation context.

One object per CLI invocation carrying the settings snapshot, the logger and
a cancellation signal. It replaces process-wide singletons: services receive
it explicitly, tests build their own.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from rexray.core.config import AppSettings
from rexray.core.errors import OperationCancelled
from rexray.core.paths import PathLayout


@dataclass
class OperationContext:
    settings: AppSettings
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("rexray"))
    cancel: threading.Event = field(default_factory=threading.Event)

    @property
    def layout(self) -> PathLayout:
        return PathLayout.from_settings(self.settings)

    def child_logger(self, name: str) -> logging.Logger:
        return self.logger.getChild(name)

    def check_cancelled(self) -> None:
        if self.cancel.is_set():
            raise OperationCancelled("operation cancelled")
