# vpq/utils/logging_setup.py
import logging
import logging.handlers
from pathlib import Path

from PySide6.QtCore import QObject, Signal

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "[%(asctime)s] %(message)s"

_MAX_BYTES = 10 * 1024 * 1024


def setup_logging(data_dir: str | Path, level: str = "INFO") -> Path:
    """Configure the `vpq` logger tree: rotating file under <data_dir>/logs plus stderr."""
    log_dir = Path(data_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "main.log"

    root = logging.getLogger("vpq")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fh = logging.handlers.RotatingFileHandler(log_path, maxBytes=_MAX_BYTES, backupCount=5, encoding="utf-8")
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(fh)

    sh = logging.StreamHandler()
    sh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(sh)

    root.info("=" * 60)
    root.info("vpq starting, log file: %s", log_path)
    return log_path


class _Relay(QObject):
    line = Signal(str)


class QtLogHandler(logging.Handler):
    """Forwards log records to the GUI console as formatted lines.

    Records may come from worker threads; the signal hop makes the console
    append happen on the GUI thread.
    """

    def __init__(self, level=logging.INFO):
        super().__init__(level)
        self.relay = _Relay()
        self.setFormatter(logging.Formatter(CONSOLE_FORMAT, "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.relay.line.emit(self.format(record))
        except RuntimeError:
            # Relay already deleted during shutdown
            pass
