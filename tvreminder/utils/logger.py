import logging
import os
from pathlib import Path

LOGS_DIR = Path(os.getenv("LOG_DIR", "logs"))

NOISY_LOGGERS = ("apscheduler", "httpx", "httpcore", "aiohttp.access")


class LineRotatingFileHandler(logging.FileHandler):
    """File handler that rotates after a number of lines instead of bytes."""

    def __init__(self, filename, max_lines=1000, backup_count=5, encoding="utf-8", delay=False):
        super().__init__(filename, 'a', encoding, delay)
        self.max_lines = max_lines
        self.backup_count = backup_count
        self.line_count = self._count_lines()

    def _count_lines(self):
        try:
            with open(self.baseFilename, 'r', encoding=self.encoding) as f:
                return sum(1 for _ in f)
        except OSError:
            return 0

    def emit(self, record):
        super().emit(record)
        self.line_count += 1
        if self.line_count >= self.max_lines:
            self.do_rollover()

    def do_rollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None

        base = Path(self.baseFilename)
        for i in range(self.backup_count - 1, 0, -1):
            src = base.with_name(f"{base.name}.{i}")
            if src.exists():
                src.replace(base.with_name(f"{base.name}.{i + 1}"))
        if base.exists():
            base.replace(base.with_name(f"{base.name}.1"))

        self.line_count = 0
        if not self.delay:
            self.stream = self._open()


_logger = None
_handlers = []


def setup_logging(log_level: str = "INFO", log_to_file: bool = True):
    """Setup logging to console and (optionally) a line-rotated file"""
    global _logger, _handlers

    _logger = logging.getLogger()
    _logger.setLevel(log_level)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    _logger.addHandler(console_handler)

    log_file = None
    if log_to_file:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOGS_DIR / "tvreminder.log"
        file_handler = LineRotatingFileHandler(log_file, max_lines=1000, backup_count=5)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)

    _handlers = list(_logger.handlers)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logger.info(f"✓ Logging initialized - Level: {log_level}, File: {log_file}")


def change_log_level_runtime(new_level: str) -> bool:
    """Change the log level of the root logger and its handlers"""
    if not _logger:
        return False

    try:
        new_level = new_level.upper()
        _logger.setLevel(new_level)
        for handler in _handlers:
            handler.setLevel(new_level)
        logging.getLogger(__name__).info(f"Log level changed to {new_level}")
        return True
    except (ValueError, TypeError) as e:
        logging.getLogger(__name__).error(f"Failed to change log level: {e}")
        return False
