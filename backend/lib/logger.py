"""
Logging Utility for the Monitoring Backend

Structured, color-coded console logging:
- Icons per component (monitor, transcript, report, alert)
- Pretty printing for snapshot/report dictionaries
- Section separators around session lifecycle events
"""

import json
import logging
import sys
from datetime import datetime
from pprint import pformat
from typing import Any, Dict, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    SECTION = '\033[94m'    # Bright Blue
    SUBSECTION = '\033[96m' # Bright Cyan

    KEY = '\033[93m'        # Bright Yellow
    VALUE = '\033[92m'      # Bright Green
    TIMESTAMP = '\033[90m'  # Dark Gray


LEVEL_COLORS = {
    'DEBUG': Colors.DEBUG,
    'INFO': Colors.INFO,
    'WARNING': Colors.WARNING,
    'ERROR': Colors.ERROR,
    'CRITICAL': Colors.CRITICAL,
}


class ColoredFormatter(logging.Formatter):
    """Formatter with colors, component icons and JSON pretty printing."""

    LEVEL_ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    # Keyed by the last component of the logger name
    COMPONENT_ICONS = {
        'main': '🏫',
        'teacher_monitor': '🎙️',
        'transcript_source': '📝',
        'report_store': '💾',
        'topic_vocabulary': '📚',
        'auth': '🔐',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{Colors.RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.split('.')[-1]
        icon = self.COMPONENT_ICONS.get(component, self.LEVEL_ICONS.get(record.levelname, '•'))
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        message = record.getMessage()
        stripped = message.strip()
        if stripped.startswith('{') or stripped.startswith('['):
            try:
                message = f"\n{pformat(json.loads(stripped), indent=2, width=100)}"
            except (json.JSONDecodeError, ValueError):
                pass

        formatted = (
            f"{self._paint(f'[{timestamp}]', Colors.TIMESTAMP)} "
            f"{icon} {self._paint(f'{record.levelname:8s}', LEVEL_COLORS.get(record.levelname, Colors.RESET))} "
            f"{self._paint(record.name, Colors.BOLD)} "
            f"| {message}"
        )

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class StructuredLogger:
    """Logger wrapper with section grouping and dictionary pretty printing."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)
        self._section_stack = []

    def _format_data(self, data: Any, indent: int = 2) -> str:
        if isinstance(data, dict):
            lines = [f"{' ' * indent}{key}: {self._format_data(value, indent + 2)}" for key, value in data.items()]
            return "{\n" + "\n".join(lines) + f"\n{' ' * (indent - 2)}}}"
        if isinstance(data, list):
            shown = data[:3] if len(data) > 5 else data
            items = ",\n".join(f"{' ' * indent}{self._format_data(item, indent + 2)}" for item in shown)
            more = f"\n{' ' * indent}... ({len(data)} items total)" if len(data) > 5 else ""
            return f"[\n{items}{more}\n{' ' * (indent - 2)}]"
        return str(data)

    def _print_block(self, title: str, separator: str, color: str, data: Optional[Dict[str, Any]]):
        tty = sys.stdout.isatty()
        paint = (lambda text: f"{color}{text}{Colors.RESET}") if tty else (lambda text: text)
        print(f"\n{paint(separator)}")
        print(paint(title))
        if data:
            print(paint(self._format_data(data)))
        print(f"{paint(separator)}\n")

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        """Start a new log section."""
        self._section_stack.append(title)
        self._print_block(f"📋 {title.upper()}", "=" * 80, Colors.SECTION, data)

    def subsection(self, title: str, data: Optional[Dict[str, Any]] = None):
        """Start a subsection within current section."""
        self._print_block(f"  → {title}", "-" * 60, Colors.SUBSECTION, data)

    def end_section(self):
        if self._section_stack:
            self._section_stack.pop()

    def _log(self, level: int, message: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        if data:
            message = f"{message}\n{self._format_data(data)}"
        self.logger.log(level, message, **kwargs)

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, data)

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, data)

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, data)

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log error message with exception and optional data."""
        if error:
            message = f"{message} Error: {type(error).__name__}: {error}"
        self._log(logging.ERROR, message, data, exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, f"✅ {message}", data)

    def request(self, method: str, path: str, user_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Log incoming request."""
        request_data = {
            "method": method,
            "path": path,
            "user_id": user_id[:20] + "..." if user_id and len(user_id) > 20 else user_id,
        }
        if data:
            request_data.update(data)
        self._log(logging.INFO, f"📥 REQUEST: {method} {path}", request_data)


def setup_logging(level: int = logging.INFO, use_colors: bool = True):
    """Install the colored console handler on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress noisy loggers
    for noisy in ('asyncio', 'httpx', 'httpcore', 'urllib3', 'hpack'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, logging.getLogger(name))
