"""
ToneMap Logging Configuration

Structured logging for host applications embedding the engine:
- structlog processors routed through the stdlib logging tree
- Rotating files for the main log and errors
- Colored console output for development
- Per-session context (user id, request id) via contextvars
- Helpers for performance and error records
"""

import logging
import logging.handlers
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


class ToneMapLogger:
    """
    Centralized logging configuration for ToneMap.

    The engine itself only ever calls structlog.get_logger(); this class
    decides where those records go.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        log_level: str = "INFO",
        enable_console: bool = True,
        enable_files: bool = True,
        max_file_size: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5
    ):
        """
        Initialize the logging system.

        Args:
            log_dir: Directory to store log files
            log_level: Default log level
            enable_console: Whether to enable console logging
            enable_files: Whether to write rotating log files
            max_file_size: Maximum size per log file before rotation
            backup_count: Number of backup files to keep
        """
        self.log_dir = Path(log_dir)
        self.log_level = getattr(logging, log_level.upper())
        self.enable_console = enable_console
        self.enable_files = enable_files
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        if self.enable_files:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        # Noisy third-party loggers
        self.external_modules = ["aiohttp", "aiohttp.access", "aiohttp.client", "asyncio"]

        self._setup_logging()

    def _setup_logging(self):
        """Configure the complete logging system."""
        logging.getLogger().handlers.clear()

        self._configure_structlog()

        if self.enable_files:
            self._setup_file_handlers()

        if self.enable_console:
            self._setup_console_handler()

        for module in self.external_modules:
            logging.getLogger(module).setLevel(logging.WARNING)

        logging.getLogger().setLevel(self.log_level)

    def _configure_structlog(self):
        """Configure structlog for structured logging."""
        shared_processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        structlog.configure(
            processors=shared_processors + [
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _setup_file_handlers(self):
        """Main log plus an errors-only log."""
        main_handler = self._create_rotating_file_handler("tonemap.log", self.log_level)
        error_handler = self._create_rotating_file_handler("errors.log", logging.ERROR)

        root_logger = logging.getLogger()
        for handler in [main_handler, error_handler]:
            root_logger.addHandler(handler)

    def _create_rotating_file_handler(
        self,
        filename: str,
        level: int
    ) -> logging.handlers.RotatingFileHandler:
        handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / filename,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
        ))
        return handler

    def _setup_console_handler(self):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=True),
        ))
        logging.getLogger().addHandler(console_handler)

    def get_logger(self, name: str) -> structlog.BoundLogger:
        """Get a structured logger for a specific component."""
        return structlog.get_logger(name)

    def set_request_context(self, user_id: str, request_id: Optional[str] = None) -> str:
        """Bind user and request ids to every record logged in this context."""
        request_id = request_id or str(uuid.uuid4())
        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            user_id=user_id,
            timestamp=datetime.now().isoformat()
        )
        return request_id

    def log_performance(self, operation: str, duration: float, **kwargs):
        """Log performance metrics."""
        self.get_logger("performance").info(
            "performance_metric",
            operation=operation,
            duration_seconds=round(duration, 4),
            **kwargs
        )

    def log_error(self, error: Exception, context: Dict[str, Any], **kwargs):
        """Log errors with full context."""
        self.get_logger("errors").error(
            "error_occurred",
            error_type=type(error).__name__,
            error_message=str(error),
            context=context,
            **kwargs
        )


_logger_instance: Optional[ToneMapLogger] = None


def setup_logging(
    log_dir: str = "logs",
    log_level: str = "INFO",
    enable_console: bool = True,
    **kwargs
) -> ToneMapLogger:
    """
    Setup the global logging configuration.

    Args:
        log_dir: Directory to store log files
        log_level: Default log level
        enable_console: Whether to enable console logging
        **kwargs: Additional arguments for ToneMapLogger

    Returns:
        Configured logger instance
    """
    global _logger_instance

    _logger_instance = ToneMapLogger(
        log_dir=log_dir,
        log_level=log_level,
        enable_console=enable_console,
        **kwargs
    )
    return _logger_instance


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger for a specific component.

    Raises:
        RuntimeError: If logging hasn't been setup
    """
    if _logger_instance is None:
        raise RuntimeError("Logging not setup. Call setup_logging() first.")
    return _logger_instance.get_logger(name)


def log_performance(operation: str, duration: float, **kwargs):
    """Log performance metrics (no-op until logging is configured)."""
    if _logger_instance:
        _logger_instance.log_performance(operation, duration, **kwargs)


def log_error(error: Exception, context: Dict[str, Any], **kwargs):
    """Log errors with full context (no-op until logging is configured)."""
    if _logger_instance:
        _logger_instance.log_error(error, context, **kwargs)


def set_request_context(user_id: str, request_id: Optional[str] = None) -> Optional[str]:
    """Bind per-request context for structured logs."""
    if _logger_instance:
        return _logger_instance.set_request_context(user_id, request_id)
    return None
