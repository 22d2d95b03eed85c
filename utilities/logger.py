"""
Structured logging setup using structlog.
Provides JSON or console output, optional file logging and a catalog-scoped logger.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call-site information to every event
    """
    level = getattr(logging, log_level.upper())

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    structlog.get_logger(__name__).info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class CatalogLogger:
    """
    Logger for catalog walkthrough output with bound database context.
    """

    def __init__(self, name: str = "catalog"):
        self.logger = structlog.get_logger(name)
        self.context: Dict[str, Any] = {}

    def bind_context(self, **kwargs) -> 'CatalogLogger':
        """
        Bind context variables to the logger.

        Args:
            **kwargs: Context variables to bind

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def clear_context(self) -> 'CatalogLogger':
        """Clear all context variables."""
        self.context.clear()
        return self

    def log_section(self, title: str) -> None:
        self.logger.info("Section", title=title, **self.context)

    def log_query(self, query: str, count: int, sample: Optional[list] = None) -> None:
        """Log the outcome of a read query."""
        self.logger.info(
            "Query result",
            query=query,
            count=count,
            sample=sample,
            **self.context
        )

    def log_mutation(self, operation: str, target: str, affected: int) -> None:
        """Log a write; zero affected records is reported as a warning."""
        level = "info" if affected else "warning"
        getattr(self.logger, level)(
            "Mutation result",
            operation=operation,
            target=target,
            affected=affected,
            **self.context
        )

    def log_aggregation(self, name: str, result: Any) -> None:
        self.logger.info("Aggregation result", aggregation=name, result=result, **self.context)

    def log_index(self, index_name: str) -> None:
        self.logger.info("Index ensured", index=index_name, **self.context)

    def log_plan(self, label: str, summary: Dict[str, Any]) -> None:
        """Log a condensed query plan."""
        self.logger.info("Query plan", label=label, **summary, **self.context)
