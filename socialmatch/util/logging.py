"""
Structured logging for embedding, ranking and maintenance operations.
"""

import logging
from typing import Any, Dict


def _truncate(text: str, limit: int = 50) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for embedding store, ranking engine and backfill jobs."""

    def __init__(self, name: str = "socialmatch"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "malformed"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_embedding_operation(self, operation: str, kind: str, entity_id: int, field: str,
                                details: Dict[str, Any] = None, status: str = "success"):
        """Log an embedding store operation for one (entity, field) pair."""
        log_details = {"kind": kind, "entity_id": entity_id, "field": field}
        if details:
            for k, v in details.items():
                log_details[k] = _truncate(v) if isinstance(v, str) else v

        self.log_operation(f"embedding.{operation}", status, log_details)

    def log_ranking(self, mode: str, source_id: int, candidates: int, returned: int,
                    start_time: float, end_time: float, details: Dict[str, Any] = None):
        """Log a completed ranking query."""
        log_details = {
            "source_id": source_id,
            "candidates": candidates,
            "returned": returned,
            "duration_ms": round((end_time - start_time) * 1000, 2)
        }
        if details:
            log_details.update(details)

        self.log_operation(f"ranking.{mode}", "success", log_details)

    def log_backfill(self, kind: str, examined: int, created: int, failed: int):
        """Log a backfill batch summary."""
        self.log_operation(f"backfill.{kind}", "success" if failed == 0 else "partial", {
            "examined": examined,
            "created": created,
            "failed": failed
        })

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
