"""
Audit logger for SecGuard.

This module provides structured audit logging for analysis runs, model
calls and tool calls, so every step of a run can be traced afterwards.
Credentials and full alert bodies are never written to the audit trail.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from secguard.core.config.manager import LoggingConfig
from secguard.core.state.model import StepEvent, StepEventType


def configure_logging(logging_config: Optional[LoggingConfig] = None) -> None:
    """Setup stdlib logging and route structlog through it."""
    logging_config = logging_config or LoggingConfig()
    level = getattr(logging, logging_config.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )
    logging.getLogger().setLevel(level)

    if logging_config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLogger:
    """Handles audit logging for analysis runs."""

    def __init__(self, name: str = "secguard.audit"):
        self.logger = structlog.get_logger(name)

    def log_run_started(self, run_id: str, alert_length: int, max_steps: int,
                        demo: bool = False) -> None:
        """Log the start of an analysis run."""
        self.logger.info(
            "run_started",
            run_id=run_id,
            alert_length=alert_length,
            max_steps=max_steps,
            demo=demo,
            timestamp=_now()
        )

    def log_run_finished(self, run_id: str, event_count: int, outcome: str,
                         duration_seconds: float) -> None:
        """Log the end of an analysis run."""
        self.logger.info(
            "run_finished",
            run_id=run_id,
            event_count=event_count,
            outcome=outcome,
            duration_seconds=duration_seconds,
            timestamp=_now()
        )

    def log_step_event(self, run_id: str, event: StepEvent) -> None:
        """Log one emitted step event."""
        log_data: Dict[str, Any] = {
            "run_id": run_id,
            "event_type": event.type.value,
            "step": event.step,
            "content_length": len(event.content),
        }
        if event.action:
            log_data["action"] = event.action

        if event.type is StepEventType.ERROR:
            self.logger.error("step_event", error=event.content, **log_data)
        elif event.type is StepEventType.WARNING:
            self.logger.warning("step_event", **log_data)
        else:
            self.logger.info("step_event", **log_data)

    def log_llm_call(self, run_id: str, step: int, model: str, duration_seconds: float,
                     error: Optional[Exception] = None) -> None:
        """Log a model call."""
        log_data = {
            "run_id": run_id,
            "step": step,
            "model": model,
            "duration_seconds": duration_seconds,
            "success": error is None,
            "timestamp": _now(),
        }
        if error:
            log_data["error"] = str(error)
            log_data["error_type"] = type(error).__name__
            self.logger.error("llm_call_failed", **log_data)
        else:
            self.logger.info("llm_call_completed", **log_data)

    def log_tool_call_start(self, run_id: str, step: int, action: str) -> None:
        """Log tool call start."""
        self.logger.info(
            "tool_call_started",
            run_id=run_id,
            step=step,
            action=action,
            timestamp=_now()
        )

    def log_tool_call_end(self, run_id: str, step: int, action: str, duration_seconds: float,
                          error: Optional[Exception] = None) -> None:
        """Log tool call end."""
        log_data = {
            "run_id": run_id,
            "step": step,
            "action": action,
            "duration_seconds": duration_seconds,
            "success": error is None,
            "timestamp": _now(),
        }
        if error:
            log_data["error"] = str(error)
            log_data["error_type"] = type(error).__name__
            self.logger.error("tool_call_failed", **log_data)
        else:
            self.logger.info("tool_call_completed", **log_data)
