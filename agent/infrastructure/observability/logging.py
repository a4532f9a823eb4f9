import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os

# Client libraries that log every HTTP round trip at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "jarvis-orchestrator"
) -> None:
    """Configure stdlib logging and structlog for the service"""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_command_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_command_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp entries with the session and the command being handled"""

    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())

    context = structlog.contextvars.get_contextvars()
    # trace_id is bound once per handled command
    for key in ("session_id", "trace_id"):
        if context.get(key) and key not in event_dict:
            event_dict[key] = context[key]

    return event_dict


class OrchestrationLogger:
    """Structured events for commands, tasks and reasoning calls"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_task_event(self, event_type: str, session_id: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        self.logger.info("task_event", event_type=event_type, session_id=session_id, data=data or {}, **kwargs)

    def log_step_execution(
        self,
        session_id: str,
        step_id: int,
        total_steps: int,
        success: bool,
        duration_ms: Optional[float] = None
    ):
        self.logger.info(
            "step_execution",
            session_id=session_id,
            step=f"{step_id}/{total_steps}",
            success=success,
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None
        )

    def log_reasoning_call(
        self,
        component: str,
        structured: bool,
        attachments: int = 0,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log one round trip to the reasoning service"""

        log = self.logger.info if success else self.logger.warning
        log(
            "reasoning_call",
            component=component,
            mode="structured" if structured else "text",
            attachments=attachments,
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
            success=success,
            error=error
        )


orchestration_logger = OrchestrationLogger("orchestration")


class LatencyStats:
    """Running count, total and extremes for one operation"""

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms: Optional[float] = None
        self.max_ms = 0.0

    def add(self, duration_ms: float):
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total_ms / self.count if self.count else 0,
            "min": self.min_ms or 0,
            "max": self.max_ms
        }


class MetricsCollector:
    """In-process counters and latencies, exposed on the metrics endpoint"""

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.latencies: Dict[str, LatencyStats] = {}

    def record_latency(self, operation: str, duration_ms: float):
        self.latencies.setdefault(operation, LatencyStats()).add(duration_ms)
        orchestration_logger.logger.debug("metric", metric_type="latency", operation=operation, duration_ms=duration_ms)

    def increment_counter(self, name: str, value: int = 1):
        self.counters[name] = self.counters.get(name, 0) + value
        orchestration_logger.logger.debug("metric", metric_type="counter", name=name, value=value)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Counters by name, latencies under ``latency.<operation>``"""

        summary: Dict[str, Any] = dict(self.counters)
        for operation, stats in self.latencies.items():
            summary[f"latency.{operation}"] = stats.summary()
        return summary

    def reset(self):
        self.counters.clear()
        self.latencies.clear()


metrics = MetricsCollector()
