"""Structured logging for batchwise components.

Every batchwise module logs through a structlog logger bound with a
``component`` key (``batch_queue``, ``retry_executor``, ``factory``), and
queues additionally bind their ``queue`` name. Levels can be set per
component so a noisy drain loop can be turned down without silencing the
retry warnings.
"""

import logging
import sys
from typing import Mapping

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

COMPONENTS = ("batch_queue", "retry_executor", "factory")

# Bound logger method names that are not stdlib level names
_METHOD_LEVELS = {"exception": logging.ERROR, "warn": logging.WARNING, "msg": logging.INFO}


def _to_level(name: str) -> int:
    level = logging.getLevelNamesMapping().get(name.upper())
    if level is None:
        raise ValueError(f"Unknown log level: {name}")
    return level


class ComponentLevelFilter:
    """
    Processor that drops events below their component's level.

    Events without a component, or from components without an override,
    are held to the default level.
    """

    def __init__(self, default_level: int, component_levels: Mapping[str, int]) -> None:
        self.default_level = default_level
        self.component_levels = dict(component_levels)

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        threshold = self.component_levels.get(event_dict.get("component", ""), self.default_level)
        level = _METHOD_LEVELS.get(method_name) or _to_level(method_name)
        if level < threshold:
            raise structlog.DropEvent
        return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    component_levels: Mapping[str, str] | None = None,
) -> None:
    """
    Configure structured logging for batchwise and its host application.

    Args:
        log_level: Default level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON logs (for production).
                     If False, output colored console logs (for development).
        component_levels: Per-component overrides, e.g. {"batch_queue": "WARNING"}
    """
    level = _to_level(log_level)
    overrides = {}
    for component, name in (component_levels or {}).items():
        if component not in COMPONENTS:
            raise ValueError(f"Unknown logging component: {component}")
        overrides[component] = _to_level(name)

    shared_processors: list[Processor] = [
        ComponentLevelFilter(level, overrides),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    # The bound logger must let through the most verbose override
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min([level, *overrides.values()])),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
