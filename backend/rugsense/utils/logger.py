"""
PURPOSE: structlog setup for RugSense.

Every record is one JSON line carrying `event`, `level`, `timestamp` and the
`module` bound by get_logger(). Events are snake_case and name what happened
in the betting loop, with the ids needed to follow one game through it:

    episode_started / episode_ended / episode_discarded   game_id, episode_number
    side_bet_placed / side_bet_resolved                   game_id, bet_id
    update_q_value_error / update_side_bet_error          storage failures, re-raised
"""

import logging

import structlog


def setup_logging(log_level: str = "INFO") -> None:
    """
    PURPOSE: Configure structlog once at application startup.

    Records below `log_level` are dropped before rendering; an unknown level
    name falls back to INFO. Exceptions passed with exc_info are rendered
    into the record.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.

    CALLED BY: main.create_app() lifespan
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(module_name: str) -> structlog.BoundLogger:
    """Logger with `module` bound, e.g. get_logger("brain.learner")."""
    return structlog.get_logger().bind(module=module_name)
