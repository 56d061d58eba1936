"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in podtracker/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from podtracker.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

BLUEPRINT_LIMITS = {
    "identity_bp": "30/minute",        # merges rewrite many rows
    "pod_bp": "120/minute",
    "log_issue_bp": "120/minute",
    "notification_bp": "200/minute",   # the bell polls
}


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name, limit in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit)(bp)

    app.logger.info(
        "Rate limiter configured: %s",
        ", ".join(f"{name}={limit}" for name, limit in BLUEPRINT_LIMITS.items()),
    )
