"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in taskpilot/__init__.py with no default
limits; this module applies limits per route category.

Usage:
    from taskpilot.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

HIERARCHY_LIMIT = "60/minute"
PROJECT_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - organizations / workspaces:  60/minute  (membership administration)
        - projects / tasks:            200/minute (day-to-day traffic)
        - Health check:                exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("organizations", "workspaces"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(HIERARCHY_LIMIT)(bp)

    bp = app.blueprints.get("projects")
    if bp:
        limiter.limit(PROJECT_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    logger.info(
        "Rate limiter configured: hierarchy=%s projects=%s",
        HIERARCHY_LIMIT, PROJECT_LIMIT,
    )
