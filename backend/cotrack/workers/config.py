"""ARQ worker configuration."""
from urllib.parse import urlparse

from arq.connections import RedisSettings
from arq.cron import cron

from cotrack.config import settings
from cotrack.utils.logger import logger
from cotrack.workers.tasks import expire_callouts, run_team_analysis


def parse_redis_url(url: str) -> RedisSettings:
    """Parse Redis URL into RedisSettings."""
    parsed = urlparse(url)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        password=parsed.password,
        database=int(parsed.path[1:]) if parsed.path and len(parsed.path) > 1 else 0,
    )


redis_settings = parse_redis_url(settings.redis_url)


async def startup(ctx):
    """Worker startup hook."""
    logger.info("ARQ worker starting up...")
    ctx["startup_complete"] = True


async def shutdown(ctx):
    """Worker shutdown hook."""
    logger.info("ARQ worker shutting down...")


class WorkerSettings:
    """ARQ worker settings."""

    functions = [
        run_team_analysis,
        expire_callouts,
    ]

    cron_jobs = [
        # Team analysis every minute; a run still in progress is not started twice
        cron(run_team_analysis, second=0, unique=True),
        cron(expire_callouts, minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}),
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = redis_settings

    # Job configuration
    max_jobs = 5
    job_timeout = 300
    keep_result = 3600
