"""ARQ worker — periodic subscription expiry sweep.

The lazy check on every authenticated request stays authoritative; the sweep
only keeps stored rows tidy for users who stop making requests.
"""

import logging

from arq import cron
from arq.connections import RedisSettings

from lander.config import get_settings
from lander.constants import ARQ_JOB_TIMEOUT, ARQ_MAX_JOBS
from lander.db.session import Database
from lander.utils import setup_logging

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:
    settings = get_settings()
    setup_logging(verbose=settings.debug)
    ctx["database"] = Database(settings.database_url)


async def shutdown(ctx: dict) -> None:
    database: Database | None = ctx.get("database")
    if database:
        await database.dispose()


async def expire_subscriptions(ctx: dict) -> int:
    """Cron job: flip overdue active subscriptions to inactive."""
    from lander.services.subscription_store import expire_overdue

    database: Database = ctx["database"]
    async with database.session() as db:
        expired = await expire_overdue(db)
    logger.info(f"Expiry sweep: {expired} subscriptions deactivated")
    return expired


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [expire_subscriptions]
    cron_jobs = [cron(expire_subscriptions, minute=0)]  # Every hour at :00

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)

    max_jobs = ARQ_MAX_JOBS
    job_timeout = ARQ_JOB_TIMEOUT
