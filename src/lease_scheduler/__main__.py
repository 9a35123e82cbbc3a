"""Run one scheduler replica: ``python -m lease_scheduler``.

Configuration comes from ``SCHEDULER_*`` environment variables; handlers
are loaded from ``SCHEDULER_TASK_MODULES`` (a JSON list of module names).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from .config import SchedulerSettings
from .runtime import SchedulerRuntime

logger = logging.getLogger("lease_scheduler")


async def _serve(settings: SchedulerSettings) -> None:
    async with SchedulerRuntime.from_settings(settings) as runtime:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, runtime.request_stop)
        logger.info(
            "Replica %s running against %s", settings.holder_id, settings.redis_url
        )
        await runtime.wait_closed()


def main() -> None:
    settings = SchedulerSettings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    asyncio.run(_serve(settings))


if __name__ == "__main__":
    main()
