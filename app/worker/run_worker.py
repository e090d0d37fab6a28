"""Run ARQ worker. Usage: python -m app.worker.run_worker

Use with ACCRUAL_POLLER_MODE=worker so the API process does not poll as well.
"""

from arq import run_worker
from arq.cron import cron
from app.worker.tasks import get_redis_settings, poll_accruals, poll_seconds, startup, shutdown


def main():
    run_worker(
        {
            "redis_settings": get_redis_settings(),
            "functions": [],
            "cron_jobs": [
                cron(poll_accruals, second=poll_seconds(), run_at_startup=True),
            ],
            "on_startup": startup,
            "on_shutdown": shutdown,
        }
    )


if __name__ == "__main__":
    main()
