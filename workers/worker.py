"""Worker script to run Celery workers."""

from core.config import settings
from core.middleware.logging import setup_logging
from workers.celery_app import celery_app

setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

if __name__ == "__main__":
    # Worker with the embedded beat scheduler for proposal expiry
    celery_app.worker_main(
        argv=[
            "worker",
            "--beat",
            "--loglevel=info",
            "--concurrency=4",
            "-Q",
            "default,ai_reviews",
        ]
    )
