"""Celery app factory."""

from celery import Celery

celery_app = Celery(
    "pipeline",
    include=[
        "workers.tasks.ai_reviews",
        "workers.tasks.proposals",
    ],
)
celery_app.config_from_object("workers.celery_config")
