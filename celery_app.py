"""Celery configuration for background task processing."""
from celery import Celery

from config import settings

# Create Celery instance
celery = Celery(
    'conversation_turns',
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=['services.indexing']  # Include task modules
)

# Configure Celery
celery.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    result_expires=3600,  # Results expire after 1 hour
    task_ignore_result=True,  # Indexing is fire-and-forget
    task_time_limit=60,
    task_soft_time_limit=30,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

if __name__ == '__main__':
    celery.start()
