"""RQ queue holding notification deliveries waiting for the worker."""

import os
from datetime import timedelta

import redis
from flask import current_app, has_app_context
from rq import Queue

from clubreview.services.jobs import deliver_notification_job, retry_failed_notifications_job

NOTIFICATION_QUEUE = 'notifications'
DELIVERY_JOB_TIMEOUT = 60
RETRY_SWEEP_INTERVAL = timedelta(hours=1)


def redis_url():
    """Redis URL from the app config when available, else the environment."""
    if has_app_context():
        return current_app.config['REDIS_URL']
    return os.getenv('REDIS_URL', 'redis://localhost:6379/0')


class QueueService:
    """Hands delivery ids to the notification worker.

    The Redis connection is opened on first use so importing this module
    never requires a running Redis.
    """

    def __init__(self, url=None):
        self._url = url
        self._queue = None

    @property
    def queue(self):
        if self._queue is None:
            connection = redis.from_url(self._url or redis_url())
            self._queue = Queue(NOTIFICATION_QUEUE, connection=connection)
        return self._queue

    def enqueue_delivery(self, delivery_id):
        """Queue a recorded ``NotificationDelivery`` for sending."""
        return self.queue.enqueue(
            deliver_notification_job,
            delivery_id=delivery_id,
            job_timeout=DELIVERY_JOB_TIMEOUT,
        )

    def schedule_retry_failed_notifications(self):
        """Schedule the next sweep over failed deliveries."""
        return self.queue.enqueue_in(RETRY_SWEEP_INTERVAL, retry_failed_notifications_job)

    def get_queue_stats(self):
        queue = self.queue
        return {
            'name': queue.name,
            'waiting': len(queue),
            'failed': queue.failed_job_registry.count,
            'scheduled': queue.scheduled_job_registry.count,
        }


queue_service = QueueService()


__all__ = ['NOTIFICATION_QUEUE', 'QueueService', 'queue_service', 'redis_url']
