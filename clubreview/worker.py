"""Run an RQ worker that drains the notification queue.

Usage: ``python -m clubreview.worker`` (or the ``clubreview-worker`` script).
"""

import logging

import redis
from dotenv import load_dotenv
from rq import Queue, Worker

from clubreview.services.queue import NOTIFICATION_QUEUE, redis_url

logger = logging.getLogger(__name__)


def main():
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    connection = redis.from_url(redis_url())
    worker = Worker([Queue(NOTIFICATION_QUEUE, connection=connection)], connection=connection)

    logger.info("Notification worker listening on %r", NOTIFICATION_QUEUE)
    try:
        worker.work(with_scheduler=True)
    except KeyboardInterrupt:
        logger.info("Notification worker stopped")


if __name__ == '__main__':
    main()
