import logging

from celery import shared_task

from theatre_backend.scheduling.services.release import release_elapsed_operations as _release_elapsed

logger = logging.getLogger(__name__)


@shared_task(name='theatre_backend.scheduling.tasks.release_elapsed_operations')
def release_elapsed_operations():
    """Periodic beat task: complete elapsed operations and free their equipment."""
    completed = _release_elapsed()
    if completed:
        logger.info('Released %d elapsed operation(s): %s', len(completed), completed)
    return completed
