import logging
from collections import Counter

from celery import shared_task

from catalog.exceptions import FetchFailed
from catalog.mutations import validate_envelope
from catalog.updater import build_updater

logger = logging.getLogger(__name__)


@shared_task
def apply_mutation(action, data):
    action, data = validate_envelope({'action': action, 'data': data})
    updater = build_updater()
    if action == 'test_connection':
        return updater.test_connection()
    return updater.apply(action, data)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def verify_document(self):
    logger.info("Verifying products.json")

    try:
        document, sha = build_updater().read_document()
    except FetchFailed as exc:
        raise self.retry(exc=exc)

    products = document['products']
    duplicates = [pid for pid, count in Counter(p.get('id') for p in products).items() if count > 1]
    if duplicates:
        logger.warning("products.json has duplicate product IDs: %s", duplicates)

    stats = {
        'products': len(products),
        'sold': sum(1 for p in products if p.get('sold')),
        'duplicates': len(duplicates),
        'sha': sha,
    }
    logger.info("products.json verified: %s", stats)
    return stats
