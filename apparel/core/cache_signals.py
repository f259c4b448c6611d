"""
Cache invalidation signals
Drop cached report data whenever sales, purchases or stock change
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .cache_utils import invalidate_namespace, REPORTS_NAMESPACE

logger = logging.getLogger(__name__)

REPORT_SOURCES = [
    'pos.Transaction',
    'pos.TransactionItem',
    'inventory.StockMovement',
    'catalog.ProductVariant',
    'catalog.Product',
]


def invalidate_reports_cache(sender, **kwargs):
    # Only after commit; readers must not cache pre-commit rows under the new version
    transaction.on_commit(lambda: invalidate_namespace(REPORTS_NAMESPACE))


for _sender in REPORT_SOURCES:
    receiver(post_save, sender=_sender, dispatch_uid=f"reports_cache_save_{_sender}")(invalidate_reports_cache)
    receiver(post_delete, sender=_sender, dispatch_uid=f"reports_cache_delete_{_sender}")(invalidate_reports_cache)
