"""
Cache invalidation signals
Automatically invalidate dashboard cache when register data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_dashboard_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

DASHBOARD_MODELS = {
    'User',
    'Asset',
    'AssetCategory',
    'AssetTransfer',
    'DisposalRecord',
    'Vendor',
    'Maintenance',
    'Approval',
    'PurchaseOrder',
    'Invoice',
    'ScheduledAuditRun',
    'AuditRunEntry',
}


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals for bulk operations.
    Invalidate manually after the block.
    """
    previous = is_suspended()
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = previous


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete])
def invalidate_dashboard_on_change(sender, instance, **kwargs):
    """Invalidate dashboard cache when a model feeding the dashboards changes"""
    if is_suspended():
        return

    if sender.__name__ in DASHBOARD_MODELS:
        try:
            invalidate_dashboard_cache()
        except Exception as e:
            logger.warning(f"Error invalidating dashboard cache for {sender.__name__}: {e}")
