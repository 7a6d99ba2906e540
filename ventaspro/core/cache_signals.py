"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .app_settings import APP_SETTINGS_CACHE_KEY
from .cache_utils import invalidate_dashboard_cache, invalidate_reports_cache

logger = logging.getLogger(__name__)

# Models whose writes change dashboard figures or report totals
DASHBOARD_MODELS = [
    'pos.Sale',
    'pos.SaleItem',
    'catalog.Product',
    'catalog.Category',
    'parties.Customer',
    'parties.Supplier',
    'inventory.Inventory',
]


def invalidate_stats_cache(sender, **kwargs):
    invalidate_dashboard_cache()
    invalidate_reports_cache()


for model_label in DASHBOARD_MODELS:
    post_save.connect(invalidate_stats_cache, sender=model_label,
                      dispatch_uid=f'stats_cache_save_{model_label}')
    post_delete.connect(invalidate_stats_cache, sender=model_label,
                        dispatch_uid=f'stats_cache_delete_{model_label}')


@receiver([post_save, post_delete], sender='core.Setting')
def invalidate_app_settings(sender, instance, **kwargs):
    cache.delete(APP_SETTINGS_CACHE_KEY)
    logger.debug(f"Invalidated app settings cache (key changed: {instance.key})")
