"""
Core models: shared timestamp base and platform configuration rows.
"""
import logging

from django.core.cache import cache
from django.db import models

logger = logging.getLogger(__name__)


class TimestampedModel(models.Model):
    """
    Abstract base model with created/updated timestamps.
    """
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when the record was created"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when the record was last updated"
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


class SystemSettingManager(models.Manager):
    """Manager for system settings with caching."""

    CACHE_PREFIX = 'system_setting:'
    CACHE_TIMEOUT = 300

    def get_setting(self, key: str, default=None):
        cache_key = f"{self.CACHE_PREFIX}{key}"

        value = cache.get(cache_key)
        if value is not None:
            return value

        try:
            value = self.get(key=key).value
        except SystemSetting.DoesNotExist:
            return default

        cache.set(cache_key, value, self.CACHE_TIMEOUT)
        return value

    def set_setting(self, key: str, value, description: str = "", updated_by=None):
        setting, _ = self.update_or_create(
            key=key,
            defaults={
                'value': value,
                'description': description,
                'updated_by_id': updated_by,
            }
        )
        cache.set(f"{self.CACHE_PREFIX}{key}", value, self.CACHE_TIMEOUT)
        return setting

    def clear_cache(self, key: str = None):
        """Clear one cached setting, or the whole cache when no key is given."""
        if key:
            cache.delete(f"{self.CACHE_PREFIX}{key}")
        else:
            cache.clear()
        logger.info("System settings cache cleared", extra={'setting_key': key})


class SystemSetting(TimestampedModel):
    """
    Platform-wide configuration value editable without a deployment.

    Reads go through the System Config gate (view), writes require edit
    rights; cache invalidation is developer-only.
    """
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True)
    updated_by_id = models.BigIntegerField(
        null=True,
        blank=True,
        help_text="User id of the last editor"
    )

    objects = SystemSettingManager()

    class Meta:
        db_table = 'system_settings'
        ordering = ['key']

    def __str__(self):
        return self.key
