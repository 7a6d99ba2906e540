"""
Application settings (company info, tax rate, preferences).

Stored as one ``Setting`` row per key with a JSON-encoded value and read back
overlaid on ``DEFAULT_SETTINGS``.
"""
import json
import logging
from decimal import Decimal, InvalidOperation

from django.core.cache import cache
from django.db import transaction

from .models import Setting

logger = logging.getLogger(__name__)

APP_SETTINGS_CACHE_KEY = 'app_settings:current'
APP_SETTINGS_CACHE_TTL = 300

DEFAULT_SETTINGS = {
    'companyName': 'VentasPro',
    'companyAddress': '',
    'companyPhone': '',
    'companyEmail': '',
    'currency': 'COP',
    'taxRate': 19,
    'lowStockThreshold': 5,
    'enableNotifications': True,
    'enableEmailReports': False,
    'autoBackup': True,
    'theme': 'light',
}

SETTING_DESCRIPTIONS = {
    'companyName': 'Company name shown on receipts',
    'companyAddress': 'Company address',
    'companyPhone': 'Company phone',
    'companyEmail': 'Company email',
    'currency': 'ISO 4217 currency code',
    'taxRate': 'Default sales tax percentage',
    'lowStockThreshold': 'Default minimum stock for new inventory records',
    'enableNotifications': 'Show low stock notifications',
    'enableEmailReports': 'Send periodic email reports',
    'autoBackup': 'Automatic backups',
    'theme': 'Dashboard theme',
}

THEMES = ('light', 'dark')


class SettingsValidationError(ValueError):
    """Raised with a dict of field errors when settings data is invalid"""

    def __init__(self, errors):
        super().__init__('Invalid settings')
        self.errors = errors


def _decode(raw):
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


def get_app_settings():
    """Defaults overlaid with the stored values"""
    cached = cache.get(APP_SETTINGS_CACHE_KEY)
    if cached is not None:
        return dict(cached)

    values = dict(DEFAULT_SETTINGS)
    for setting in Setting.objects.filter(key__in=DEFAULT_SETTINGS.keys()):
        values[setting.key] = _decode(setting.value)

    cache.set(APP_SETTINGS_CACHE_KEY, values, APP_SETTINGS_CACHE_TTL)
    return dict(values)


def get_setting(key, default=None):
    return get_app_settings().get(key, default)


def get_tax_rate():
    """Default tax percentage as a Decimal"""
    try:
        return Decimal(str(get_setting('taxRate', DEFAULT_SETTINGS['taxRate'])))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(str(DEFAULT_SETTINGS['taxRate']))


def validate_app_settings(data, partial=False):
    """Validate and normalise incoming settings; unknown keys are ignored"""
    errors = {}
    cleaned = {}

    for key, default in DEFAULT_SETTINGS.items():
        if key not in data:
            if not partial:
                cleaned[key] = default
            continue
        value = data[key]

        if isinstance(default, bool):
            if isinstance(value, str):
                value = value.strip().lower() in ('1', 'true', 'yes', 'on')
            cleaned[key] = bool(value)
        elif key == 'taxRate':
            try:
                rate = Decimal(str(value))
            except (InvalidOperation, TypeError, ValueError):
                errors[key] = 'Debe ser un número'
                continue
            if rate < 0 or rate > 100:
                errors[key] = 'Debe estar entre 0 y 100'
                continue
            cleaned[key] = int(rate) if rate == rate.to_integral_value() else float(rate)
        elif key == 'lowStockThreshold':
            try:
                threshold = int(value)
            except (TypeError, ValueError):
                errors[key] = 'Debe ser un número entero'
                continue
            if threshold < 0:
                errors[key] = 'No puede ser negativo'
                continue
            cleaned[key] = threshold
        elif key == 'currency':
            currency = str(value or '').strip().upper()
            if len(currency) != 3 or not currency.isalpha():
                errors[key] = 'Debe ser un código de moneda de 3 letras'
                continue
            cleaned[key] = currency
        elif key == 'theme':
            if value not in THEMES:
                errors[key] = f"Debe ser uno de: {', '.join(THEMES)}"
                continue
            cleaned[key] = value
        else:
            cleaned[key] = '' if value is None else str(value)

    if errors:
        raise SettingsValidationError(errors)
    return cleaned


@transaction.atomic
def save_app_settings(data, partial=False):
    """Validate and persist settings, returning the full current values"""
    cleaned = validate_app_settings(data, partial=partial)
    for key, value in cleaned.items():
        Setting.objects.update_or_create(
            key=key,
            defaults={
                'value': json.dumps(value),
                'description': SETTING_DESCRIPTIONS.get(key, ''),
            },
        )
    cache.delete(APP_SETTINGS_CACHE_KEY)
    logger.info(f"Saved application settings: {sorted(cleaned.keys())}")
    return get_app_settings()


@transaction.atomic
def reset_app_settings():
    """Remove stored values so every key falls back to its default"""
    deleted, _ = Setting.objects.filter(key__in=DEFAULT_SETTINGS.keys()).delete()
    cache.delete(APP_SETTINGS_CACHE_KEY)
    logger.info(f"Reset application settings ({deleted} stored values removed)")
    return dict(DEFAULT_SETTINGS)
