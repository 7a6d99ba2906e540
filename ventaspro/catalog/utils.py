"""
Utility functions for catalog operations
"""
import re
import uuid
from django.utils import timezone
from .models import Product


def generate_unique_sku(base_name=None):
    """Generate a unique SKU like CAFE-20250708-3F9A1C"""
    prefix = re.sub(r'[^A-Z0-9]', '', (base_name or '').upper())[:4] or 'PRD'
    timestamp = timezone.now().strftime('%Y%m%d')
    unique_id = uuid.uuid4().hex[:6].upper()
    sku = f"{prefix}-{timestamp}-{unique_id}"

    while Product.objects.filter(sku=sku).exists():
        unique_id = uuid.uuid4().hex[:6].upper()
        sku = f"{prefix}-{timestamp}-{unique_id}"

    return sku
