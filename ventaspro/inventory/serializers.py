from rest_framework import serializers
from .models import Inventory

ADJUSTMENT_TYPES = ['add', 'remove', 'set']


class InventorySerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_price = serializers.DecimalField(source='product.price', max_digits=12, decimal_places=2, read_only=True)
    product_cost = serializers.DecimalField(source='product.cost', max_digits=12, decimal_places=2, read_only=True)
    category_name = serializers.CharField(source='product.category.name', read_only=True)
    unit_abbreviation = serializers.CharField(source='product.unit_of_measure.abbreviation', read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = Inventory
        fields = [
            'id', 'product', 'product_name', 'product_sku', 'product_price', 'product_cost',
            'category_name', 'unit_abbreviation', 'quantity', 'min_stock', 'max_stock',
            'stock_status', 'updated_at'
        ]

    def validate(self, attrs):
        min_stock = attrs.get('min_stock', getattr(self.instance, 'min_stock', 0))
        max_stock = attrs.get('max_stock', getattr(self.instance, 'max_stock', 100))
        if max_stock < min_stock:
            raise serializers.ValidationError({'max_stock': 'El stock máximo debe ser mayor o igual al mínimo'})
        return attrs


class InventoryUpdateSerializer(InventorySerializer):
    """Detail updates only touch the thresholds; quantities go through adjustments"""

    class Meta(InventorySerializer.Meta):
        read_only_fields = ['product', 'quantity']


class StockAdjustmentSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=ADJUSTMENT_TYPES)
    quantity = serializers.IntegerField(min_value=0)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')

    def validate(self, attrs):
        if attrs['type'] != 'set' and attrs['quantity'] <= 0:
            raise serializers.ValidationError({'quantity': 'La cantidad debe ser mayor a 0'})
        return attrs
