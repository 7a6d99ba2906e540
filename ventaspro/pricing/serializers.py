from rest_framework import serializers
from .models import Promotion
from .services import promotion_status, format_promotion_description
from ventaspro.catalog.models import Product, Category


class PromotionSerializer(serializers.ModelSerializer):
    products = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), many=True, required=False)
    categories = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all(), many=True, required=False)
    status = serializers.SerializerMethodField()
    preview = serializers.SerializerMethodField()
    created_by_name = serializers.CharField(source='created_by.name', read_only=True)

    class Meta:
        model = Promotion
        fields = [
            'id', 'name', 'description', 'type', 'value', 'conditions',
            'start_date', 'end_date', 'is_active', 'min_purchase_amount',
            'max_uses', 'current_uses', 'products', 'categories',
            'status', 'preview', 'created_by', 'created_by_name', 'created_at', 'updated_at'
        ]
        read_only_fields = ['current_uses', 'created_by', 'created_at', 'updated_at']

    def get_status(self, obj):
        return promotion_status(obj)

    def get_preview(self, obj):
        return format_promotion_description(obj)

    def validate_conditions(self, value):
        if value in (None, ''):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError('Las condiciones deben ser un objeto')
        bundle_products = value.get('bundle_products')
        if bundle_products is not None:
            try:
                value['bundle_products'] = [int(pk) for pk in bundle_products]
            except (TypeError, ValueError):
                raise serializers.ValidationError('bundle_products debe ser una lista de ids de productos')
        return value


class CartItemSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True)


class ApplicablePromotionsSerializer(serializers.Serializer):
    items = CartItemSerializer(many=True)
