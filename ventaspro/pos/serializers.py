from decimal import Decimal
from rest_framework import serializers
from .models import Sale, SaleItem, CashRegister
from ventaspro.parties.models import Customer
from ventaspro.pricing.models import Promotion
from ventaspro.pricing.serializers import CartItemSerializer


class SaleItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)

    class Meta:
        model = SaleItem
        fields = ['id', 'product', 'product_name', 'product_sku', 'quantity', 'unit_price', 'total_price']


class SaleSerializer(serializers.ModelSerializer):
    items = SaleItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    promotion_name = serializers.CharField(source='promotion.name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)
    reference = serializers.CharField(read_only=True)

    class Meta:
        model = Sale
        fields = [
            'id', 'reference', 'customer', 'customer_name', 'subtotal', 'discount', 'tax',
            'total_amount', 'status', 'payment_method', 'promotion', 'promotion_name',
            'created_by', 'created_by_username', 'cancelled_at', 'created_at', 'updated_at', 'items'
        ]


class SaleListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    reference = serializers.CharField(read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Sale
        fields = [
            'id', 'reference', 'customer', 'customer_name', 'subtotal', 'discount', 'tax',
            'total_amount', 'status', 'payment_method', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        annotated = getattr(obj, 'annotated_item_count', None)
        if annotated is not None:
            return annotated
        return obj.items.count()


class SaleCreateSerializer(serializers.Serializer):
    """Incoming cart for sale recording"""
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    items = CartItemSerializer(many=True, required=False, default=list)
    discount = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('100'), required=False, default=Decimal('0'))
    tax = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('100'), required=False, allow_null=True)
    payment_method = serializers.ChoiceField(choices=Sale.PAYMENT_METHOD_CHOICES, required=False, default='cash')
    status = serializers.ChoiceField(choices=[('pending', 'Pendiente'), ('completed', 'Completada')], required=False, default='completed')
    promotion = serializers.PrimaryKeyRelatedField(queryset=Promotion.objects.all(), required=False, allow_null=True)
    auto_promotion = serializers.BooleanField(required=False, default=False)


class SaleStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Sale.STATUS_CHOICES)


class CashRegisterSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    sale_reference = serializers.SerializerMethodField()

    class Meta:
        model = CashRegister
        fields = [
            'id', 'type', 'type_display', 'amount', 'description', 'reference_id',
            'sale_reference', 'created_by', 'created_by_username', 'created_at'
        ]
        read_only_fields = ['reference_id', 'created_by', 'created_at']

    def get_sale_reference(self, obj):
        if obj.type != 'sale' or not obj.reference_id:
            return None
        return obj.reference_id.zfill(8)[-8:]

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('El monto debe ser mayor a 0')
        return value

    def validate_type(self, value):
        # Sale entries are only written by sale recording
        if value == 'sale':
            raise serializers.ValidationError('Los movimientos de venta se registran al crear la venta')
        return value
