from decimal import Decimal
from rest_framework import serializers
from .models import Category, UnitOfMeasure, Product
from .utils import generate_unique_sku


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'product_count', 'created_at', 'updated_at']

    def get_product_count(self, obj):
        """Active products in the category (annotated by the list view when available)"""
        annotated = getattr(obj, 'active_product_count', None)
        if annotated is not None:
            return annotated
        return obj.products.filter(is_active=True).count()

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('El nombre es requerido')
        return value


class UnitOfMeasureSerializer(serializers.ModelSerializer):
    category_display = serializers.CharField(source='get_category_display', read_only=True)

    class Meta:
        model = UnitOfMeasure
        fields = ['id', 'name', 'abbreviation', 'category', 'category_display', 'is_active', 'created_at']


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    unit_name = serializers.CharField(source='unit_of_measure.name', read_only=True)
    unit_abbreviation = serializers.CharField(source='unit_of_measure.abbreviation', read_only=True)
    sku = serializers.CharField(required=False, allow_blank=True, max_length=100)
    stock_quantity = serializers.SerializerMethodField()
    min_stock = serializers.SerializerMethodField()
    initial_stock = serializers.IntegerField(write_only=True, required=False, min_value=0, default=0)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'price', 'cost', 'sku',
            'category', 'category_name', 'supplier', 'supplier_name',
            'unit_of_measure', 'unit_name', 'unit_abbreviation',
            'is_active', 'image_url', 'image_alt',
            'stock_quantity', 'min_stock', 'initial_stock',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['image_url', 'created_at', 'updated_at']

    def get_stock_quantity(self, obj):
        inventory = getattr(obj, 'inventory', None)
        return inventory.quantity if inventory else 0

    def get_min_stock(self, obj):
        inventory = getattr(obj, 'inventory', None)
        return inventory.min_stock if inventory else None

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('El nombre es requerido')
        return value

    def validate_price(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError('El precio no puede ser negativo')
        return value

    def validate_cost(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError('El costo no puede ser negativo')
        return value

    def validate_sku(self, value):
        value = (value or '').strip()
        if not value:
            return value
        queryset = Product.objects.filter(sku__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Ya existe un producto con este SKU')
        return value

    def create(self, validated_data):
        validated_data.pop('initial_stock', None)
        if not validated_data.get('sku'):
            validated_data['sku'] = generate_unique_sku(validated_data.get('name'))
        return super().create(validated_data)

    def update(self, instance, validated_data):
        validated_data.pop('initial_stock', None)
        if not validated_data.get('sku', instance.sku):
            validated_data.pop('sku', None)
        return super().update(instance, validated_data)


class ProductListSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    unit_abbreviation = serializers.CharField(source='unit_of_measure.abbreviation', read_only=True)
    stock_quantity = serializers.SerializerMethodField()
    min_stock = serializers.SerializerMethodField()
    has_image = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'price', 'cost', 'category', 'category_name',
            'supplier', 'supplier_name', 'unit_abbreviation', 'is_active',
            'image_url', 'image_alt', 'has_image', 'stock_quantity', 'min_stock', 'created_at'
        ]

    def get_stock_quantity(self, obj):
        inventory = getattr(obj, 'inventory', None)
        return inventory.quantity if inventory else 0

    def get_min_stock(self, obj):
        inventory = getattr(obj, 'inventory', None)
        return inventory.min_stock if inventory else None

    def get_has_image(self, obj):
        return bool(obj.image_url)


class ImageCompressionSerializer(serializers.Serializer):
    """Upload parameters for product images"""
    image = serializers.FileField()
    alt = serializers.CharField(required=False, allow_blank=True, max_length=255)
    max_width = serializers.IntegerField(required=False, min_value=1, max_value=4000)
    max_height = serializers.IntegerField(required=False, min_value=1, max_value=4000)
    quality = serializers.FloatField(required=False, min_value=0.01, max_value=1.0)
