from rest_framework import serializers
from .models import Customer, Supplier


class SupplierSerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = ['id', 'name', 'contact_person', 'phone', 'email', 'address', 'product_count', 'created_at', 'updated_at']

    def get_product_count(self, obj):
        return obj.products.count()

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('El nombre es requerido')
        return value


class CustomerSerializer(serializers.ModelSerializer):
    cedula = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=20)

    class Meta:
        model = Customer
        fields = ['id', 'name', 'email', 'phone', 'address', 'cedula', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('El nombre es requerido')
        return value

    def validate_cedula(self, value):
        """Blank cedulas are stored as NULL so uniqueness only applies to real ids"""
        value = (value or '').strip()
        if not value:
            return None
        queryset = Customer.objects.filter(cedula=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Ya existe un cliente con esta cédula')
        return value
