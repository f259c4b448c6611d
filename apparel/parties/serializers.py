from rest_framework import serializers
from .models import Customer, Supplier


class CustomerSerializer(serializers.ModelSerializer):
    transaction_count = serializers.IntegerField(read_only=True, required=False)
    total_spent = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True, required=False)

    class Meta:
        model = Customer
        fields = ['id', 'name', 'contact', 'phone', 'email', 'address', 'is_active',
                  'transaction_count', 'total_spent', 'created_at', 'updated_at']
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Customer name is required.')
        return value


class SupplierSerializer(serializers.ModelSerializer):
    purchase_count = serializers.IntegerField(read_only=True, required=False)
    purchase_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True, required=False)

    class Meta:
        model = Supplier
        fields = ['id', 'name', 'contact', 'phone', 'email', 'address', 'is_active',
                  'purchase_count', 'purchase_total', 'created_at', 'updated_at']
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Supplier name is required.')
        return value
