from rest_framework import serializers
from .models import SpiritType, MashBill, Batch, Order, Barrel


class SpiritTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = SpiritType
        fields = ['id', 'name', 'description']


class MashBillSerializer(serializers.ModelSerializer):
    class Meta:
        model = MashBill
        fields = ['id', 'company', 'name', 'description', 'created_at']
        read_only_fields = ['company', 'created_at']


class BatchSerializer(serializers.ModelSerializer):
    mash_bill_name = serializers.CharField(source='mash_bill.name', read_only=True)

    class Meta:
        model = Batch
        fields = ['id', 'company', 'name', 'mash_bill', 'mash_bill_name', 'status', 'completed_at', 'created_at', 'updated_at']
        read_only_fields = ['company', 'status', 'completed_at', 'created_at', 'updated_at']


class OrderSerializer(serializers.ModelSerializer):
    spirit_type_name = serializers.CharField(source='spirit_type.name', read_only=True)
    owner_name = serializers.CharField(source='owner.name', read_only=True)
    barrel_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'company', 'name', 'owner', 'owner_name', 'spirit_type', 'spirit_type_name', 'batch',
                  'status_name', 'quantity', 'barrel_count', 'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']

    def get_barrel_count(self, obj):
        return obj.barrels.count()


class BarrelSerializer(serializers.ModelSerializer):
    rickhouse_name = serializers.CharField(source='rickhouse.name', read_only=True)

    class Meta:
        model = Barrel
        fields = ['id', 'company', 'sku', 'order', 'batch', 'rickhouse', 'rickhouse_name', 'created_at']
        read_only_fields = ['company', 'created_at']

    def validate(self, attrs):
        company_id = self.context.get('company_id')
        for field in ('order', 'batch', 'rickhouse'):
            related = attrs.get(field)
            if related is not None and company_id is not None and related.company_id != company_id:
                raise serializers.ValidationError({field: 'Must belong to the same company.'})
        return attrs
