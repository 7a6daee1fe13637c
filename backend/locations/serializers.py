from rest_framework import serializers
from .models import Rickhouse


class RickhouseSerializer(serializers.ModelSerializer):
    barrel_count = serializers.SerializerMethodField()

    class Meta:
        model = Rickhouse
        fields = ['id', 'company', 'name', 'address', 'capacity_barrels', 'barrel_count', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']

    def get_barrel_count(self, obj):
        return obj.barrels.count()
