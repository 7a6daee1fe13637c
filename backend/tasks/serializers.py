from django.utils import timezone
from rest_framework import serializers
from .models import OrderTask


class OrderTaskSerializer(serializers.ModelSerializer):
    order_name = serializers.CharField(source='order.name', read_only=True)
    assignee_name = serializers.CharField(source='assignee.name', read_only=True, default=None)
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = OrderTask
        fields = [
            'id', 'order', 'order_name', 'name', 'assignee', 'assignee_name', 'due_date',
            'is_complete', 'completed_at', 'is_overdue', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_is_overdue(self, obj):
        return bool(obj.due_date and not obj.is_complete and obj.due_date < timezone.now())


class CreateTaskSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    name = serializers.CharField(max_length=500)
    assignee_id = serializers.IntegerField(required=False, allow_null=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)


class UpdateTaskSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=500, required=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)


class AssignTaskSerializer(serializers.Serializer):
    assignee_id = serializers.IntegerField(required=False, allow_null=True)


class CompleteTaskSerializer(serializers.Serializer):
    is_complete = serializers.BooleanField(default=True)
