from django.db import models
from backend.core.models import User
from backend.inventory.models import Order


class OrderTask(models.Model):
    """Checklist item attached to an order, optionally assigned to a user"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='tasks')
    name = models.CharField(max_length=200)
    assignee = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_tasks')
    due_date = models.DateTimeField(null=True, blank=True)
    is_complete = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'order_tasks'
        ordering = ['is_complete', 'due_date', 'created_at']
        indexes = [
            models.Index(fields=['order', 'is_complete'], name='idx_task_order_complete'),
            models.Index(fields=['assignee', 'is_complete'], name='idx_task_assignee_complete'),
        ]
