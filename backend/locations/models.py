from django.db import models
from backend.core.models import Company


class Rickhouse(models.Model):
    """Bonded warehouse where barrels are stored"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='rickhouses')
    name = models.CharField(max_length=200)
    address = models.TextField(blank=True)
    capacity_barrels = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'rickhouses'
        ordering = ['name']
        unique_together = [['company', 'name']]
