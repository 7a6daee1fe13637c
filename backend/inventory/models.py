from django.db import models
from decimal import Decimal
from backend.core.models import Company, User
from backend.locations.models import Rickhouse

GALLONS_PER_BARREL = Decimal('53')


class SpiritType(models.Model):
    """Spirit category (Bourbon, Gin, Vodka, ...)"""
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'spirit_types'
        ordering = ['name']


class MashBill(models.Model):
    """Grain recipe"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='mash_bills')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'mash_bills'
        ordering = ['name']


class Batch(models.Model):
    """Production batch"""
    STATUS_CHOICES = [
        ('planned', 'Planned'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='batches')
    mash_bill = models.ForeignKey(MashBill, on_delete=models.SET_NULL, null=True, blank=True, related_name='batches')
    name = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='planned')
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or f"Batch {self.id}"

    class Meta:
        db_table = 'batches'
        ordering = ['-created_at']


class Order(models.Model):
    """Production/customer order of barrels"""
    INACTIVE_STATUSES = ('sold', 'emptied', 'dumped', 'transferred out')

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='orders')
    name = models.CharField(max_length=200)
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    spirit_type = models.ForeignKey(SpiritType, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    batch = models.ForeignKey(Batch, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    status_name = models.CharField(max_length=50, default='In Progress', help_text='Free-text status, e.g. "In Progress", "Tax Paid", "Sold"')
    quantity = models.PositiveIntegerField(default=0, help_text='Number of barrels')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def is_inactive(self):
        return (self.status_name or '').strip().lower() in self.INACTIVE_STATUSES

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'created_at'], name='idx_order_company_created'),
        ]


class Barrel(models.Model):
    """Individual barrel"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='barrels')
    sku = models.CharField(max_length=100)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, null=True, blank=True, related_name='barrels')
    batch = models.ForeignKey(Batch, on_delete=models.SET_NULL, null=True, blank=True, related_name='barrels')
    rickhouse = models.ForeignKey(Rickhouse, on_delete=models.SET_NULL, null=True, blank=True, related_name='barrels')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.sku

    class Meta:
        db_table = 'barrels'
        ordering = ['sku']
        unique_together = [['company', 'sku']]
