"""
Test utilities and factories for creating test data
"""
from datetime import timedelta
from decimal import Decimal
import random
import string

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from backend.core.models import Company
from backend.locations.models import Rickhouse
from backend.inventory.models import SpiritType, Batch, Order, Barrel
from backend.capacity.models import CapacityAllocation, CapacityPlan, Equipment, ProductionRun, EquipmentBooking
from backend.purchasing.models import Supplier, SupplierProduct, PurchaseOrder, PurchaseOrderItem
from backend.pricing.models import PricingTier, PricingPromotion
from backend.tasks.models import OrderTask

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_company(name=None, **kwargs):
        """Create a test company (tenant)"""
        if not name:
            name = f'Distillery_{TestDataFactory.random_string(6)}'
        return Company.objects.create(company_name=name, **kwargs)

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', company=None, user_type='distiller',
                    is_staff=False, is_superuser=False, **kwargs):
        """Create a test user; a company is created when none is given"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        if company is None:
            company = TestDataFactory.create_company()
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            company=company,
            user_type=user_type,
            is_staff=is_staff,
            is_superuser=is_superuser,
            **kwargs
        )

    @staticmethod
    def create_admin(company=None, **kwargs):
        return TestDataFactory.create_user(company=company, user_type=User.USER_TYPE_ADMIN, **kwargs)

    @staticmethod
    def create_rickhouse(company, name=None, capacity_barrels=500):
        """Create a test rickhouse"""
        if not name:
            name = f'Rickhouse_{TestDataFactory.random_string(6)}'
        return Rickhouse.objects.create(
            company=company,
            name=name,
            address=f'Test Address {name}',
            capacity_barrels=capacity_barrels
        )

    @staticmethod
    def create_spirit_type(name=None):
        if not name:
            name = f'Spirit_{TestDataFactory.random_string(6)}'
        spirit_type, _ = SpiritType.objects.get_or_create(name=name)
        return spirit_type

    @staticmethod
    def create_batch(company, name=None, status='planned', completed_at=None):
        """Create a test batch"""
        if not name:
            name = f'Batch_{TestDataFactory.random_string(6)}'
        return Batch.objects.create(company=company, name=name, status=status, completed_at=completed_at)

    @staticmethod
    def create_order(company, name=None, spirit_type=None, batch=None, status_name='In Progress', quantity=1,
                     owner=None):
        """Create a test order"""
        if not name:
            name = f'Order_{TestDataFactory.random_string(6)}'
        if spirit_type is None:
            spirit_type = TestDataFactory.create_spirit_type('Bourbon')
        return Order.objects.create(
            company=company,
            name=name,
            owner=owner,
            spirit_type=spirit_type,
            batch=batch,
            status_name=status_name,
            quantity=quantity
        )

    @staticmethod
    def create_barrel(company, sku=None, order=None, batch=None, rickhouse=None):
        """Create a test barrel"""
        if not sku:
            sku = f'BRL-{TestDataFactory.random_string(8).upper()}'
        return Barrel.objects.create(company=company, sku=sku, order=order, batch=batch, rickhouse=rickhouse)

    @staticmethod
    def create_task(order, name=None, assignee=None, due_date=None, is_complete=False):
        if not name:
            name = f'Task_{TestDataFactory.random_string(6)}'
        return OrderTask.objects.create(
            order=order,
            name=name,
            assignee=assignee,
            due_date=due_date,
            is_complete=is_complete,
            completed_at=timezone.now() if is_complete else None
        )

    @staticmethod
    def create_equipment(company, name=None, equipment_type='still', is_active=True):
        """Create a test piece of equipment"""
        if not name:
            name = f'Equipment_{TestDataFactory.random_string(6)}'
        return Equipment.objects.create(
            company=company,
            name=name,
            equipment_type=equipment_type,
            is_active=is_active
        )

    @staticmethod
    def create_production_run(company, start=None, hours=8, name=None, status='scheduled', batch=None):
        """Create a test production run"""
        if start is None:
            start = timezone.now() + timedelta(days=1)
        if not name:
            name = f'Run_{TestDataFactory.random_string(6)}'
        return ProductionRun.objects.create(
            company=company,
            name=name,
            status=status,
            scheduled_start=start,
            scheduled_end=start + timedelta(hours=hours),
            batch=batch
        )

    @staticmethod
    def create_booking(equipment, run=None, start=None, hours=8, status='confirmed'):
        """Create a test equipment booking, with a run covering the same slot when none is given"""
        if start is None:
            start = timezone.now() + timedelta(days=1)
        if run is None:
            run = TestDataFactory.create_production_run(equipment.company, start=start, hours=hours)
        return EquipmentBooking.objects.create(
            equipment=equipment,
            production_run=run,
            start_time=start,
            end_time=start + timedelta(hours=hours),
            status=status
        )

    @staticmethod
    def create_allocation(equipment, start_date, end_date=None, hours=8, allocation_type='production',
                          product_type=None, plan=None, plan_status='active'):
        """Create a test capacity allocation, in a new plan spanning the allocation when none is given"""
        end_date = end_date or start_date
        if plan is None:
            plan = CapacityPlan.objects.create(
                company=equipment.company,
                name=f'Plan_{TestDataFactory.random_string(6)}',
                status=plan_status,
                period_start=start_date,
                period_end=end_date + timedelta(days=1)
            )
        return CapacityAllocation.objects.create(
            plan=plan,
            equipment=equipment,
            allocation_type=allocation_type,
            start_date=start_date,
            end_date=end_date,
            hours_allocated=Decimal(str(hours)),
            product_type=product_type
        )

    @staticmethod
    def create_supplier(company, name=None, email=None, supplier_type='grain'):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if email is None:
            email = f'{name.lower()}@test.com'
        return Supplier.objects.create(
            company=company,
            supplier_name=name,
            supplier_type=supplier_type,
            contact_person='Pat Jones',
            email=email,
            phone='1234567890'
        )

    @staticmethod
    def create_supplier_product(supplier, name=None, sku=None, price=Decimal('10.00')):
        """Create a test supplier product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        return SupplierProduct.objects.create(
            supplier=supplier,
            product_name=name,
            sku=sku,
            unit_of_measure='lb',
            current_price=price
        )

    @staticmethod
    def create_purchase_order(company, supplier=None, po_number=None, status='draft', user=None):
        """Create a test purchase order without items"""
        if supplier is None:
            supplier = TestDataFactory.create_supplier(company)
        if not po_number:
            po_number = f'PO-TEST-{TestDataFactory.random_string(6).upper()}'
        return PurchaseOrder.objects.create(
            company=company,
            supplier=supplier,
            po_number=po_number,
            order_date=timezone.now().date(),
            status=status,
            created_by=user
        )

    @staticmethod
    def create_purchase_order_item(purchase_order, product=None, quantity=Decimal('10'), unit_price=Decimal('5.00')):
        """Create a test purchase order line and refresh the order total"""
        if product is None:
            product = TestDataFactory.create_supplier_product(purchase_order.supplier)
        item = PurchaseOrderItem.objects.create(
            purchase_order=purchase_order,
            supplier_product=product,
            quantity=quantity,
            unit_price=unit_price,
            total_price=quantity * unit_price
        )
        purchase_order.total_amount = sum(i.total_price for i in purchase_order.items.all())
        purchase_order.save(update_fields=['total_amount'])
        return item

    @staticmethod
    def create_pricing_tier(name=None, slug=None, monthly_price_cents=29900, annual_price_cents=287000,
                            annual_discount_percent=20, sort_order=0, **kwargs):
        """Create a test pricing tier"""
        if not name:
            name = f'Tier {TestDataFactory.random_string(6)}'
        if not slug:
            slug = f'tier-{TestDataFactory.random_string(6).lower()}'
        return PricingTier.objects.create(
            name=name,
            slug=slug,
            monthly_price_cents=monthly_price_cents,
            annual_price_cents=annual_price_cents,
            annual_discount_percent=annual_discount_percent,
            sort_order=sort_order,
            **kwargs
        )

    @staticmethod
    def create_promotion(code=None, discount_type='percentage', discount_value=20, **kwargs):
        """Create a test promo code"""
        if not code:
            code = f'PROMO{TestDataFactory.random_string(6).upper()}'
        return PricingPromotion.objects.create(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            **kwargs
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
