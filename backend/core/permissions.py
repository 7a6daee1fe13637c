"""Tenant and role checks shared by every app"""
from rest_framework.permissions import BasePermission

from .exceptions import AccessDenied, ValidationFailed
from .models import User

ADMIN_TYPES = (User.USER_TYPE_SUPER_ADMIN, User.USER_TYPE_ADMIN)
REVIEWER_TYPES = (
    User.USER_TYPE_COMPLIANCE_MANAGER,
    User.USER_TYPE_ADMIN,
    User.USER_TYPE_SUPER_ADMIN,
)


def is_admin(user):
    return bool(user and user.is_authenticated and (user.user_type in ADMIN_TYPES or user.is_superuser))


def is_reviewer(user):
    return bool(user and user.is_authenticated and (user.user_type in REVIEWER_TYPES or user.is_superuser))


def can_access_company(user, company_id):
    if not user or not user.is_authenticated:
        return False
    if user.is_super_admin or user.is_superuser:
        return True
    return user.company_id is not None and int(user.company_id) == int(company_id)


def ensure_company_access(user, company_id):
    if not can_access_company(user, company_id):
        raise AccessDenied('You do not have access to this company.')


def resolve_company_id(request, required=True):
    """
    Company id for a request: explicit `company_id` (query or body) or the user's own company.
    The caller's access to that company is verified.
    """
    raw = request.query_params.get('company_id')
    if raw in (None, '') and isinstance(request.data, dict):
        raw = request.data.get('company_id')
    if raw in (None, ''):
        company_id = request.user.company_id
    else:
        try:
            company_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationFailed(f"Invalid company_id: {raw}")
    if company_id is None:
        if required:
            raise ValidationFailed('company_id is required.')
        return None
    ensure_company_access(request.user, company_id)
    return company_id


class IsCompanyAdmin(BasePermission):
    """Admin or super admin user types"""
    message = 'Administrator access is required.'

    def has_permission(self, request, view):
        return is_admin(request.user)
