from rest_framework.permissions import BasePermission

from .models import User


class RolePermission(BasePermission):
    """Allow authenticated users whose role is in ``allowed_roles``"""
    allowed_roles = ()
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        return user.role in self.allowed_roles


class IsAdminRole(RolePermission):
    allowed_roles = (User.ROLE_ADMIN,)
    message = 'Admin access required.'


class IsManager(RolePermission):
    allowed_roles = (User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER)
    message = 'Admin or inventory manager access required.'


class IsAdminOrAuditor(RolePermission):
    allowed_roles = (User.ROLE_ADMIN, User.ROLE_AUDITOR)
    message = 'Admin or auditor access required.'


class IsAuditStaff(RolePermission):
    allowed_roles = (User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR)
    message = 'Audit access requires admin, inventory manager or auditor role.'


def has_role(user, *roles):
    return bool(user and user.is_authenticated and (user.is_superuser or user.role in roles))


def is_manager(user):
    return has_role(user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER)
