# common/permissions.py
from rest_framework import permissions

from common.roles import has_permission, is_admin, is_manager


def read_write(read_code, write_code):
    """permission map for a resource with one read and one write code"""
    return {
        "GET": read_code,
        "HEAD": read_code,
        "OPTIONS": read_code,
        "POST": write_code,
        "PUT": write_code,
        "PATCH": write_code,
        "DELETE": write_code,
    }


class IsBackOfficeUser(permissions.BasePermission):
    """Authenticated admin or manager."""

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        return is_admin(user) or is_manager(user)


class IsAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and is_admin(user))


class PermissionRequired(permissions.BasePermission):
    """
    View can define:
      required_permissions = {"GET": "read_products", "POST": "write_products"}
    If method not in dict -> allowed (subject to the other permission classes).
    """
    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        needed = getattr(view, "required_permissions", {}).get(request.method)
        if not needed:
            return True
        return has_permission(request.user, needed)
