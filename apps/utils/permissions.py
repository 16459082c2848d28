from rest_framework import permissions


class IsStaffUser(permissions.BasePermission):
    """
    Staff users are the admins of the back office.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_staff)
