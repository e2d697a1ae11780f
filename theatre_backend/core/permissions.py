"""Role-based access for the theatre API.

Each endpoint declares which roles may read (GET/HEAD/OPTIONS) and which may
write. Users without a role get nothing.
"""

from rest_framework.permissions import SAFE_METHODS, BasePermission

ROLE_ADMIN = 'admin'
ROLE_SCHEDULER = 'scheduler'
ROLE_STAFF = 'staff'

PLANNING_ROLES = frozenset({ROLE_ADMIN, ROLE_SCHEDULER})
ALL_ROLES = frozenset({ROLE_ADMIN, ROLE_SCHEDULER, ROLE_STAFF})


class RBACPermission(BasePermission):
    """Grant by role name: ``read_roles`` for safe methods, ``write_roles`` otherwise."""

    read_roles: frozenset = frozenset()
    write_roles: frozenset = frozenset()
    message = 'Your role is not allowed to perform this action.'

    def roles_for(self, method: str) -> frozenset:
        return self.read_roles if method in SAFE_METHODS else self.write_roles

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        return user.role_name in self.roles_for(request.method)
