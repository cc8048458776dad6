"""
Role-based access rules shared by the API permissions and the route guard.

A route declares the set of roles allowed to open it. Users outside that set
are sent to their own role's dashboard; anonymous or suspended users are sent
to the login page.
"""
from rest_framework.permissions import BasePermission

from .models import User

USER_ROLES = frozenset([User.ROLE_USER, User.ROLE_ADMIN, User.ROLE_SUPERADMIN])
ADMIN_ROLES = frozenset([User.ROLE_ADMIN, User.ROLE_SUPERADMIN])
SUPERADMIN_ROLES = frozenset([User.ROLE_SUPERADMIN])

ROLE_HOME = {
    User.ROLE_USER: '/user-dashboard',
    User.ROLE_ADMIN: '/admin-dashboard',
    User.ROLE_SUPERADMIN: '/superadmin-dashboard',
}
DEFAULT_HOME = '/dashboard'
LOGIN_PATH = '/auth'


def home_for_role(role):
    return ROLE_HOME.get(role, DEFAULT_HOME)


def has_role(user, roles):
    """True when an authenticated, active user holds one of ``roles``"""
    if not user or not getattr(user, 'is_authenticated', False):
        return False
    if not user.is_active:
        return False
    return getattr(user, 'role', None) in roles


def resolve_access(user, required_roles=None, redirect_to=LOGIN_PATH):
    """
    Decide whether ``user`` may open a route guarded by ``required_roles``.

    Returns a tuple ``(allowed, redirect)`` where ``redirect`` is None when
    access is allowed.
    """
    if not user or not getattr(user, 'is_authenticated', False) or not user.is_active:
        return False, redirect_to

    if not required_roles:
        return True, None

    if user.role and user.role in required_roles:
        return True, None

    return False, home_for_role(user.role)


def parse_roles(raw):
    """Parse a comma separated role list, ignoring blanks"""
    if not raw:
        return []
    return [r.strip() for r in raw.split(',') if r.strip()]


class IsAdminRole(BasePermission):
    """Allows access to admins and superadmins"""
    message = 'Administrator privileges required.'

    def has_permission(self, request, view):
        return has_role(request.user, ADMIN_ROLES)


class IsSuperAdminRole(BasePermission):
    """Allows access to superadmins only"""
    message = 'Super administrator privileges required.'

    def has_permission(self, request, view):
        return has_role(request.user, SUPERADMIN_ROLES)
