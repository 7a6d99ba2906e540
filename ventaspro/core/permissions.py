"""
Role based access control for employees.

Each role has a default permission matrix. An employee's custom
``permissions`` JSON is merged on top of it one resource at a time, so a
custom entry replaces the whole default entry for that resource.
"""
from rest_framework.permissions import BasePermission

RESOURCES = [
    'sales', 'products', 'inventory', 'customers', 'suppliers',
    'categories', 'employees', 'reports', 'cash_register', 'settings',
]


def _crud(create=False, read=False, update=False, delete=False):
    return {'create': create, 'read': read, 'update': update, 'delete': delete}


ROLE_PERMISSIONS = {
    'admin': {
        'sales': _crud(True, True, True, True),
        'products': _crud(True, True, True, True),
        'inventory': _crud(True, True, True, True),
        'customers': _crud(True, True, True, True),
        'suppliers': _crud(True, True, True, True),
        'categories': _crud(True, True, True, True),
        'employees': _crud(True, True, True, True),
        'reports': {'read': True},
        'cash_register': _crud(True, True, True, True),
        'settings': {'read': True, 'update': True},
    },
    'manager': {
        'sales': _crud(True, True, True),
        'products': _crud(True, True, True),
        'inventory': _crud(True, True, True),
        'customers': _crud(True, True, True),
        'suppliers': _crud(True, True, True),
        'categories': _crud(True, True, True),
        'employees': _crud(read=True),
        'reports': {'read': True},
        'cash_register': _crud(True, True),
        'settings': {'read': True, 'update': False},
    },
    'cashier': {
        'sales': _crud(True, True),
        'products': _crud(read=True),
        'inventory': _crud(read=True),
        'customers': _crud(True, True, True),
        'suppliers': _crud(),
        'categories': _crud(read=True),
        'employees': _crud(),
        'reports': {'read': False},
        'cash_register': _crud(True, True),
        'settings': {'read': False, 'update': False},
    },
    'viewer': {
        'sales': _crud(read=True),
        'products': _crud(read=True),
        'inventory': _crud(read=True),
        'customers': _crud(read=True),
        'suppliers': _crud(read=True),
        'categories': _crud(read=True),
        'employees': _crud(),
        'reports': {'read': True},
        'cash_register': _crud(read=True),
        'settings': {'read': False, 'update': False},
    },
}

METHOD_ACTIONS = {
    'GET': 'read',
    'HEAD': 'read',
    'OPTIONS': 'read',
    'POST': 'create',
    'PUT': 'update',
    'PATCH': 'update',
    'DELETE': 'delete',
}


def get_active_employee(user):
    """Return the active employee record for a user, or None"""
    if not user or not user.is_authenticated:
        return None
    employee = getattr(user, 'employee', None)
    if employee is None or employee.status != 'active':
        return None
    return employee


def get_role_permissions(role):
    """Default permission matrix for a role (a copy, safe to mutate)"""
    defaults = ROLE_PERMISSIONS.get(role)
    if defaults is None:
        return {}
    return {resource: dict(actions) for resource, actions in defaults.items()}


def get_effective_permissions(user):
    """Role defaults merged with the employee's custom permissions"""
    if user and user.is_authenticated and user.is_superuser:
        return get_role_permissions('admin')
    employee = get_active_employee(user)
    if employee is None:
        return {}
    permissions = get_role_permissions(employee.role)
    if not permissions:
        return {}
    for resource, actions in (employee.permissions or {}).items():
        if isinstance(actions, dict):
            permissions[resource] = dict(actions)
    return permissions


def user_can(user, resource, action):
    """Check a single resource/action pair for a user"""
    if user and user.is_authenticated and user.is_superuser:
        return True
    permissions = get_effective_permissions(user)
    return bool(permissions.get(resource, {}).get(action, False))


def resource_permission(resource, action=None):
    """
    Build a DRF permission class for a resource.

    The action defaults to the one implied by the HTTP method
    (GET -> read, POST -> create, PUT/PATCH -> update, DELETE -> delete).
    """
    class HasResourcePermission(BasePermission):
        message = 'Permission denied'

        def has_permission(self, request, view):
            required = action or METHOD_ACTIONS.get(request.method, 'read')
            return user_can(request.user, resource, required)

    HasResourcePermission.__name__ = f'Has{resource.title().replace("_", "")}Permission'
    return HasResourcePermission
