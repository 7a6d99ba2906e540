"""Utility functions for audit logging and auth error messages"""
import logging
from .models import AuditLog

logger = logging.getLogger(__name__)


# Known auth failures mapped to the messages shown to users
AUTH_ERROR_MESSAGES = [
    ('Invalid login credentials', 'Email o contraseña incorrectos. Verifica tus credenciales o regístrate si no tienes cuenta.'),
    ('User already registered', 'Este email ya está registrado. Intenta iniciar sesión.'),
    ('Password should be at least', 'La contraseña debe tener al menos 6 caracteres.'),
    ('Invalid email', 'Por favor ingresa un email válido.'),
]


def translate_auth_error(message):
    """Return the user-facing message for a raw auth error, or the message unchanged"""
    if not message:
        return message
    for needle, translated in AUTH_ERROR_MESSAGES:
        if needle in message:
            return translated
    return message


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, sale_create, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object
        object_reference: Reference identifier (e.g., SKU, sale reference)
    """
    if not action or not model_name or object_id is None:
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Audit failures never break the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def diff_fields(instance, old_data, fields):
    """Build an old/new changes dict for the given fields of a saved instance"""
    changes = {}
    for field in fields:
        new_value = getattr(instance, field, None)
        old_value = old_data.get(field)
        if str(old_value) != str(new_value):
            changes[field] = {'old': str(old_value) if old_value is not None else None,
                              'new': str(new_value) if new_value is not None else None}
    return changes


def snapshot_fields(instance, fields):
    """Capture field values before an update"""
    return {field: getattr(instance, field, None) for field in fields}
