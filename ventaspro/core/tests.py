"""
Test suite for the core module
Tests: Signup/login, employee roles and permissions, application settings, audit logs, search, cache helpers
"""
from io import StringIO
from decimal import Decimal
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from ventaspro.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ventaspro.core.models import User, Employee, AuditLog
from ventaspro.core.permissions import get_effective_permissions, user_can
from ventaspro.core.app_settings import (
    get_app_settings, get_tax_rate, save_app_settings, validate_app_settings,
    SettingsValidationError, DEFAULT_SETTINGS
)
from ventaspro.core.cache_utils import make_cache_key, invalidate_prefix, cached_query
from ventaspro.core.utils import translate_auth_error, create_audit_log


class AuthTests(TestCase):
    """Test signup, login and the current user endpoint"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def signup(self, email='ana@example.com', password='secret123', confirm=None, **extra):
        data = {'email': email, 'password': password, 'confirmPassword': confirm or password}
        data.update(extra)
        return self.client.post('/api/v1/auth/signup/', data, format='json')

    def test_first_signup_becomes_admin(self):
        """Test the first account gets an active admin employee"""
        response = self.signup(name='Ana')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['employee']['role'], 'admin')
        self.assertEqual(response.data['user']['role'], 'admin')
        self.assertTrue(response.data['user']['is_admin'])

    def test_later_signup_becomes_cashier(self):
        """Test accounts after the first one start as cashiers"""
        self.signup()
        response = self.signup(email='luis@example.com')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['employee']['role'], 'cashier')

    def test_signup_links_existing_employee(self):
        """Test signup attaches the login to an employee created beforehand"""
        TestDataFactory.create_user(email='owner@example.com')
        employee = TestDataFactory.create_employee(email='maria@example.com', role='manager')
        response = self.signup(email='maria@example.com')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        employee.refresh_from_db()
        self.assertIsNotNone(employee.user)
        self.assertEqual(employee.role, 'manager')

    def test_signup_password_mismatch(self):
        """Test mismatched confirmation is rejected"""
        response = self.signup(confirm='different1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('confirmPassword', response.data)

    def test_signup_short_password(self):
        """Test passwords under 6 characters are rejected with the translated message"""
        response = self.signup(password='abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['password'][0]), 'La contraseña debe tener al menos 6 caracteres.')

    def test_signup_duplicate_email(self):
        """Test registering the same email twice fails"""
        self.signup()
        response = self.signup()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['email'][0]), 'Este email ya está registrado. Intenta iniciar sesión.')

    def test_login_with_email(self):
        """Test obtaining tokens with email and password"""
        self.signup()
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'ana@example.com', 'password': 'secret123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_login_wrong_password(self):
        """Test wrong credentials return 401"""
        self.signup()
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'ana@example.com', 'password': 'wrongpass'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        """Test refreshing an access token"""
        refresh = self.signup().data['refresh']
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me(self):
        """Test the current user payload carries role and permissions"""
        user = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], 'cashier')
        self.assertTrue(response.data['permissions']['sales']['create'])
        self.assertFalse(response.data['permissions']['suppliers']['read'])

    def test_me_requires_authentication(self):
        """Test anonymous access is rejected"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_translate_auth_error(self):
        """Test unknown messages pass through unchanged"""
        self.assertEqual(translate_auth_error('Something else'), 'Something else')
        self.assertEqual(
            translate_auth_error('Invalid login credentials'),
            'Email o contraseña incorrectos. Verifica tus credenciales o regístrate si no tienes cuenta.'
        )


class PermissionTests(TestCase):
    """Test role defaults, custom overrides and the resource permission class"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_role_defaults(self):
        """Test the default matrices per role"""
        manager = TestDataFactory.create_user(role='manager')
        viewer = TestDataFactory.create_user(role='viewer')
        self.assertTrue(user_can(manager, 'products', 'update'))
        self.assertFalse(user_can(manager, 'products', 'delete'))
        self.assertTrue(user_can(viewer, 'reports', 'read'))
        self.assertFalse(user_can(viewer, 'sales', 'create'))

    def test_custom_permissions_replace_resource(self):
        """Test a custom entry replaces the whole default entry for that resource"""
        user = TestDataFactory.create_user(role=None)
        TestDataFactory.create_employee(
            user=user, role='cashier',
            permissions={'suppliers': {'read': True}}
        )
        permissions = get_effective_permissions(user)
        self.assertEqual(permissions['suppliers'], {'read': True})
        self.assertTrue(permissions['sales']['create'])

    def test_inactive_employee_has_no_permissions(self):
        """Test inactive employees lose every permission"""
        user = TestDataFactory.create_user(role='admin', employee_status='inactive')
        self.assertEqual(get_effective_permissions(user), {})
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_without_employee(self):
        """Test a login without an employee record cannot reach resources"""
        user = TestDataFactory.create_user(role=None)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_superuser_has_full_access(self):
        """Test superusers pass every check"""
        user = TestDataFactory.create_user(role=None, is_superuser=True, is_staff=True)
        self.assertTrue(user_can(user, 'employees', 'delete'))
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/suppliers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_cashier_cannot_create_supplier(self):
        """Test method based action mapping"""
        user = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/suppliers/', {'name': 'Proveedor'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UserAPITests(TestCase):
    """Test User API endpoints (staff only)"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_user(is_staff=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_user(self):
        data = {
            'username': 'caja2',
            'email': 'caja2@example.com',
            'password': 'secreto1',
            'password_confirm': 'secreto1',
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(User.objects.get(username='caja2').check_password('secreto1'))
        log = AuditLog.objects.get(model_name='User', action='create')
        self.assertEqual(log.object_name, 'caja2')
        self.assertEqual(log.user, self.admin)

    def test_password_mismatch(self):
        data = {'username': 'x', 'email': 'x@example.com', 'password': 'secreto1', 'password_confirm': 'otro123'}
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_update_and_delete(self):
        user = TestDataFactory.create_user(role=None)
        response = self.client.patch(f'/api/v1/users/{user.id}/', {'phone': '3100000000'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], '3100000000')
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(id=user.id).exists())
        update_log = AuditLog.objects.get(model_name='User', action='update')
        self.assertEqual(update_log.changes['phone']['new'], '3100000000')
        delete_log = AuditLog.objects.get(model_name='User', action='delete')
        self.assertEqual(delete_log.object_id, str(user.id))
        self.assertEqual(delete_log.object_name, user.username)

    def test_non_staff_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class EmployeeAPITests(TestCase):
    """Test Employee API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(role='admin')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_employee(self):
        """Test creating an employee with custom permissions"""
        data = {
            'name': 'Carlos Pérez',
            'email': 'carlos@example.com',
            'role': 'cashier',
            'permissions': {'reports': {'read': True}},
        }
        response = self.client.post('/api/v1/employees/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['has_login'])
        self.assertTrue(AuditLog.objects.filter(model_name='Employee', action='create').exists())

    def test_create_employee_unknown_resource(self):
        """Test permissions for unknown resources are rejected"""
        data = {
            'name': 'Carlos',
            'email': 'carlos@example.com',
            'permissions': {'spaceships': {'read': True}},
        }
        response = self.client.post('/api/v1/employees/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_salary(self):
        """Test negative salaries are rejected"""
        data = {'name': 'Carlos', 'email': 'carlos@example.com', 'salary': '-1'}
        response = self.client.post('/api/v1/employees/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_employees(self):
        """Test role filter and search"""
        TestDataFactory.create_employee(name='Laura Gómez', role='manager')
        response = self.client.get('/api/v1/employees/?role=manager&search=laura')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['name'], 'Laura Gómez')

    def test_update_role_is_audited(self):
        """Test role changes write an audit entry"""
        employee = TestDataFactory.create_employee(role='cashier')
        response = self.client.patch(f'/api/v1/employees/{employee.id}/', {'role': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.filter(model_name='Employee', action='update').first()
        self.assertEqual(log.changes['role'], {'old': 'cashier', 'new': 'manager'})

    def test_cannot_delete_own_employee(self):
        """Test an admin cannot delete their own employee record"""
        response = self.client.delete(f'/api/v1/employees/{self.user.employee.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_employee(self):
        """Test deleting another employee"""
        employee = TestDataFactory.create_employee()
        response = self.client.delete(f'/api/v1/employees/{employee.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Employee.objects.filter(id=employee.id).exists())

    def test_employee_stats(self):
        """Test headcount summary"""
        TestDataFactory.create_employee(role='cashier')
        TestDataFactory.create_employee(role='cashier', status='inactive')
        response = self.client.get('/api/v1/employees/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['active'], 2)
        self.assertEqual(response.data['admins'], 1)
        self.assertEqual(response.data['cashiers'], 1)

    def test_cashier_cannot_list_employees(self):
        """Test cashiers have no access to employees"""
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        response = self.client.get('/api/v1/employees/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AppSettingsTests(TestCase):
    """Test application settings storage and endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(role='admin')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_defaults(self):
        """Test defaults are returned when nothing is stored"""
        response = self.client.get('/api/v1/app-settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, DEFAULT_SETTINGS)
        self.assertEqual(get_tax_rate(), Decimal('19'))

    def test_patch_settings(self):
        """Test partial update keeps other values"""
        response = self.client.patch('/api/v1/app-settings/', {'taxRate': 16, 'companyName': 'Tienda'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['taxRate'], 16)
        self.assertEqual(response.data['companyName'], 'Tienda')
        self.assertEqual(response.data['currency'], 'COP')
        self.assertEqual(get_tax_rate(), Decimal('16'))
        self.assertTrue(AuditLog.objects.filter(action='settings_update').exists())

    def test_invalid_settings(self):
        """Test validation errors per key"""
        response = self.client.patch('/api/v1/app-settings/', {
            'taxRate': 150, 'currency': 'PESOS', 'theme': 'blue', 'lowStockThreshold': -1
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(set(response.data.keys()), {'taxRate', 'currency', 'theme', 'lowStockThreshold'})

    def test_put_fills_defaults(self):
        """Test a full update resets missing keys to defaults"""
        save_app_settings({'companyName': 'Tienda'}, partial=True)
        response = self.client.put('/api/v1/app-settings/', {'taxRate': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['companyName'], DEFAULT_SETTINGS['companyName'])

    def test_boolean_coercion(self):
        """Test string booleans are normalised"""
        cleaned = validate_app_settings({'autoBackup': 'false', 'enableNotifications': 'yes'}, partial=True)
        self.assertEqual(cleaned, {'autoBackup': False, 'enableNotifications': True})

    def test_validation_error_carries_fields(self):
        with self.assertRaises(SettingsValidationError) as ctx:
            validate_app_settings({'taxRate': 'abc'}, partial=True)
        self.assertIn('taxRate', ctx.exception.errors)

    def test_reset(self):
        """Test reset restores defaults"""
        save_app_settings({'taxRate': 8}, partial=True)
        response = self.client.post('/api/v1/app-settings/reset/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(get_app_settings()['taxRate'], DEFAULT_SETTINGS['taxRate'])

    def test_cashier_cannot_update(self):
        """Test reading is open but updating needs settings.update"""
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        self.assertEqual(self.client.get('/api/v1/app-settings/').status_code, status.HTTP_200_OK)
        response = self.client.patch('/api/v1/app-settings/', {'taxRate': 10}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_raw_setting_crud_is_audited(self):
        """Test raw key/value settings write an audit entry per change"""
        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        response = self.client.post('/api/v1/settings/', {'key': 'printerName', 'value': '"EPSON"'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting_id = response.data['id']
        self.assertTrue(AuditLog.objects.filter(model_name='Setting', action='create', object_name='printerName').exists())

        response = self.client.patch(f'/api/v1/settings/{setting_id}/', {'value': '"ZEBRA"'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='Setting', action='update')
        self.assertEqual(log.changes['value'], {'old': '"EPSON"', 'new': '"ZEBRA"'})

        response = self.client.delete(f'/api/v1/settings/{setting_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(model_name='Setting', action='delete', object_id=str(setting_id)).exists())


class AuditLogTests(TestCase):
    """Test audit log helpers and endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(role='admin')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_audit_log_requires_fields(self):
        """Test incomplete entries are skipped"""
        self.assertIsNone(create_audit_log(action='create', model_name='Product'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_non_staff_sees_own_entries(self):
        """Test non-staff users only see their own entries"""
        other = TestDataFactory.create_user()
        create_audit_log(action='create', model_name='Product', object_id=1, user=other)
        create_audit_log(action='update', model_name='Product', object_id=1, user=self.user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'update')

    def test_filter_by_action(self):
        staff = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(staff)
        create_audit_log(action='create', model_name='Product', object_id=1, user=self.user)
        create_audit_log(action='delete', model_name='Product', object_id=1, user=self.user)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(len(response.data), 1)

    def test_filter_by_model_and_date(self):
        create_audit_log(action='create', model_name='Product', object_id=1, user=self.user)
        create_audit_log(action='create', model_name='Customer', object_id=2, user=self.user)
        today = timezone.localdate().isoformat()
        response = self.client.get(f'/api/v1/audit-logs/?model=Customer&date_from={today}&date_to={today}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['model_name'] for row in response.data], ['Customer'])

    def test_malformed_date_rejected(self):
        """Test unparseable dates return a validation error"""
        response = self.client.get('/api/v1/audit-logs/?date_from=notadate')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data)


class GlobalSearchTests(TestCase):
    """Test the cross-entity search endpoint"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_empty_query(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['products'], [])

    def test_search_respects_permissions(self):
        """Test results are limited to readable resources"""
        TestDataFactory.create_product(name='Café Premium')
        TestDataFactory.create_supplier(name='Café Distribuciones')
        user = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/search/?q=Café')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['products']), 1)
        self.assertEqual(response.data['suppliers'], [])


class CacheUtilsTests(TestCase):
    """Test cache key generations"""

    def setUp(self):
        cache.clear()

    def test_invalidate_prefix_changes_keys(self):
        before = make_cache_key('dashboard_kpis', '2025-01-01')
        self.assertEqual(before, make_cache_key('dashboard_kpis', '2025-01-01'))
        invalidate_prefix('dashboard_kpis')
        self.assertNotEqual(before, make_cache_key('dashboard_kpis', '2025-01-01'))

    def test_cached_query(self):
        calls = []

        @cached_query(cache_ttl=60, key_prefix='test_prefix')
        def expensive(value):
            calls.append(value)
            return {'value': value}

        self.assertEqual(expensive(1), {'value': 1})
        self.assertEqual(expensive(1), {'value': 1})
        self.assertEqual(len(calls), 1)
        invalidate_prefix('test_prefix')
        expensive(1)
        self.assertEqual(len(calls), 2)


class CreateAdminEmployeeCommandTests(TestCase):
    """Test the create_admin_employee management command"""

    def test_creates_user_and_admin(self):
        out = StringIO()
        call_command('create_admin_employee', 'jefe@example.com', '--password', 'secret123', stdout=out)
        user = User.objects.get(email='jefe@example.com')
        self.assertTrue(user.check_password('secret123'))
        self.assertEqual(user.employee.role, 'admin')
        self.assertIn('Created user', out.getvalue())

    def test_promotes_existing_employee(self):
        employee = TestDataFactory.create_employee(email='caja@example.com', role='cashier', status='inactive')
        call_command('create_admin_employee', 'caja@example.com', '--password', 'secret123', stdout=StringIO())
        employee.refresh_from_db()
        self.assertEqual(employee.role, 'admin')
        self.assertEqual(employee.status, 'active')
        self.assertIsNotNone(employee.user)

    def test_requires_password_for_new_user(self):
        with self.assertRaises(CommandError):
            call_command('create_admin_employee', 'nuevo@example.com', stdout=StringIO())
