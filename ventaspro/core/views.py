import logging
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from .filters import AuditLogFilter
from .models import Employee, Setting, AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer, SignupSerializer, EmployeeSerializer,
    SettingSerializer, AuditLogSerializer
)
from .permissions import resource_permission, get_effective_permissions, get_active_employee
from .app_settings import (
    get_app_settings, save_app_settings, reset_app_settings, SettingsValidationError
)
from .utils import create_audit_log, diff_fields, snapshot_fields, translate_auth_error

User = get_user_model()
logger = logging.getLogger(__name__)

USER_AUDIT_FIELDS = ['username', 'email', 'first_name', 'last_name', 'phone', 'is_active', 'is_staff', 'is_superuser']
SETTING_AUDIT_FIELDS = ['key', 'value', 'description']


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Token serializer that logs in with email (username still accepted)"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields[self.username_field].required = False
        self.fields['email'] = serializers.CharField(required=False)

    def validate(self, attrs):
        email = (attrs.pop('email', None) or '').strip()
        if email and not attrs.get(self.username_field):
            user = User.objects.filter(email__iexact=email).first()
            attrs[self.username_field] = user.get_username() if user else email
        if not attrs.get(self.username_field):
            raise serializers.ValidationError({'email': translate_auth_error('Invalid email')})

        try:
            data = super().validate(attrs)
        except AuthenticationFailed:
            raise AuthenticationFailed(translate_auth_error('Invalid login credentials'))

        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['email'] = user.email
        employee = get_active_employee(user)
        token['role'] = employee.role if employee else None
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


def build_user_payload(user):
    """User data with employee record and effective permissions"""
    user_data = UserSerializer(user).data
    employee = getattr(user, 'employee', None)
    user_data['employee'] = EmployeeSerializer(employee).data if employee else None
    user_data['role'] = employee.role if employee and employee.status == 'active' else None
    user_data['permissions'] = get_effective_permissions(user)
    user_data['is_admin'] = user.is_superuser or user_data['role'] == 'admin'
    return user_data


@api_view(['POST'])
@permission_classes([AllowAny])
def signup(request):
    """Create a login and its employee record; the first employee becomes admin"""
    serializer = SignupSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    email = data['email']

    with transaction.atomic():
        user = User.objects.create_user(
            username=email,
            email=email,
            password=data['password'],
            phone=data.get('phone') or None,
        )

        is_first_user = not Employee.objects.filter(user__isnull=False).exists()
        employee = Employee.objects.select_for_update().filter(email__iexact=email, user__isnull=True).first()
        if employee:
            employee.user = user
            if is_first_user:
                employee.role = 'admin'
                employee.status = 'active'
            employee.save()
        else:
            employee = Employee.objects.create(
                user=user,
                name=data.get('name') or email.split('@')[0],
                email=email,
                phone=data.get('phone') or '',
                role='admin' if is_first_user else 'cashier',
                status='active',
            )

    logger.info(f"Signup: user_id={user.id}, employee_id={employee.id}, role={employee.role}")
    create_audit_log(
        request=request,
        action='signup',
        model_name='User',
        object_id=user.id,
        object_name=email,
        user=user,
        changes={'role': employee.role},
    )

    token = CustomTokenObtainPairSerializer.get_token(user)
    return Response({
        'user': build_user_payload(user),
        'employee': EmployeeSerializer(employee).data,
        'access': str(token.access_token),
        'refresh': str(token),
        'message': 'Cuenta creada exitosamente. Ya puedes iniciar sesión.',
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with employee record and permissions"""
    return Response(build_user_payload(request.user))


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().order_by('username')
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='User',
                object_id=user.id,
                object_name=user.username,
                object_reference=user.email,
            )
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = snapshot_fields(user, USER_AUDIT_FIELDS)
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='User',
                object_id=user.id,
                object_name=user.username,
                object_reference=user.email,
                changes=diff_fields(user, old_data, USER_AUDIT_FIELDS),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        user_id, username, user_email = user.id, user.username, user.email
        user.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='User',
            object_id=user_id,
            object_name=username,
            object_reference=user_email,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Employee views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('employees')])
def employee_list_create(request):
    """List employees (search, role, status filters) or create one"""
    if request.method == 'GET':
        queryset = Employee.objects.select_related('user').all()

        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(email__icontains=search))

        role = request.query_params.get('role')
        if role and role != 'all':
            queryset = queryset.filter(role=role)

        employee_status = request.query_params.get('status')
        if employee_status and employee_status != 'all':
            queryset = queryset.filter(status=employee_status)

        serializer = EmployeeSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = EmployeeSerializer(data=request.data)
        if serializer.is_valid():
            employee = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Employee',
                object_id=employee.id,
                object_name=employee.name,
                changes={'role': employee.role, 'email': employee.email},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('employees')])
def employee_detail(request, pk):
    """Retrieve, update or delete an employee"""
    employee = get_object_or_404(Employee, pk=pk)

    if request.method == 'GET':
        serializer = EmployeeSerializer(employee)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_role, old_status = employee.role, employee.status
        serializer = EmployeeSerializer(employee, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            changes = {}
            if old_role != employee.role:
                changes['role'] = {'old': old_role, 'new': employee.role}
            if old_status != employee.status:
                changes['status'] = {'old': old_status, 'new': employee.status}
            if changes:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='Employee',
                    object_id=employee.id,
                    object_name=employee.name,
                    changes=changes,
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if employee.user_id and employee.user_id == request.user.id:
            return Response({'error': 'No puedes eliminar tu propio registro de empleado'}, status=status.HTTP_400_BAD_REQUEST)
        employee_id, employee_name = employee.id, employee.name
        employee.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Employee',
            object_id=employee_id,
            object_name=employee_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('employees', 'read')])
def employee_stats(request):
    """Headcount summary for the employees page"""
    active = Employee.objects.filter(status='active')
    return Response({
        'total': Employee.objects.count(),
        'active': active.count(),
        'admins': active.filter(role='admin').count(),
        'cashiers': active.filter(role='cashier').count(),
    })


# Application settings
@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def app_settings(request):
    """Read or update the company/application settings"""
    if request.method == 'GET':
        return Response(get_app_settings())

    if not get_effective_permissions(request.user).get('settings', {}).get('update', False):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    before = get_app_settings()
    try:
        values = save_app_settings(request.data, partial=request.method == 'PATCH')
    except SettingsValidationError as e:
        return Response(e.errors, status=status.HTTP_400_BAD_REQUEST)

    changes = {key: {'old': before.get(key), 'new': value} for key, value in values.items() if before.get(key) != value}
    if changes:
        create_audit_log(
            request=request,
            action='settings_update',
            model_name='Setting',
            object_id='app',
            changes=changes,
        )
    return Response(values)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('settings', 'update')])
def app_settings_reset(request):
    """Restore every application setting to its default"""
    values = reset_app_settings()
    create_audit_log(
        request=request,
        action='settings_reset',
        model_name='Setting',
        object_id='app',
    )
    return Response(values)


# Raw key/value settings (admin only)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.all().order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            setting = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Setting',
                object_id=setting.id,
                object_name=setting.key,
                changes={'value': setting.value},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = snapshot_fields(setting, SETTING_AUDIT_FIELDS)
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Setting',
                object_id=setting.id,
                object_name=setting.key,
                changes=diff_fields(setting, old_data, SETTING_AUDIT_FIELDS),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting_id, setting_key = setting.id, setting.key
        setting.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Setting',
            object_id=setting_id,
            object_name=setting_key,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user').all()

    # Non-admins only see their own entries
    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)

    filterset = AuditLogFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

    queryset = filterset.qs.order_by('-created_at')[:500]
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not request.user.is_staff and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Search products, customers, suppliers, categories and sales at once"""
    query = request.query_params.get('q', '').strip()

    if not query:
        return Response({
            'products': [],
            'customers': [],
            'suppliers': [],
            'categories': [],
            'sales': [],
        })

    from ventaspro.catalog.models import Product, Category
    from ventaspro.parties.models import Customer, Supplier
    from ventaspro.pos.models import Sale
    from ventaspro.catalog.filters import ProductFilter
    from ventaspro.catalog.serializers import ProductListSerializer, CategorySerializer
    from ventaspro.parties.serializers import CustomerSerializer, SupplierSerializer
    from ventaspro.pos.serializers import SaleListSerializer
    from ventaspro.pos.filters import SaleFilter

    permissions = get_effective_permissions(request.user)

    def can_read(resource):
        return permissions.get(resource, {}).get('read', False)

    results = {}

    if can_read('products'):
        products = ProductFilter({'search': query}, queryset=Product.objects.select_related(
            'category', 'supplier', 'unit_of_measure', 'inventory'
        )).qs[:20]
        results['products'] = ProductListSerializer(products, many=True).data
    else:
        results['products'] = []

    if can_read('customers'):
        customers = Customer.objects.filter(
            Q(name__icontains=query) |
            Q(email__icontains=query) |
            Q(phone__icontains=query) |
            Q(cedula__icontains=query)
        )[:20]
        results['customers'] = CustomerSerializer(customers, many=True).data
    else:
        results['customers'] = []

    if can_read('suppliers'):
        suppliers = Supplier.objects.filter(
            Q(name__icontains=query) |
            Q(contact_person__icontains=query) |
            Q(email__icontains=query)
        )[:20]
        results['suppliers'] = SupplierSerializer(suppliers, many=True).data
    else:
        results['suppliers'] = []

    if can_read('categories'):
        categories = Category.objects.filter(name__icontains=query)[:20]
        results['categories'] = CategorySerializer(categories, many=True).data
    else:
        results['categories'] = []

    if can_read('sales'):
        sales = SaleFilter({'search': query}, queryset=Sale.objects.select_related('customer')).qs[:20]
        results['sales'] = SaleListSerializer(sales, many=True).data
    else:
        results['sales'] = []

    return Response(results)
