from rest_framework import serializers
from .models import User, Employee, Setting, AuditLog
from .permissions import RESOURCES
from .utils import translate_auth_error


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active', 'is_staff', 'is_superuser', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class SignupSerializer(serializers.Serializer):
    """Email/password signup; accepts confirmPassword or password_confirm"""
    email = serializers.CharField()
    password = serializers.CharField(write_only=True)
    confirmPassword = serializers.CharField(write_only=True, required=False)
    password_confirm = serializers.CharField(write_only=True, required=False)
    name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)

    def validate_email(self, value):
        value = value.strip().lower()
        try:
            serializers.EmailField().run_validation(value)
        except serializers.ValidationError:
            raise serializers.ValidationError(translate_auth_error('Invalid email'))
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(translate_auth_error('User already registered'))
        return value

    def validate_password(self, value):
        if len(value) < 6:
            raise serializers.ValidationError(translate_auth_error('Password should be at least 6 characters'))
        return value

    def validate(self, attrs):
        confirm = attrs.get('confirmPassword', attrs.get('password_confirm'))
        if confirm is None or attrs['password'] != confirm:
            raise serializers.ValidationError({'confirmPassword': 'Las contraseñas no coinciden'})
        return attrs


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6)
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone']

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Las contraseñas no coinciden"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User.objects.create(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class EmployeeSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True)
    has_login = serializers.SerializerMethodField()

    class Meta:
        model = Employee
        fields = [
            'id', 'user', 'user_email', 'has_login', 'name', 'email', 'role', 'permissions', 'status',
            'hire_date', 'phone', 'address', 'salary', 'created_at', 'updated_at'
        ]
        read_only_fields = ['user', 'created_at', 'updated_at']

    def get_has_login(self, obj):
        return obj.user_id is not None

    def validate_salary(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('El salario no puede ser negativo')
        return value

    def validate_permissions(self, value):
        if value in (None, ''):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError('Permissions must be an object')
        for resource, actions in value.items():
            if resource not in RESOURCES:
                raise serializers.ValidationError(f'Unknown resource: {resource}')
            if not isinstance(actions, dict) or not all(isinstance(v, bool) for v in actions.values()):
                raise serializers.ValidationError(f'Actions for {resource} must map to true/false')
        return value


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['id', 'key', 'value', 'description', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
