"""
Management command to create (or promote) an administrator with a login
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from ventaspro.core.models import Employee

User = get_user_model()


class Command(BaseCommand):
    help = "Creates a user with an active admin employee record"

    def add_arguments(self, parser):
        parser.add_argument('email', help='Login email')
        parser.add_argument('--password', help='Password (required when the user does not exist)')
        parser.add_argument('--name', help='Employee name (defaults to the email local part)')
        parser.add_argument('--superuser', action='store_true', help='Also grant Django admin access')

    @transaction.atomic
    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        if '@' not in email:
            raise CommandError('A valid email is required')

        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            password = options.get('password')
            if not password or len(password) < 6:
                raise CommandError('--password with at least 6 characters is required for a new user')
            user = User.objects.create_user(username=email, email=email, password=password)
            self.stdout.write(self.style.SUCCESS(f"Created user {email}"))
        elif options.get('password'):
            user.set_password(options['password'])
            user.save(update_fields=['password'])
            self.stdout.write(f"Updated password for {email}")

        if options['superuser'] and not user.is_superuser:
            user.is_staff = True
            user.is_superuser = True
            user.save(update_fields=['is_staff', 'is_superuser'])

        employee = Employee.objects.filter(user=user).first() or Employee.objects.filter(email__iexact=email).first()
        if employee is None:
            employee = Employee.objects.create(
                user=user,
                name=options.get('name') or email.split('@')[0],
                email=email,
                role='admin',
                status='active',
            )
            self.stdout.write(self.style.SUCCESS(f"Created admin employee {employee.name}"))
        else:
            employee.user = user
            employee.role = 'admin'
            employee.status = 'active'
            employee.save(update_fields=['user', 'role', 'status', 'updated_at'])
            self.stdout.write(self.style.SUCCESS(f"Promoted {employee.name} to admin"))
