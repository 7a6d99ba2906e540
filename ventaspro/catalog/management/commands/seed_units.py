"""
Management command to load the default units of measure
"""
from django.core.management.base import BaseCommand
from ventaspro.catalog.models import UnitOfMeasure
from ventaspro.catalog.units import DEFAULT_UNITS, seed_units


class Command(BaseCommand):
    help = "Adds the default units of measure (unidad, kilogramo, litro...)"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete units that are not in use before seeding',
        )

    def handle(self, *args, **options):
        if options['clear']:
            deleted, _ = UnitOfMeasure.objects.filter(products__isnull=True).delete()
            self.stdout.write(self.style.WARNING(f"Removed {deleted} unused units."))

        created = seed_units(UnitOfMeasure)
        skipped = len(DEFAULT_UNITS) - created

        self.stdout.write(self.style.SUCCESS(f"Units created: {created}"))
        self.stdout.write(f"Units skipped (already exist): {skipped}")
        self.stdout.write(f"Total units in database: {UnitOfMeasure.objects.count()}")
