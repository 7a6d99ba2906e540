# Generated manually to load the default units of measure

from django.db import migrations

from ventaspro.catalog.units import seed_units


def load_units(apps, schema_editor):
    UnitOfMeasure = apps.get_model('catalog', 'UnitOfMeasure')
    seed_units(UnitOfMeasure)


class Migration(migrations.Migration):

    dependencies = [
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(load_units, migrations.RunPython.noop),
    ]
