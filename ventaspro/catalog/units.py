"""Default units of measure"""

DEFAULT_UNITS = [
    ('Unidad', 'und', 'unit'),
    ('Kilogramo', 'kg', 'weight'),
    ('Gramo', 'g', 'weight'),
    ('Litro', 'l', 'volume'),
    ('Mililitro', 'ml', 'volume'),
    ('Metro', 'm', 'length'),
    ('Metro cuadrado', 'm2', 'area'),
    ('Caja', 'caja', 'unit'),
    ('Paquete', 'paq', 'unit'),
    ('Docena', 'doc', 'unit'),
]


def seed_units(unit_model):
    """Create the default units that are missing; returns how many were created"""
    created = 0
    for name, abbreviation, category in DEFAULT_UNITS:
        _, was_created = unit_model.objects.get_or_create(
            abbreviation=abbreviation,
            defaults={'name': name, 'category': category, 'is_active': True},
        )
        if was_created:
            created += 1
    return created
