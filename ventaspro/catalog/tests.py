"""
Test suite for the catalog module
Tests: Categories, units of measure, products (stock, SKU, audit), image compression
"""
import base64
import io
from decimal import Decimal
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase
from PIL import Image
from rest_framework import status
from ventaspro.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ventaspro.core.app_settings import save_app_settings
from ventaspro.core.models import AuditLog
from ventaspro.catalog.models import Category, UnitOfMeasure, Product
from ventaspro.catalog.images import (
    compress_image, fit_dimensions, jpeg_quality, validate_image_file, create_placeholder_image,
    ImageProcessingError, JPEG_DATA_URL_PREFIX, INVALID_TYPE_MESSAGE, TOO_LARGE_MESSAGE, MAX_IMAGE_SIZE
)
from ventaspro.catalog.units import DEFAULT_UNITS, seed_units
from ventaspro.catalog.utils import generate_unique_sku
from ventaspro.inventory.models import Inventory


def make_image_bytes(width, height, mode='RGB', fmt='PNG', color=(200, 30, 30)):
    buffer = io.BytesIO()
    if mode == 'RGBA':
        color = color + (128,)
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def decode_data_url(data_url):
    return Image.open(io.BytesIO(base64.b64decode(data_url[len(JPEG_DATA_URL_PREFIX):])))


class ImageCompressionTests(TestCase):
    """Test the Pillow based image routines"""

    def test_fit_landscape(self):
        """Test landscape images are bounded by width"""
        self.assertEqual(fit_dimensions(800, 400, 400, 400), (400, 200))

    def test_fit_portrait(self):
        """Test portrait images are bounded by height"""
        self.assertEqual(fit_dimensions(300, 600, 400, 400), (200, 400))

    def test_fit_square_uses_height(self):
        self.assertEqual(fit_dimensions(1000, 1000, 800, 500), (500, 500))

    def test_fit_never_enlarges(self):
        """Test small images keep their size"""
        self.assertEqual(fit_dimensions(100, 50, 400, 400), (100, 50))

    def test_compress_resizes_and_encodes_jpeg(self):
        """Test output is a JPEG data URL with the scaled dimensions"""
        result = compress_image(make_image_bytes(1200, 600))
        self.assertEqual((result.width, result.height), (400, 200))
        self.assertTrue(result.data_url.startswith(JPEG_DATA_URL_PREFIX))
        image = decode_data_url(result.data_url)
        self.assertEqual(image.format, 'JPEG')
        self.assertEqual(image.size, (400, 200))
        self.assertEqual(result.size, round(len(result.data_url) * 3 / 4))

    def test_compress_custom_bounds(self):
        result = compress_image(make_image_bytes(300, 900), max_width=100, max_height=300)
        self.assertEqual((result.width, result.height), (100, 300))

    def test_compress_transparent_png(self):
        """Test transparency is flattened before JPEG encoding"""
        result = compress_image(make_image_bytes(50, 50, mode='RGBA'))
        self.assertEqual(decode_data_url(result.data_url).mode, 'RGB')

    def test_compress_file_object(self):
        result = compress_image(io.BytesIO(make_image_bytes(20, 10)))
        self.assertEqual((result.width, result.height), (20, 10))

    def test_lower_quality_is_smaller(self):
        """Test the quality factor drives the encoded size"""
        buffer = io.BytesIO()
        noisy = Image.effect_noise((300, 300), 80).convert('RGB')
        noisy.save(buffer, format='PNG')
        raw = buffer.getvalue()
        high = compress_image(raw, quality=0.95)
        low = compress_image(raw, quality=0.2)
        self.assertLess(low.size, high.size)

    def test_compress_invalid_data(self):
        """Test undecodable input raises ImageProcessingError"""
        with self.assertRaises(ImageProcessingError):
            compress_image(b'not an image')
        with self.assertRaises(ImageProcessingError):
            compress_image(b'')

    def test_invalid_quality(self):
        with self.assertRaises(ValueError):
            jpeg_quality(0)
        with self.assertRaises(ValueError):
            compress_image(make_image_bytes(10, 10), quality=1.5)

    def test_validate_image_file(self):
        self.assertEqual(validate_image_file('image/png', 1024), (True, None))
        self.assertEqual(validate_image_file('image/gif', 1024), (False, INVALID_TYPE_MESSAGE))
        self.assertEqual(validate_image_file('image/jpeg', MAX_IMAGE_SIZE + 1), (False, TOO_LARGE_MESSAGE))

    def test_placeholder(self):
        image = decode_data_url(create_placeholder_image(120, 80))
        self.assertEqual(image.size, (120, 80))


class CategoryAPITests(TestCase):
    """Test Category API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_category(self):
        response = self.client.post('/api/v1/categories/', {'name': '  Bebidas ', 'description': 'Frías'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Bebidas')
        self.assertTrue(AuditLog.objects.filter(model_name='Category', action='create').exists())

    def test_duplicate_category(self):
        TestDataFactory.create_category(name='Bebidas')
        response = self.client.post('/api/v1/categories/', {'name': 'Bebidas'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_counts_active_products(self):
        """Test product_count only counts active products"""
        category = TestDataFactory.create_category(name='Snacks')
        TestDataFactory.create_product(category=category)
        TestDataFactory.create_product(category=category, is_active=False)
        response = self.client.get('/api/v1/categories/?search=snack')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['product_count'], 1)

    def test_delete_category_keeps_products(self):
        """Test products lose their category instead of being deleted"""
        category = TestDataFactory.create_category()
        product = TestDataFactory.create_product(category=category)
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        product.refresh_from_db()
        self.assertIsNone(product.category)

    def test_update_category_writes_audit_log(self):
        category = TestDataFactory.create_category(name='Lácteos')
        response = self.client.patch(f'/api/v1/categories/{category.id}/', {'description': 'Leche y quesos'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='Category', action='update')
        self.assertEqual(log.object_name, 'Lácteos')
        self.assertEqual(log.changes['description']['new'], 'Leche y quesos')

    def test_viewer_cannot_create(self):
        viewer = TestDataFactory.create_user(role='viewer')
        self.client.authenticate_user(viewer)
        response = self.client.post('/api/v1/categories/', {'name': 'Nueva'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UnitOfMeasureTests(TestCase):
    """Test units of measure and their seed data"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_default_units_seeded(self):
        """Test the data migration installs the default units"""
        for _, abbreviation, _ in DEFAULT_UNITS:
            self.assertTrue(UnitOfMeasure.objects.filter(abbreviation=abbreviation).exists())

    def test_seed_units_is_idempotent(self):
        self.assertEqual(seed_units(UnitOfMeasure), 0)

    def test_seed_units_command_clear(self):
        """Test --clear removes unused units before reseeding"""
        UnitOfMeasure.objects.create(name='Six pack', abbreviation='sixp', category='unit')
        call_command('seed_units', '--clear', stdout=io.StringIO())
        self.assertFalse(UnitOfMeasure.objects.filter(abbreviation='sixp').exists())
        self.assertEqual(UnitOfMeasure.objects.count(), len(DEFAULT_UNITS))

    def test_filter_by_category(self):
        response = self.client.get('/api/v1/units/?category=weight')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data)
        self.assertTrue(all(unit['category'] == 'weight' for unit in response.data))

    def test_create_unit(self):
        data = {'name': 'Six pack', 'abbreviation': 'sixp', 'category': 'unit'}
        response = self.client.post('/api/v1/units/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category_display'], 'Unidad')
        log = AuditLog.objects.get(model_name='UnitOfMeasure', action='create')
        self.assertEqual(log.object_reference, 'sixp')

    def test_update_and_delete_unit_write_audit_logs(self):
        unit = UnitOfMeasure.objects.create(name='Six pack', abbreviation='sixp', category='unit')
        response = self.client.patch(f'/api/v1/units/{unit.id}/', {'name': 'Paquete x6'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='UnitOfMeasure', action='update')
        self.assertEqual(log.changes['name'], {'old': 'Six pack', 'new': 'Paquete x6'})

        response = self.client.delete(f'/api/v1/units/{unit.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        log = AuditLog.objects.get(model_name='UnitOfMeasure', action='delete')
        self.assertEqual(log.object_id, str(unit.id))
        self.assertEqual(log.object_reference, 'sixp')


class ProductAPITests(TestCase):
    """Test Product API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.category = TestDataFactory.create_category(name='Lácteos')

    def test_create_product_with_initial_stock(self):
        """Test initial stock creates the inventory row with the low stock threshold"""
        save_app_settings({'lowStockThreshold': 7}, partial=True)
        data = {
            'name': 'Leche entera',
            'price': '4500.00',
            'cost': '3200.00',
            'category': self.category.id,
            'initial_stock': 20,
        }
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stock_quantity'], 20)
        self.assertEqual(response.data['min_stock'], 7)
        self.assertTrue(response.data['sku'].startswith('LECH-'))
        inventory = Inventory.objects.get(product_id=response.data['id'])
        self.assertEqual(inventory.max_stock, 100)

    def test_create_product_without_stock(self):
        """Test no inventory row is created for zero initial stock"""
        response = self.client.post('/api/v1/products/', {'name': 'Queso', 'price': '9000'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stock_quantity'], 0)
        self.assertFalse(Inventory.objects.filter(product_id=response.data['id']).exists())

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/products/', {'name': 'Queso', 'price': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('price', response.data)

    def test_duplicate_sku_rejected(self):
        TestDataFactory.create_product(sku='LEC-001')
        response = self.client.post('/api/v1/products/', {'name': 'Leche', 'price': '1', 'sku': 'lec-001'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sku', response.data)

    def test_generate_unique_sku(self):
        sku = generate_unique_sku('café molido')
        self.assertTrue(sku.startswith('CAFM-'))
        self.assertNotEqual(sku, generate_unique_sku('café molido'))
        self.assertTrue(generate_unique_sku(None).startswith('PRD-'))

    def test_list_filters(self):
        """Test search, category and low stock filters"""
        TestDataFactory.create_product(name='Yogur natural', category=self.category, stock=1, min_stock=5)
        TestDataFactory.create_product(name='Yogur griego', category=self.category, stock=50, min_stock=5)
        TestDataFactory.create_product(name='Pan', stock=0)

        response = self.client.get(f'/api/v1/products/?search=yogur&category={self.category.id}')
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/products/?search=yogur&low_stock=true')
        self.assertEqual([p['name'] for p in response.data], ['Yogur natural'])

        response = self.client.get('/api/v1/products/?out_of_stock=true')
        self.assertEqual([p['name'] for p in response.data], ['Pan'])

    def test_search_matches_whole_term(self):
        """Test a multi-word search matches the phrase, not each word separately"""
        TestDataFactory.create_product(name='Leche entera')
        TestDataFactory.create_product(name='Entera leche descremada')
        response = self.client.get('/api/v1/products/', {'search': '  leche entera '})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data], ['Leche entera'])

    def test_list_pagination(self):
        """Test pagination only when a page is requested"""
        for i in range(3):
            TestDataFactory.create_product(name=f'Producto {i}')
        response = self.client.get('/api/v1/products/')
        self.assertIsInstance(response.data, list)
        response = self.client.get('/api/v1/products/?page=2&limit=2')
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['previous'], 1)
        self.assertIsNone(response.data['next'])

    def test_price_change_is_audited(self):
        """Test price updates are logged as price changes with old/new values"""
        product = TestDataFactory.create_product(price=Decimal('1000.00'))
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'price': '1200.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='Product', action='price_change')
        self.assertEqual(log.changes['price'], {'old': '1000.00', 'new': '1200.00'})

    def test_update_without_sku_keeps_sku(self):
        product = TestDataFactory.create_product(sku='KEEP-1')
        response = self.client.put(f'/api/v1/products/{product.id}/', {'name': 'Renombrado', 'price': '10', 'sku': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.sku, 'KEEP-1')
        self.assertEqual(product.name, 'Renombrado')

    def test_delete_product(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(id=product.id).exists())

    def test_delete_product_with_sales(self):
        """Test products referenced by sales cannot be deleted"""
        product = TestDataFactory.create_product(stock=5)
        TestDataFactory.create_sale(user=self.user, items=[(product, 1)])
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Product.objects.filter(id=product.id).exists())

    def test_cashier_read_only(self):
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        self.assertEqual(self.client.get('/api/v1/products/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/products/', {'name': 'X', 'price': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductImageAPITests(TestCase):
    """Test image upload, removal and compression endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(name='Galletas')

    def upload(self, width=800, height=400, content_type='image/png', name='foto.png'):
        return SimpleUploadedFile(name, make_image_bytes(width, height), content_type=content_type)

    def test_upload_image(self):
        """Test the stored image is compressed and alt defaults to the product name"""
        response = self.client.post(
            f'/api/v1/products/{self.product.id}/image/', {'image': self.upload()}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual((response.data['width'], response.data['height']), (400, 200))
        self.product.refresh_from_db()
        self.assertTrue(self.product.image_url.startswith(JPEG_DATA_URL_PREFIX))
        self.assertEqual(self.product.image_alt, 'Galletas')
        self.assertTrue(AuditLog.objects.filter(action='image_upload').exists())

    def test_upload_invalid_type(self):
        response = self.client.post(
            f'/api/v1/products/{self.product.id}/image/',
            {'image': SimpleUploadedFile('a.gif', b'GIF89a', content_type='image/gif')},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], INVALID_TYPE_MESSAGE)

    def test_upload_corrupt_image(self):
        response = self.client.post(
            f'/api/v1/products/{self.product.id}/image/',
            {'image': SimpleUploadedFile('a.png', b'broken', content_type='image/png')},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_remove_image(self):
        self.product.image_url = 'data:image/jpeg;base64,AAAA'
        self.product.save()
        response = self.client.delete(f'/api/v1/products/{self.product.id}/image/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.product.refresh_from_db()
        self.assertEqual(self.product.image_url, '')

    def test_compress_endpoint(self):
        response = self.client.post(
            '/api/v1/images/compress/',
            {'image': self.upload(300, 900), 'max_width': 100, 'max_height': 300, 'quality': 0.5},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual((response.data['width'], response.data['height']), (100, 300))

    def test_placeholder_endpoint(self):
        response = self.client.get('/api/v1/images/placeholder/?width=100&height=50')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data_url'].startswith(JPEG_DATA_URL_PREFIX))
        response = self.client.get('/api/v1/images/placeholder/?width=0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
