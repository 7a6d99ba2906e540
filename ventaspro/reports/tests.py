"""
Test suite for the reports module
Tests: Dashboard KPIs, report ranges, report summary, CSV export, caching
"""
import csv
import io
from datetime import date, datetime, timedelta
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from ventaspro.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ventaspro.parties.models import Customer
from ventaspro.pos.models import Sale
from ventaspro.reports.views import default_report_range, parse_report_range, get_dashboard_stats


class ReportRangeTests(TestCase):
    """Test report date range parsing"""

    def test_default_range(self):
        self.assertEqual(default_report_range(date(2025, 3, 15)), (date(2025, 1, 1), date(2025, 3, 15)))

    def test_default_range_crosses_year(self):
        self.assertEqual(default_report_range(date(2025, 2, 10)), (date(2024, 12, 1), date(2025, 2, 10)))

    def test_explicit_range(self):
        self.assertEqual(
            parse_report_range({'date_from': '2025-01-01', 'date_to': '2025-01-31'}),
            (date(2025, 1, 1), date(2025, 1, 31))
        )

    def test_invalid_range(self):
        with self.assertRaises(ValueError):
            parse_report_range({'date_from': '01/01/2025'})
        with self.assertRaises(ValueError):
            parse_report_range({'date_from': '2025-02-01', 'date_to': '2025-01-01'})


class DashboardTests(TestCase):
    """Test dashboard KPIs and their cache"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_dashboard_stats(self):
        customer = TestDataFactory.create_customer(name='Lucía')
        product = TestDataFactory.create_product(price=Decimal('2500.00'), stock=3, min_stock=5)
        TestDataFactory.create_product(stock=50, min_stock=5)
        TestDataFactory.create_sale(items=[(product, 2)], customer=customer)
        TestDataFactory.create_sale(items=[(product, 1)], status='pending')

        response = self.client.get('/api/v1/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(data['totalSales'], 7500.0)
        self.assertEqual(data['todaySales'], 7500.0)
        self.assertEqual(data['totalProducts'], 2)
        self.assertEqual(data['totalCustomers'], 1)
        self.assertEqual(data['pendingSales'], 1)
        self.assertEqual(data['totalCategories'], 2)
        self.assertEqual(data['lowStockItems'], 1)
        self.assertEqual(data['lowStockProducts'][0]['id'], product.id)
        self.assertEqual(data['lowStockProducts'][0]['quantity'], 0)
        self.assertEqual(len(data['recentSales']), 2)
        self.assertIn('Lucía', [sale['customer_name'] for sale in data['recentSales']])

    def test_min_stock_boundary(self):
        """Test a product exactly at its minimum is not counted as low"""
        TestDataFactory.create_product(stock=5, min_stock=5)
        response = self.client.get('/api/v1/dashboard/stats/')
        self.assertEqual(response.data['lowStockItems'], 0)

    def test_viewer_can_see_dashboard(self):
        viewer = TestDataFactory.create_user(role='viewer')
        self.client.authenticate_user(viewer)
        response = self.client.get('/api/v1/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_cached_until_data_changes(self):
        """Test KPIs are served from cache and refreshed on model writes"""
        day = timezone.localdate().isoformat()
        self.assertEqual(get_dashboard_stats(day)['totalCustomers'], 0)

        # bulk_create sends no post_save, so the cached value survives
        Customer.objects.bulk_create([Customer(name='Sin señal')])
        self.assertEqual(get_dashboard_stats(day)['totalCustomers'], 0)

        TestDataFactory.create_customer()
        self.assertEqual(get_dashboard_stats(day)['totalCustomers'], 2)


class ReportsSummaryTests(TestCase):
    """Test the reports summary and sales export"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        drinks = TestDataFactory.create_category(name='Bebidas')
        self.juice = TestDataFactory.create_product(name='Jugo', category=drinks, price=Decimal('3000.00'), stock=100)
        self.bread = TestDataFactory.create_product(name='Pan', price=Decimal('500.00'), stock=100)

    def move_to(self, sale, moment):
        Sale.objects.filter(pk=sale.pk).update(created_at=moment)

    def test_summary_counts_completed_sales_only(self):
        TestDataFactory.create_sale(items=[(self.juice, 2), (self.bread, 2)])
        TestDataFactory.create_sale(items=[(self.juice, 1)])
        TestDataFactory.create_sale(items=[(self.juice, 5)], status='pending')
        cancelled = TestDataFactory.create_sale(items=[(self.bread, 4)])
        cancelled.status = 'cancelled'
        cancelled.save()

        response = self.client.get('/api/v1/reports/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(data['totalSales'], 2)
        self.assertEqual(data['totalRevenue'], 10000.0)
        self.assertEqual(data['averageTicket'], 5000.0)
        self.assertEqual(data['topProducts'][0], {'id': self.juice.id, 'name': 'Jugo', 'quantity': 3, 'revenue': 9000.0})
        self.assertEqual(data['salesByMonth'][0]['month'], timezone.localdate().strftime('%Y-%m'))
        self.assertEqual(data['salesByMonth'][0]['sales'], 2)
        categories = {row['category']: row['revenue'] for row in data['salesByCategory']}
        self.assertEqual(categories['Bebidas'], 9000.0)

    def test_uncategorized_products(self):
        product = TestDataFactory.create_product(price=Decimal('100.00'))
        product.category = None
        product.save()
        TestDataFactory.create_sale(items=[(product, 1)])
        response = self.client.get('/api/v1/reports/summary/')
        self.assertEqual(response.data['salesByCategory'][0]['category'], 'Sin categoría')

    def test_explicit_range(self):
        """Test sales outside the range are left out"""
        old = TestDataFactory.create_sale(items=[(self.juice, 1)])
        self.move_to(old, timezone.make_aware(datetime(2024, 6, 15, 12, 0)))
        TestDataFactory.create_sale(items=[(self.bread, 1)])

        response = self.client.get('/api/v1/reports/summary/?date_from=2024-06-01&date_to=2024-06-30')
        self.assertEqual(response.data['period'], {'from': '2024-06-01', 'to': '2024-06-30'})
        self.assertEqual(response.data['totalSales'], 1)
        self.assertEqual(response.data['totalRevenue'], 3000.0)
        self.assertEqual(response.data['salesByMonth'], [{'month': '2024-06', 'sales': 1, 'revenue': 3000.0}])

    def test_default_range_excludes_old_sales(self):
        old = TestDataFactory.create_sale(items=[(self.juice, 1)])
        self.move_to(old, timezone.now() - timedelta(days=120))
        response = self.client.get('/api/v1/reports/summary/')
        self.assertEqual(response.data['totalSales'], 0)
        self.assertEqual(response.data['averageTicket'], 0.0)

    def test_invalid_range(self):
        response = self.client.get('/api/v1/reports/summary/?date_from=2025-13-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Rango de fechas no válido (use YYYY-MM-DD)')

    def test_sales_export(self):
        customer = TestDataFactory.create_customer(name='Tienda Sol')
        sale = TestDataFactory.create_sale(items=[(self.juice, 2)], customer=customer, payment_method='transfer')

        response = self.client.get('/api/v1/reports/sales-export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attachment; filename="reporte-ventas-', response['Content-Disposition'])

        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0], ['Reporte de Ventas'])
        self.assertEqual(rows[2], ['Total Ventas', '1'])
        self.assertEqual(rows[3], ['Ingresos Totales', '6.000,00 COP'])
        self.assertIn(['Jugo', '2', '6.000,00 COP'], rows)
        sale_row = rows[-1]
        self.assertEqual(sale_row[0], sale.reference)
        self.assertEqual(sale_row[2:4], ['Tienda Sol', 'Transferencia'])
        self.assertEqual(sale_row[-1], '6000.00')

    def test_cashier_cannot_read_reports(self):
        cashier = TestDataFactory.create_user(role='cashier')
        self.client.authenticate_user(cashier)
        response = self.client.get('/api/v1/reports/summary/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/reports/sales-export/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
