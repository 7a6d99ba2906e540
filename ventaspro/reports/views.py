import csv
import logging
from datetime import datetime
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django.db.models import Count, F, Sum
from django.db.models.functions import TruncMonth
from django.http import HttpResponse
from django.utils import timezone

from ventaspro.catalog.models import Category, Product
from ventaspro.core.cache_utils import cached_query, DASHBOARD_KPI_CACHE_TTL, REPORTS_CACHE_TTL
from ventaspro.core.permissions import resource_permission
from ventaspro.inventory.models import Inventory
from ventaspro.parties.models import Customer, Supplier
from ventaspro.pos.models import Sale, SaleItem
from ventaspro.pricing.services import format_currency

logger = logging.getLogger('ventaspro.reports')

ZERO = Decimal('0.00')
UNCATEGORIZED = 'Sin categoría'


def default_report_range(today=None):
    """First day of the month two months back, through today"""
    today = today or timezone.localdate()
    year, month = today.year, today.month - 2
    if month < 1:
        month += 12
        year -= 1
    return today.replace(year=year, month=month, day=1), today


def parse_report_range(query_params):
    """
    Read date_from/date_to (YYYY-MM-DD) from the query string.

    Raises ValueError for malformed dates or an inverted range.
    """
    default_from, default_to = default_report_range()
    date_from = query_params.get('date_from')
    date_to = query_params.get('date_to')
    date_from = datetime.strptime(date_from, '%Y-%m-%d').date() if date_from else default_from
    date_to = datetime.strptime(date_to, '%Y-%m-%d').date() if date_to else default_to
    if date_from > date_to:
        raise ValueError('date_from must not be after date_to')
    return date_from, date_to


def completed_sales(date_from, date_to):
    return Sale.objects.filter(
        status='completed',
        created_at__date__gte=date_from,
        created_at__date__lte=date_to,
    )


@cached_query(cache_ttl=DASHBOARD_KPI_CACHE_TTL, key_prefix="dashboard_kpis")
def get_dashboard_stats(day):
    """KPIs, recent sales and low stock rows for the dashboard"""
    sales = Sale.objects.aggregate(total=Sum('total_amount'))
    today_sales = Sale.objects.filter(created_at__date=day).aggregate(total=Sum('total_amount'))

    low_stock = Inventory.objects.select_related('product').filter(
        quantity__lt=F('min_stock')
    ).order_by('quantity', 'product__name')

    recent_sales = Sale.objects.select_related('customer').order_by('-created_at')[:5]

    return {
        'totalSales': float(sales['total'] or ZERO),
        'todaySales': float(today_sales['total'] or ZERO),
        'totalProducts': Product.objects.count(),
        'lowStockItems': low_stock.count(),
        'totalCustomers': Customer.objects.count(),
        'pendingSales': Sale.objects.filter(status='pending').count(),
        'totalCategories': Category.objects.count(),
        'totalSuppliers': Supplier.objects.count(),
        'recentSales': [
            {
                'id': sale.id,
                'reference': sale.reference,
                'total_amount': float(sale.total_amount),
                'status': sale.status,
                'created_at': sale.created_at.isoformat(),
                'customer_name': sale.customer.name if sale.customer else None,
            }
            for sale in recent_sales
        ],
        'lowStockProducts': [
            {
                'id': row.product_id,
                'name': row.product.name,
                'quantity': row.quantity,
                'min_stock': row.min_stock,
            }
            for row in low_stock
        ],
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    """Dashboard KPIs"""
    today = timezone.localdate()
    data = get_dashboard_stats(today.isoformat())
    logger.info(f"Dashboard stats served (user: {request.user.username})")
    return Response(data)


def _top_products(items, limit=5):
    rows = items.values('product_id', 'product__name').annotate(
        quantity=Sum('quantity'),
        revenue=Sum('total_price'),
    ).order_by('-revenue', 'product__name')[:limit]
    return [
        {
            'id': row['product_id'],
            'name': row['product__name'],
            'quantity': row['quantity'] or 0,
            'revenue': float(row['revenue'] or ZERO),
        }
        for row in rows
    ]


def _sales_by_category(items):
    rows = items.values('product__category__name').annotate(
        quantity=Sum('quantity'),
        revenue=Sum('total_price'),
    ).order_by('-revenue')
    return [
        {
            'category': row['product__category__name'] or UNCATEGORIZED,
            'quantity': row['quantity'] or 0,
            'revenue': float(row['revenue'] or ZERO),
        }
        for row in rows
    ]


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix="reports_summary")
def get_reports_summary(date_from, date_to):
    """Revenue, monthly trend, top products and category split for completed sales"""
    sales = completed_sales(date_from, date_to)
    totals = sales.aggregate(
        count=Count('id'),
        revenue=Sum('total_amount'),
    )
    total_sales = totals['count'] or 0
    total_revenue = totals['revenue'] or ZERO
    average_ticket = (total_revenue / total_sales) if total_sales else ZERO

    by_month = sales.annotate(
        month=TruncMonth('created_at')
    ).values('month').annotate(
        sales=Count('id'),
        revenue=Sum('total_amount'),
    ).order_by('month')

    items = SaleItem.objects.filter(sale__in=sales)

    return {
        'period': {
            'from': date_from.isoformat(),
            'to': date_to.isoformat(),
        },
        'totalSales': total_sales,
        'totalRevenue': float(total_revenue),
        'totalProducts': Product.objects.count(),
        'totalCustomers': Customer.objects.count(),
        'averageTicket': float(average_ticket.quantize(Decimal('0.01'))),
        'salesByMonth': [
            {
                'month': row['month'].strftime('%Y-%m'),
                'sales': row['sales'],
                'revenue': float(row['revenue'] or ZERO),
            }
            for row in by_month
        ],
        'topProducts': _top_products(items),
        'salesByCategory': _sales_by_category(items),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('reports', 'read')])
def reports_summary(request):
    """Sales report for a date range (defaults to the current and two previous months)"""
    try:
        date_from, date_to = parse_report_range(request.query_params)
    except ValueError as e:
        logger.warning(f"Invalid report range from {request.user.username}: {str(e)}")
        return Response({'error': 'Rango de fechas no válido (use YYYY-MM-DD)'}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"User {request.user.username} requested report summary ({date_from} - {date_to})")
    return Response(get_reports_summary(date_from, date_to))


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('reports', 'read')])
def sales_export(request):
    """Sales report for a date range as CSV"""
    try:
        date_from, date_to = parse_report_range(request.query_params)
    except ValueError:
        return Response({'error': 'Rango de fechas no válido (use YYYY-MM-DD)'}, status=status.HTTP_400_BAD_REQUEST)

    summary = get_reports_summary(date_from, date_to)
    sales = completed_sales(date_from, date_to).select_related('customer').order_by('created_at')

    response = HttpResponse(content_type='text/csv; charset=utf-8')
    filename = f"reporte-ventas-{timezone.localdate().isoformat()}.csv"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'

    writer = csv.writer(response)
    writer.writerow(['Reporte de Ventas'])
    writer.writerow(['Período', f"{date_from.isoformat()} - {date_to.isoformat()}"])
    writer.writerow(['Total Ventas', summary['totalSales']])
    writer.writerow(['Ingresos Totales', format_currency(summary['totalRevenue'])])
    writer.writerow([])
    writer.writerow(['Top Productos'])
    writer.writerow(['Producto', 'Cantidad', 'Ingresos'])
    for product in summary['topProducts']:
        writer.writerow([product['name'], product['quantity'], format_currency(product['revenue'])])
    writer.writerow([])
    writer.writerow(['Ventas'])
    writer.writerow(['Venta', 'Fecha', 'Cliente', 'Método de pago', 'Subtotal', 'Descuento', 'Impuesto', 'Total'])
    for sale in sales:
        writer.writerow([
            sale.reference,
            timezone.localtime(sale.created_at).strftime('%Y-%m-%d %H:%M'),
            sale.customer.name if sale.customer else '',
            sale.get_payment_method_display(),
            f"{sale.subtotal:.2f}",
            f"{sale.discount:.2f}",
            f"{sale.tax:.2f}",
            f"{sale.total_amount:.2f}",
        ])

    logger.info(f"Sales report exported ({date_from} - {date_to}) by {request.user.username}")
    return response
