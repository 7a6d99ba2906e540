import csv
import logging
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.paginator import Paginator
from django.db.models import Count, Q, Sum
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from .models import Sale, CashRegister
from .filters import SaleFilter, CashRegisterFilter
from .serializers import (
    SaleSerializer, SaleListSerializer, SaleCreateSerializer, SaleStatusSerializer, CashRegisterSerializer
)
from .services import (
    record_sale, cancel_sale, change_sale_status,
    SaleError, InsufficientStockError
)
from ventaspro.core.permissions import resource_permission
from ventaspro.core.utils import create_audit_log

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _sale_queryset():
    return Sale.objects.select_related('customer', 'promotion', 'created_by')


# Sale views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('sales')])
def sale_list_create(request):
    """List sales (search, date, status, payment filters) or record a new sale"""
    if request.method == 'GET':
        queryset = _sale_queryset().annotate(annotated_item_count=Count('items'))
        filterset = SaleFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('-created_at')

        page = request.query_params.get('page')
        if not page:
            serializer = SaleListSerializer(queryset, many=True)
            return Response(serializer.data)

        try:
            limit = int(request.query_params.get('limit', 50))
        except ValueError:
            limit = 50
        paginator = Paginator(queryset, max(1, limit))
        page_obj = paginator.get_page(page)
        serializer = SaleListSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': paginator.per_page,
            'total_pages': paginator.num_pages,
        })

    serializer = SaleCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        sale = record_sale(
            items=data.get('items') or [],
            customer=data.get('customer'),
            discount_percent=data.get('discount', Decimal('0')),
            tax_percent=data.get('tax'),
            payment_method=data.get('payment_method', 'cash'),
            status=data.get('status', 'completed'),
            promotion=data.get('promotion'),
            auto_promotion=data.get('auto_promotion', False),
            user=request.user,
        )
    except InsufficientStockError as e:
        return Response({
            'error': str(e),
            'product': e.product.name,
            'requested': e.requested,
            'available': e.available,
        }, status=status.HTTP_400_BAD_REQUEST)
    except SaleError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='sale_create',
        model_name='Sale',
        object_id=sale.id,
        object_name=f"Venta #{sale.reference}",
        object_reference=sale.reference,
        changes={
            'total_amount': str(sale.total_amount),
            'status': sale.status,
            'payment_method': sale.payment_method,
            'customer': sale.customer.name if sale.customer else None,
            'items': [f"{item.product.name} x{item.quantity}" for item in sale.items.select_related('product')],
        },
    )

    sale = _sale_queryset().prefetch_related('items__product').get(pk=sale.pk)
    return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, resource_permission('sales')])
def sale_detail(request, pk):
    """Retrieve a sale with its items or change its status"""
    sale = get_object_or_404(_sale_queryset().prefetch_related('items__product'), pk=pk)

    if request.method == 'GET':
        return Response(SaleSerializer(sale).data)

    serializer = SaleStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = sale.status
    try:
        change_sale_status(sale.pk, serializer.validated_data['status'], user=request.user)
    except SaleError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    sale = _sale_queryset().prefetch_related('items__product').get(pk=sale.pk)
    if sale.status != old_status:
        create_audit_log(
            request=request,
            action='sale_cancel' if sale.status == 'cancelled' else 'sale_update',
            model_name='Sale',
            object_id=sale.id,
            object_name=f"Venta #{sale.reference}",
            object_reference=sale.reference,
            changes={'status': {'old': old_status, 'new': sale.status}},
        )
    return Response(SaleSerializer(sale).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('sales', 'update')])
def sale_cancel(request, pk):
    """Cancel a sale and restore its stock"""
    sale = get_object_or_404(Sale, pk=pk)
    old_status = sale.status
    try:
        sale = cancel_sale(sale.pk, user=request.user)
    except SaleError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='sale_cancel',
        model_name='Sale',
        object_id=sale.id,
        object_name=f"Venta #{sale.reference}",
        object_reference=sale.reference,
        changes={
            'status': {'old': old_status, 'new': sale.status},
            'total_amount': str(sale.total_amount),
        },
    )
    sale = _sale_queryset().prefetch_related('items__product').get(pk=sale.pk)
    return Response(SaleSerializer(sale).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('sales', 'read')])
def sale_stats(request):
    """Totals for the sales list, honouring the same filters"""
    filterset = SaleFilter(request.query_params, queryset=Sale.objects.all())
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = filterset.qs
    today = timezone.localdate()
    totals = queryset.aggregate(
        total=Sum('total_amount'),
        count=Count('id'),
        completed=Count('id', filter=Q(status='completed')),
        today=Count('id', filter=Q(created_at__date=today)),
    )
    return Response({
        'count': totals['count'] or 0,
        'totalAmount': totals['total'] or ZERO,
        'completed': totals['completed'] or 0,
        'today': totals['today'] or 0,
    })


# Cash register views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('cash_register')])
def cash_register_list_create(request):
    """List cash movements (date, type filters) or record a deposit, withdrawal or expense"""
    if request.method == 'GET':
        filterset = CashRegisterFilter(request.query_params, queryset=CashRegister.objects.select_related('created_by'))
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = CashRegisterSerializer(filterset.qs.order_by('-created_at'), many=True)
        return Response(serializer.data)
    else:
        serializer = CashRegisterSerializer(data=request.data)
        if serializer.is_valid():
            movement = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='cash_movement',
                model_name='CashRegister',
                object_id=movement.id,
                object_name=movement.get_type_display(),
                changes={'type': movement.type, 'amount': str(movement.amount), 'description': movement.description},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def calculate_balance(queryset):
    """Income (sales, deposits) minus outgoings (expenses, withdrawals)"""
    totals = queryset.aggregate(
        income=Sum('amount', filter=Q(type__in=CashRegister.INCOME_TYPES)),
        expenses=Sum('amount', filter=Q(type__in=CashRegister.OUTGOING_TYPES)),
    )
    income = totals['income'] or ZERO
    expenses = totals['expenses'] or ZERO
    return income, expenses, income - expenses


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('cash_register', 'read')])
def cash_register_balance(request):
    """Current balance of the (optionally filtered) movements"""
    filterset = CashRegisterFilter(request.query_params, queryset=CashRegister.objects.all())
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    income, expenses, balance = calculate_balance(filterset.qs)
    return Response({'income': income, 'expenses': expenses, 'balance': balance})


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('cash_register', 'read')])
def cash_register_today(request):
    """Income, expenses and net for today"""
    today = timezone.localdate()
    income, expenses, net = calculate_balance(CashRegister.objects.filter(created_at__date=today))
    return Response({'date': today.isoformat(), 'income': income, 'expenses': expenses, 'net': net})


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('cash_register', 'read')])
def cash_register_export(request):
    """Cash report as CSV"""
    filterset = CashRegisterFilter(request.query_params, queryset=CashRegister.objects.all())
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    movements = filterset.qs.order_by('-created_at')
    _, _, balance = calculate_balance(movements)
    today = timezone.localdate()

    response = HttpResponse(content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="reporte-caja-{today.isoformat()}.csv"'
    writer = csv.writer(response)
    writer.writerow(['Reporte de Caja'])
    writer.writerow(['Fecha', today.isoformat()])
    writer.writerow(['Balance Actual', f"{balance:.2f}"])
    writer.writerow([])
    writer.writerow(['Fecha', 'Tipo', 'Descripción', 'Monto'])
    for movement in movements:
        sign = '-' if movement.type in CashRegister.OUTGOING_TYPES else ''
        writer.writerow([
            timezone.localtime(movement.created_at).strftime('%Y-%m-%d %H:%M'),
            movement.get_type_display(),
            movement.description,
            f"{sign}{movement.amount:.2f}",
        ])
    logger.info(f"Cash report exported: {movements.count()} movements")
    return response
