from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, F, Sum, DecimalField, ExpressionWrapper
from django.shortcuts import get_object_or_404
from .models import Inventory
from .serializers import InventorySerializer, InventoryUpdateSerializer, StockAdjustmentSerializer
from .services import adjust_stock
from ventaspro.core.permissions import resource_permission
from ventaspro.core.utils import create_audit_log, diff_fields, snapshot_fields

THRESHOLD_FIELDS = ['min_stock', 'max_stock']


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('inventory')])
def inventory_list(request):
    """List inventory rows (search, status filters) or create one for a product"""
    if request.method == 'GET':
        queryset = Inventory.objects.select_related('product', 'product__category', 'product__unit_of_measure')

        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(product__name__icontains=search) |
                Q(product__sku__icontains=search)
            )

        stock_status = request.query_params.get('status')
        if stock_status == 'low':
            queryset = queryset.filter(quantity__lte=F('min_stock'))
        elif stock_status == 'high':
            queryset = queryset.filter(quantity__gt=F('min_stock'), quantity__gte=F('max_stock'))
        elif stock_status == 'normal':
            queryset = queryset.filter(quantity__gt=F('min_stock'), quantity__lt=F('max_stock'))

        serializer = InventorySerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = InventorySerializer(data=request.data)
        if serializer.is_valid():
            inventory = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Inventory',
                object_id=inventory.id,
                object_name=inventory.product.name,
                object_reference=inventory.product.sku,
                changes={'quantity': inventory.quantity},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, resource_permission('inventory')])
def inventory_detail(request, pk):
    """Retrieve an inventory row or update its stock thresholds"""
    inventory = get_object_or_404(Inventory.objects.select_related('product'), pk=pk)

    if request.method == 'GET':
        serializer = InventorySerializer(inventory)
        return Response(serializer.data)

    old_data = snapshot_fields(inventory, THRESHOLD_FIELDS)
    serializer = InventoryUpdateSerializer(inventory, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Inventory',
            object_id=inventory.id,
            object_name=inventory.product.name,
            object_reference=inventory.product.sku,
            changes=diff_fields(inventory, old_data, THRESHOLD_FIELDS),
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('inventory', 'update')])
def inventory_adjust(request, pk):
    """Add, remove or set the stock of an inventory row"""
    get_object_or_404(Inventory, pk=pk)
    serializer = StockAdjustmentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    inventory, previous, expense = adjust_stock(
        pk, data['type'], data['quantity'], reason=data.get('reason', ''), user=request.user
    )

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='Inventory',
        object_id=inventory.id,
        object_name=inventory.product.name,
        object_reference=inventory.product.sku,
        changes={
            'type': data['type'],
            'quantity': data['quantity'],
            'reason': data.get('reason', ''),
            'old_quantity': previous,
            'new_quantity': inventory.quantity,
        },
    )

    response = InventorySerializer(inventory).data
    response['previous_quantity'] = previous
    response['expense_amount'] = str(expense.amount) if expense else None
    return Response(response)


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('inventory', 'read')])
def inventory_stats(request):
    """Totals for the inventory page"""
    queryset = Inventory.objects.all()
    value_expression = ExpressionWrapper(
        F('quantity') * F('product__cost'),
        output_field=DecimalField(max_digits=14, decimal_places=2)
    )
    totals = queryset.aggregate(
        total_items=Sum('quantity'),
        total_value=Sum(value_expression),
    )
    return Response({
        'totalItems': totals['total_items'] or 0,
        'lowStock': queryset.filter(quantity__lte=F('min_stock')).count(),
        'totalValue': totals['total_value'] or Decimal('0.00'),
        'outOfStock': queryset.filter(quantity=0).count(),
    })
