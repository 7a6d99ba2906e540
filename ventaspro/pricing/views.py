import logging
from datetime import timedelta
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from .models import Promotion
from .serializers import PromotionSerializer, ApplicablePromotionsSerializer
from .services import (
    validate_promotion_data, get_applicable_promotions, cart_lines_from_products, promotion_status
)
from ventaspro.core.permissions import resource_permission, get_active_employee
from ventaspro.core.utils import create_audit_log

logger = logging.getLogger(__name__)

VALIDATED_FIELDS = ['name', 'type', 'value', 'start_date', 'end_date', 'conditions', 'max_uses']


def _promotion_queryset():
    return Promotion.objects.select_related('created_by').prefetch_related('products', 'categories')


def _validation_payload(request, promotion=None):
    """Incoming data merged over the stored promotion, for the business rules"""
    payload = {}
    if promotion is not None:
        payload = {field: getattr(promotion, field) for field in VALIDATED_FIELDS}
    for field in VALIDATED_FIELDS:
        if field in request.data:
            payload[field] = request.data.get(field)
    return payload


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('products')])
def promotion_list_create(request):
    """List promotions (search, status, type filters) or create one"""
    if request.method == 'GET':
        queryset = _promotion_queryset()

        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(description__icontains=search))

        promotion_type = request.query_params.get('type')
        if promotion_type and promotion_type != 'all':
            queryset = queryset.filter(type=promotion_type)

        promotions = list(queryset)
        promotion_state = request.query_params.get('status')
        if promotion_state and promotion_state != 'all':
            now = timezone.now()
            promotions = [p for p in promotions if promotion_status(p, now) == promotion_state]

        serializer = PromotionSerializer(promotions, many=True)
        return Response(serializer.data)
    else:
        errors = validate_promotion_data(_validation_payload(request))
        if errors:
            return Response({'errors': errors}, status=status.HTTP_400_BAD_REQUEST)

        serializer = PromotionSerializer(data=request.data)
        if serializer.is_valid():
            promotion = serializer.save(created_by=get_active_employee(request.user))
            create_audit_log(
                request=request,
                action='create',
                model_name='Promotion',
                object_id=promotion.id,
                object_name=promotion.name,
                changes={'type': promotion.type, 'value': str(promotion.value)},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('products')])
def promotion_detail(request, pk):
    """Retrieve, update or delete a promotion"""
    promotion = get_object_or_404(_promotion_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = PromotionSerializer(promotion)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        partial = request.method == 'PATCH'
        errors = validate_promotion_data(_validation_payload(request, promotion if partial else None))
        if errors:
            return Response({'errors': errors}, status=status.HTTP_400_BAD_REQUEST)

        serializer = PromotionSerializer(promotion, data=request.data, partial=partial)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Promotion',
                object_id=promotion.id,
                object_name=promotion.name,
                changes={key: str(value) for key, value in request.data.items() if key in VALIDATED_FIELDS + ['is_active']},
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        promotion_id, promotion_name = promotion.id, promotion.name
        promotion.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Promotion',
            object_id=promotion_id,
            object_name=promotion_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('products', 'update')])
def promotion_toggle(request, pk):
    """Switch a promotion between active and inactive"""
    promotion = get_object_or_404(_promotion_queryset(), pk=pk)
    promotion.is_active = not promotion.is_active
    promotion.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(
        request=request,
        action='update',
        model_name='Promotion',
        object_id=promotion.id,
        object_name=promotion.name,
        changes={'is_active': {'old': not promotion.is_active, 'new': promotion.is_active}},
    )
    return Response(PromotionSerializer(promotion).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('products', 'create')])
def promotion_duplicate(request, pk):
    """Copy a promotion as an inactive draft running for the next 7 days"""
    original = get_object_or_404(_promotion_queryset(), pk=pk)
    now = timezone.now()

    with transaction.atomic():
        copy = Promotion.objects.create(
            name=f"{original.name} (Copia)",
            description=original.description,
            type=original.type,
            value=original.value,
            conditions=original.conditions,
            start_date=now,
            end_date=now + timedelta(days=7),
            is_active=False,
            min_purchase_amount=original.min_purchase_amount,
            max_uses=original.max_uses,
            created_by=get_active_employee(request.user),
        )
        copy.products.set(original.products.all())
        copy.categories.set(original.categories.all())

    create_audit_log(
        request=request,
        action='create',
        model_name='Promotion',
        object_id=copy.id,
        object_name=copy.name,
        changes={'duplicated_from': original.id},
    )
    return Response(PromotionSerializer(copy).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('sales', 'read')])
def promotion_applicable(request):
    """Promotions that give a discount on a cart, best first"""
    serializer = ApplicablePromotionsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    items = cart_lines_from_products(serializer.validated_data['items'])
    now = timezone.now()
    candidates = _promotion_queryset().filter(is_active=True, start_date__lte=now, end_date__gte=now)
    results = get_applicable_promotions(candidates, items, now=now)

    return Response([
        {
            'promotion': PromotionSerializer(result.promotion).data,
            'discount_amount': result.discount_amount,
            'description': result.description,
            'applicable_products': [item.product_id for item in result.applicable_items],
        }
        for result in results
    ])


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('products', 'read')])
def promotion_stats(request):
    """Counts by status and total uses"""
    now = timezone.now()
    promotions = list(Promotion.objects.all())
    statuses = [promotion_status(p, now) for p in promotions]
    return Response({
        'total': len(promotions),
        'active': statuses.count('active'),
        'scheduled': statuses.count('scheduled'),
        'expired': statuses.count('expired'),
        'totalUses': Promotion.objects.aggregate(total=Sum('current_uses'))['total'] or 0,
    })
