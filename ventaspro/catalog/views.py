import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q, Count, ProtectedError
from django.shortcuts import get_object_or_404
from django.core.paginator import Paginator
from .models import Category, UnitOfMeasure, Product
from .filters import ProductFilter, CategoryFilter
from .serializers import (
    CategorySerializer, UnitOfMeasureSerializer, ProductSerializer,
    ProductListSerializer, ImageCompressionSerializer
)
from .images import (
    compress_image, validate_image_file, create_placeholder_image, ImageProcessingError,
    DEFAULT_MAX_WIDTH, DEFAULT_MAX_HEIGHT, DEFAULT_QUALITY
)
from ventaspro.core.app_settings import get_setting
from ventaspro.core.permissions import resource_permission
from ventaspro.core.utils import create_audit_log, diff_fields, snapshot_fields
from ventaspro.inventory.models import Inventory

logger = logging.getLogger(__name__)

PRODUCT_AUDIT_FIELDS = ['name', 'sku', 'price', 'cost', 'category_id', 'supplier_id', 'is_active']
CATEGORY_AUDIT_FIELDS = ['name', 'description']
UNIT_AUDIT_FIELDS = ['name', 'abbreviation', 'category', 'is_active']


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('categories')])
def category_list_create(request):
    """List all categories or create a new category"""
    if request.method == 'GET':
        queryset = Category.objects.annotate(
            active_product_count=Count('products', filter=Q(products__is_active=True))
        )
        filterset = CategoryFilter(request.query_params, queryset=queryset)
        serializer = CategorySerializer(filterset.qs, many=True)
        return Response(serializer.data)
    else:
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Category',
                object_id=category.id,
                object_name=category.name,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('categories')])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        serializer = CategorySerializer(category)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = snapshot_fields(category, CATEGORY_AUDIT_FIELDS)
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Category',
                object_id=category.id,
                object_name=category.name,
                changes=diff_fields(category, old_data, CATEGORY_AUDIT_FIELDS),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        category_id, category_name = category.id, category.name
        category.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Category',
            object_id=category_id,
            object_name=category_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Unit of measure views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('products')])
def unit_of_measure_list_create(request):
    """List units of measure or create a new one"""
    if request.method == 'GET':
        units = UnitOfMeasure.objects.all()
        category = request.query_params.get('category')
        if category and category != 'all':
            units = units.filter(category=category)
        active = request.query_params.get('active')
        if active in ('true', 'false'):
            units = units.filter(is_active=active == 'true')
        serializer = UnitOfMeasureSerializer(units, many=True)
        return Response(serializer.data)
    else:
        serializer = UnitOfMeasureSerializer(data=request.data)
        if serializer.is_valid():
            unit = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='UnitOfMeasure',
                object_id=unit.id,
                object_name=unit.name,
                object_reference=unit.abbreviation,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('products')])
def unit_of_measure_detail(request, pk):
    """Retrieve, update or delete a unit of measure"""
    unit = get_object_or_404(UnitOfMeasure, pk=pk)

    if request.method == 'GET':
        serializer = UnitOfMeasureSerializer(unit)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = snapshot_fields(unit, UNIT_AUDIT_FIELDS)
        serializer = UnitOfMeasureSerializer(unit, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='UnitOfMeasure',
                object_id=unit.id,
                object_name=unit.name,
                object_reference=unit.abbreviation,
                changes=diff_fields(unit, old_data, UNIT_AUDIT_FIELDS),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        unit_id, unit_name, unit_abbreviation = unit.id, unit.name, unit.abbreviation
        unit.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='UnitOfMeasure',
            object_id=unit_id,
            object_name=unit_name,
            object_reference=unit_abbreviation,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('products')])
def product_list_create(request):
    """List all products or create a new product"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('category', 'supplier', 'unit_of_measure', 'inventory')
        filterset = ProductFilter(request.query_params, queryset=queryset)
        queryset = filterset.qs.order_by('name')

        # Paginated only when the client asks for a page
        page = request.query_params.get('page')
        if not page:
            serializer = ProductListSerializer(queryset, many=True)
            return Response(serializer.data)

        try:
            limit = int(request.query_params.get('limit', 50))
        except ValueError:
            limit = 50
        paginator = Paginator(queryset, max(1, limit))
        page_obj = paginator.get_page(page)
        serializer = ProductListSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': paginator.per_page,
            'total_pages': paginator.num_pages,
        })
    else:  # POST
        serializer = ProductSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        initial_stock = serializer.validated_data.get('initial_stock', 0)
        with transaction.atomic():
            product = serializer.save()
            if initial_stock > 0:
                Inventory.objects.create(
                    product=product,
                    quantity=initial_stock,
                    min_stock=int(get_setting('lowStockThreshold', 5)),
                    max_stock=100,
                )

        create_audit_log(
            request=request,
            action='create',
            model_name='Product',
            object_id=product.id,
            object_name=product.name,
            object_reference=product.sku,
            changes={'name': product.name, 'sku': product.sku, 'price': str(product.price), 'initial_stock': initial_stock},
        )
        logger.info(f"Product created: {product.sku} (initial stock {initial_stock})")

        product = Product.objects.select_related('category', 'supplier', 'unit_of_measure', 'inventory').get(pk=product.pk)
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('products')])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(
        Product.objects.select_related('category', 'supplier', 'unit_of_measure', 'inventory'), pk=pk
    )

    if request.method == 'GET':
        serializer = ProductSerializer(product)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = snapshot_fields(product, PRODUCT_AUDIT_FIELDS)
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            changes = diff_fields(product, old_data, PRODUCT_AUDIT_FIELDS)
            if changes:
                action = 'price_change' if set(changes) & {'price', 'cost'} else 'update'
                create_audit_log(
                    request=request,
                    action=action,
                    model_name='Product',
                    object_id=product.id,
                    object_name=product.name,
                    object_reference=product.sku,
                    changes=changes,
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product_id, product_name, product_sku = product.id, product.name, product.sku
        try:
            product.delete()
        except ProtectedError:
            return Response({'error': 'No se puede eliminar un producto con ventas registradas'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=product_id,
            object_name=product_name,
            object_reference=product_sku,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


def _compress_upload(serializer):
    """Validate and compress the uploaded file of an ImageCompressionSerializer"""
    upload = serializer.validated_data['image']
    is_valid, error = validate_image_file(getattr(upload, 'content_type', None), upload.size)
    if not is_valid:
        raise ImageProcessingError(error)
    return compress_image(
        upload,
        max_width=serializer.validated_data.get('max_width', DEFAULT_MAX_WIDTH),
        max_height=serializer.validated_data.get('max_height', DEFAULT_MAX_HEIGHT),
        quality=serializer.validated_data.get('quality', DEFAULT_QUALITY),
    )


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('products', 'update')])
def product_image(request, pk):
    """Upload (compress and store) or remove a product image"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'DELETE':
        product.image_url = ''
        product.image_alt = ''
        product.save(update_fields=['image_url', 'image_alt', 'updated_at'])
        create_audit_log(
            request=request,
            action='image_upload',
            model_name='Product',
            object_id=product.id,
            object_name=product.name,
            object_reference=product.sku,
            changes={'image': 'removed'},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = ImageCompressionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        compressed = _compress_upload(serializer)
    except ImageProcessingError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    product.image_url = compressed.data_url
    product.image_alt = serializer.validated_data.get('alt') or product.name
    product.save(update_fields=['image_url', 'image_alt', 'updated_at'])
    create_audit_log(
        request=request,
        action='image_upload',
        model_name='Product',
        object_id=product.id,
        object_name=product.name,
        object_reference=product.sku,
        changes={'size': compressed.size, 'width': compressed.width, 'height': compressed.height},
    )
    logger.info(f"Stored image for product {product.sku}: {compressed.width}x{compressed.height}, {compressed.size} bytes")

    return Response({
        'image_url': compressed.data_url,
        'image_alt': product.image_alt,
        'size': compressed.size,
        'width': compressed.width,
        'height': compressed.height,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def image_compress(request):
    """Compress an image without storing it"""
    serializer = ImageCompressionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        compressed = _compress_upload(serializer)
    except ImageProcessingError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'data_url': compressed.data_url,
        'size': compressed.size,
        'width': compressed.width,
        'height': compressed.height,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def image_placeholder(request):
    """Placeholder image for products without a picture"""
    try:
        width = int(request.query_params.get('width', 200))
        height = int(request.query_params.get('height', 200))
    except ValueError:
        return Response({'error': 'width and height must be integers'}, status=status.HTTP_400_BAD_REQUEST)
    if not (0 < width <= 2000 and 0 < height <= 2000):
        return Response({'error': 'width and height must be between 1 and 2000'}, status=status.HTTP_400_BAD_REQUEST)

    return Response({'data_url': create_placeholder_image(width, height), 'width': width, 'height': height})
