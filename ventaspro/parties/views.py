from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q
from django.shortcuts import get_object_or_404
from .models import Customer, Supplier
from .serializers import CustomerSerializer, SupplierSerializer
from ventaspro.core.permissions import resource_permission
from ventaspro.core.utils import create_audit_log, diff_fields, snapshot_fields

CUSTOMER_AUDIT_FIELDS = ['name', 'email', 'phone', 'address', 'cedula']
SUPPLIER_AUDIT_FIELDS = ['name', 'contact_person', 'phone', 'email', 'address']


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('customers')])
def customer_list_create(request):
    """List all customers or create a new customer"""
    if request.method == 'GET':
        queryset = Customer.objects.all().order_by('-created_at')
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(email__icontains=search) |
                Q(phone__icontains=search) |
                Q(cedula__icontains=search)
            )
        serializer = CustomerSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = CustomerSerializer(data=request.data)
        if serializer.is_valid():
            customer = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Customer',
                object_id=customer.id,
                object_name=customer.name,
                object_reference=customer.cedula,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('customers')])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_object_or_404(Customer, pk=pk)

    if request.method == 'GET':
        serializer = CustomerSerializer(customer)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = snapshot_fields(customer, CUSTOMER_AUDIT_FIELDS)
        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Customer',
                object_id=customer.id,
                object_name=customer.name,
                object_reference=customer.cedula,
                changes=diff_fields(customer, old_data, CUSTOMER_AUDIT_FIELDS),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        # Sales keep their history with customer set to NULL
        customer_id, customer_name = customer.id, customer.name
        customer.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Customer',
            object_id=customer_id,
            object_name=customer_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, resource_permission('suppliers')])
def supplier_list_create(request):
    """List all suppliers or create a new supplier"""
    if request.method == 'GET':
        queryset = Supplier.objects.all().order_by('name')
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(contact_person__icontains=search) |
                Q(phone__icontains=search) |
                Q(email__icontains=search)
            )
        serializer = SupplierSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = SupplierSerializer(data=request.data)
        if serializer.is_valid():
            supplier = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Supplier',
                object_id=supplier.id,
                object_name=supplier.name,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, resource_permission('suppliers')])
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk)

    if request.method == 'GET':
        serializer = SupplierSerializer(supplier)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = snapshot_fields(supplier, SUPPLIER_AUDIT_FIELDS)
        serializer = SupplierSerializer(supplier, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Supplier',
                object_id=supplier.id,
                object_name=supplier.name,
                changes=diff_fields(supplier, old_data, SUPPLIER_AUDIT_FIELDS),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        supplier_id, supplier_name = supplier.id, supplier.name
        supplier.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Supplier',
            object_id=supplier_id,
            object_name=supplier_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
