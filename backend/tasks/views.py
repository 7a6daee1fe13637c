import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.permissions import ensure_company_access
from backend.core.utils import parse_date_param
from backend.inventory.models import Order
from . import services
from .serializers import (
    OrderTaskSerializer, CreateTaskSerializer, UpdateTaskSerializer, AssignTaskSerializer, CompleteTaskSerializer
)

logger = logging.getLogger('backend.tasks')


def _task_for_request(request, pk):
    task = services.get_task(pk)
    ensure_company_access(request.user, task.order.company_id)
    return task


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_task_list(request, order_id):
    """Tasks for an order: open first, then by due date"""
    order = get_object_or_404(Order, pk=order_id)
    ensure_company_access(request.user, order.company_id)
    return Response(OrderTaskSerializer(services.tasks_for_order(order.id), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_tasks(request):
    """Tasks assigned to the current user"""
    include_completed = request.query_params.get('include_completed', '').lower() in ('1', 'true')
    due_before = parse_date_param(request.query_params.get('due_before'), 'due_before')
    tasks = services.tasks_for_user(request.user, include_completed=include_completed, due_before=due_before)
    return Response(OrderTaskSerializer(tasks, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def task_create(request):
    serializer = CreateTaskSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    order = Order.objects.filter(pk=data['order_id']).first()
    if order is not None:
        ensure_company_access(request.user, order.company_id)
    task = services.create_task(
        data['order_id'], data['name'], data.get('assignee_id'), data.get('due_date'), created_by=request.user
    )
    return Response(OrderTaskSerializer(task).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def task_detail(request, pk):
    """Retrieve, rename/reschedule or delete a task"""
    task = _task_for_request(request, pk)

    if request.method == 'GET':
        return Response(OrderTaskSerializer(task).data)
    elif request.method == 'PATCH':
        serializer = UpdateTaskSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        task = services.update_task(
            task,
            name=data.get('name'),
            due_date=data.get('due_date'),
            clear_due_date='due_date' in data and data['due_date'] is None,
        )
        return Response(OrderTaskSerializer(task).data)
    else:  # DELETE
        services.delete_task(task)
        logger.info(f"Task {pk} deleted by {request.user.username}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def task_assign(request, pk):
    """Assign a task to a user, or unassign with a null assignee"""
    task = _task_for_request(request, pk)
    serializer = AssignTaskSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    task = services.assign_task(task, serializer.validated_data.get('assignee_id'), assigned_by=request.user)
    return Response(OrderTaskSerializer(task).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def task_complete(request, pk):
    """Mark a task complete, or reopen it with is_complete=false"""
    task = _task_for_request(request, pk)
    serializer = CompleteTaskSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    task = services.set_complete(task, serializer.validated_data['is_complete'])
    return Response(OrderTaskSerializer(task).data)
