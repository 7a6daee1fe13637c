import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from backend.core.permissions import ensure_company_access, is_admin, resolve_company_id
from backend.core.utils import create_audit_log
from .models import Rickhouse
from .serializers import RickhouseSerializer

logger = logging.getLogger('backend.locations')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def rickhouse_list_create(request):
    """List rickhouses for a company or create one (create requires admin)"""
    company_id = resolve_company_id(request)

    if request.method == 'GET':
        rickhouses = Rickhouse.objects.filter(company_id=company_id)
        if request.query_params.get('include_inactive', '').lower() not in ('1', 'true'):
            rickhouses = rickhouses.filter(is_active=True)
        return Response(RickhouseSerializer(rickhouses, many=True).data)
    else:  # POST
        if not is_admin(request.user):
            logger.warning(f"User {request.user.username} attempted to create rickhouse without admin privileges")
            return Response({'error': 'Only administrators can create rickhouses'}, status=status.HTTP_403_FORBIDDEN)

        serializer = RickhouseSerializer(data=request.data)
        if serializer.is_valid():
            try:
                rickhouse = serializer.save(company_id=company_id)
            except IntegrityError:
                return Response({'error': 'A rickhouse with this name already exists'}, status=status.HTTP_400_BAD_REQUEST)
            create_audit_log(
                request=request,
                action='create',
                model_name='Rickhouse',
                object_id=rickhouse.id,
                object_name=rickhouse.name,
                company=rickhouse.company,
                changes={'name': rickhouse.name, 'capacity_barrels': rickhouse.capacity_barrels},
            )
            logger.info(f"Rickhouse '{rickhouse.name}' created by {request.user.username}")
            return Response(RickhouseSerializer(rickhouse).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def rickhouse_detail(request, pk):
    """Retrieve, update or delete a rickhouse (update/delete requires admin)"""
    rickhouse = get_object_or_404(Rickhouse, pk=pk)
    ensure_company_access(request.user, rickhouse.company_id)

    if request.method == 'GET':
        return Response(RickhouseSerializer(rickhouse).data)

    if not is_admin(request.user):
        return Response({'error': 'Only administrators can modify rickhouses'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'PATCH':
        serializer = RickhouseSerializer(rickhouse, data=request.data, partial=True)
        if serializer.is_valid():
            try:
                serializer.save()
            except IntegrityError:
                return Response({'error': 'A rickhouse with this name already exists'}, status=status.HTTP_400_BAD_REQUEST)
            create_audit_log(
                request=request,
                action='update',
                model_name='Rickhouse',
                object_id=rickhouse.id,
                object_name=rickhouse.name,
                company=rickhouse.company,
                changes=dict(serializer.validated_data),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if rickhouse.barrels.exists():
            # Barrels keep their history, so a rickhouse in use is only deactivated
            rickhouse.is_active = False
            rickhouse.save(update_fields=['is_active', 'updated_at'])
            logger.info(f"Rickhouse {pk} deactivated (barrels assigned)")
            return Response(RickhouseSerializer(rickhouse).data)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Rickhouse',
            object_id=rickhouse.id,
            object_name=rickhouse.name,
            company=rickhouse.company,
        )
        rickhouse.delete()
        logger.info(f"Rickhouse {pk} deleted")
        return Response(status=status.HTTP_204_NO_CONTENT)
