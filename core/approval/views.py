"""
API Views for approval chains.
Chain administration, submission, decisions, pending queues and delegations.
"""
import logging

from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
from django.db.models import ProtectedError, Q
from django.shortcuts import get_object_or_404

from core.user_accounts.decorators import require_roles
from wrkspace_project.pagination import auto_paginate
from wrkspace_project.response_formatter import success_response, error_response

from . import exceptions
from .managers import ApprovalChainManager
from .models import (
    ApprovalChain,
    ApprovalProgress,
    ApprovalDelegation,
)
from .serializers import (
    ApprovalChainSerializer,
    ApprovalChainListSerializer,
    ApprovalChainCreateUpdateSerializer,
    ApprovalProgressSerializer,
    ApprovalProgressListSerializer,
    ApprovalDelegationSerializer,
    EntityAttributesSerializer,
    SubmitApprovalSerializer,
    DecisionSerializer,
)

logger = logging.getLogger(__name__)


def approval_error_response(exc):
    return error_response(str(exc), status_code=exc.http_status)


# ============================================================================
# ApprovalChain API Views
# ============================================================================

@api_view(['GET', 'POST'])
@require_roles('admin', methods=['POST'])
@auto_paginate
def chain_list(request):
    """
    List the organization's approval chains or create a new chain.

    GET /chains/
    - Query params:
        - type: Filter by chain type (leave, expense, ...)
        - is_active: Filter by active status (true/false)

    POST /chains/  (admin only)
    - Request body: ApprovalChainCreateUpdateSerializer fields
    - Must include a nested steps array
    """
    if request.method == 'GET':
        chains = ApprovalChain.objects.filter(organization_id=request.user.organization_id)

        chain_type = request.query_params.get('type')
        if chain_type:
            chains = chains.filter(type=chain_type)

        is_active = request.query_params.get('is_active')
        if is_active is not None:
            chains = chains.filter(is_active=is_active.lower() == 'true')

        serializer = ApprovalChainListSerializer(chains, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    if request.user.organization_id is None:
        return error_response(
            "Only members of an organization can create approval chains",
            status_code=status.HTTP_400_BAD_REQUEST
        )

    serializer = ApprovalChainCreateUpdateSerializer(data=request.data, context={'request': request})
    if serializer.is_valid():
        chain = serializer.save(organization=request.user.organization)
        logger.info("Chain '%s' (%s) created by %s", chain.name, chain.pk, request.user.pk)
        return success_response(
            data=ApprovalChainSerializer(chain).data,
            message="Approval chain created",
            status_code=status.HTTP_201_CREATED
        )
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@require_roles('admin', methods=['PUT', 'PATCH', 'DELETE'])
def chain_detail(request, pk):
    """
    Retrieve, update, or delete a specific chain.
    Chains of other organizations are not found.

    PUT/PATCH /chains/{id}/  (admin only)
    - A steps array replaces all steps; refused while approvals are pending

    DELETE /chains/{id}/  (admin only)
    - Refused while any approval progress references the chain
    """
    chain = get_object_or_404(ApprovalChain, pk=pk, organization_id=request.user.organization_id)

    if request.method == 'GET':
        serializer = ApprovalChainSerializer(chain)
        return Response(serializer.data, status=status.HTTP_200_OK)

    elif request.method in ['PUT', 'PATCH']:
        serializer = ApprovalChainCreateUpdateSerializer(
            chain,
            data=request.data,
            partial=request.method == 'PATCH',
            context={'request': request}
        )
        if serializer.is_valid():
            chain = serializer.save()
            return Response(ApprovalChainSerializer(chain).data, status=status.HTTP_200_OK)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    pending = chain.progress_records.filter(status=ApprovalProgress.STATUS_PENDING).count()
    if pending:
        return error_response(
            f"Cannot delete chain with {pending} pending approval(s). "
            "Deactivate it instead and let them finish.",
            status_code=status.HTTP_400_BAD_REQUEST
        )

    chain_name = chain.name
    try:
        chain.delete()
    except ProtectedError:
        return error_response(
            f"Cannot delete chain '{chain_name}': completed approvals reference it. "
            "Deactivate it instead.",
            status_code=status.HTTP_400_BAD_REQUEST
        )

    logger.info("Chain '%s' (%s) deleted by %s", chain_name, pk, request.user.pk)
    return success_response(message=f'Approval chain "{chain_name}" deleted successfully')


@api_view(['POST'])
def chain_select(request):
    """
    Preview which of the caller's organization chains an entity would be routed to.

    POST /chains/select/
    - Request body: {"type": "expense", "amount": 5000, "days": null, "category": "travel"}
    - data is null when no chain applies
    """
    serializer = EntityAttributesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    if request.user.organization_id is None:
        return success_response(data=None, message="No approval chain applies")

    try:
        chain = ApprovalChainManager.select_chain(
            serializer.validated_data['type'],
            serializer.attributes(),
            organization=request.user.organization
        )
    except exceptions.ApprovalError as e:
        return approval_error_response(e)

    if chain is None:
        return success_response(data=None, message="No approval chain applies")
    return success_response(data=ApprovalChainSerializer(chain).data)


# ============================================================================
# ApprovalProgress API Views
# ============================================================================

@api_view(['GET', 'POST'])
@auto_paginate
def progress_list(request):
    """
    List approval progress or submit an entity for approval.

    GET /progress/
    - Admin and HR see their organization's records; others see what they submitted
    - Query params: status, entity_type, entity_id, chain

    POST /progress/
    - Request body: {"type", "entity_id", "amount"?, "days"?, "category"?}
    - Selects the chain and starts approval with the caller as submitter
    """
    if request.method == 'GET':
        records = ApprovalProgress.objects.filter(
            organization_id=request.user.organization_id
        ).select_related('chain', 'submitted_by')
        if request.user.role not in ('admin', 'hr'):
            records = records.filter(submitted_by=request.user)

        for param in ('status', 'entity_type', 'entity_id'):
            value = request.query_params.get(param)
            if value:
                records = records.filter(**{param: value})

        chain_id = request.query_params.get('chain')
        if chain_id:
            records = records.filter(chain_id=chain_id)

        serializer = ApprovalProgressListSerializer(records, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    serializer = SubmitApprovalSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        progress = ApprovalChainManager.submit(
            serializer.validated_data['type'],
            serializer.validated_data['entity_id'],
            serializer.attributes(),
            submitted_by=request.user,
        )
    except exceptions.ApprovalError as e:
        return approval_error_response(e)

    return success_response(
        data=ApprovalProgressSerializer(progress, context={'request': request}).data,
        message="Submitted for approval",
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET'])
@auto_paginate
def progress_pending(request):
    """
    GET /progress/pending/
    - Pending approvals the caller can decide on now, directly or by delegation
    """
    records = ApprovalChainManager.pending_for_user(request.user)
    serializer = ApprovalProgressListSerializer(records, many=True)
    return Response(serializer.data, status=status.HTTP_200_OK)


@api_view(['GET'])
def progress_detail(request, pk):
    """
    GET /progress/{id}/
    - Progress with its decision history and current approvers
    - Visible to admin/HR, the submitter, past deciders and current approvers
    """
    progress = get_object_or_404(
        ApprovalProgress.objects.select_related('chain', 'submitted_by'),
        pk=pk,
        organization_id=request.user.organization_id
    )
    if not ApprovalChainManager.can_view(progress, request.user):
        return error_response(
            "You do not have access to this approval",
            status_code=status.HTTP_403_FORBIDDEN
        )

    serializer = ApprovalProgressSerializer(progress, context={'request': request})
    return Response(serializer.data, status=status.HTTP_200_OK)


@api_view(['POST'])
def progress_decision(request, pk):
    """
    Approve or reject the current step.

    POST /progress/{id}/decision/
    - Request body: {"step": 1, "decision": "approve" | "reject", "comment": "..."}
    """
    get_object_or_404(ApprovalProgress, pk=pk, organization_id=request.user.organization_id)

    serializer = DecisionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        progress = ApprovalChainManager.record_decision(
            pk,
            serializer.validated_data['step'],
            request.user,
            serializer.validated_data['decision'],
            comment=serializer.validated_data.get('comment'),
        )
    except exceptions.ApprovalError as e:
        return approval_error_response(e)

    return success_response(
        data=ApprovalProgressSerializer(progress, context={'request': request}).data,
        message=f"Decision recorded; approval is {progress.status}"
    )


# ============================================================================
# ApprovalDelegation API Views
# ============================================================================

@api_view(['GET', 'POST'])
@auto_paginate
def delegation_list(request):
    """
    GET /delegations/
    - Delegations the caller gave or received
    - Query params: active_only (true/false)

    POST /delegations/
    - Request body: {"delegatee", "start_date", "end_date", "reason"?}
    """
    if request.method == 'GET':
        delegations = ApprovalDelegation.objects.filter(
            Q(delegator=request.user) | Q(delegatee=request.user)
        ).select_related('delegator', 'delegatee')

        active_only = request.query_params.get('active_only')
        if active_only and active_only.lower() == 'true':
            delegations = delegations.in_effect()

        serializer = ApprovalDelegationSerializer(delegations, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    if request.user.organization_id is None:
        return error_response(
            "Only members of an organization can delegate approvals",
            status_code=status.HTTP_400_BAD_REQUEST
        )

    serializer = ApprovalDelegationSerializer(data=request.data, context={'request': request})
    if serializer.is_valid():
        delegation = serializer.save(
            delegator=request.user,
            organization=request.user.organization
        )
        logger.info(
            "Delegation %s: %s -> %s (%s to %s)",
            delegation.pk, request.user.pk, delegation.delegatee_id,
            delegation.start_date, delegation.end_date,
        )
        return success_response(
            data=ApprovalDelegationSerializer(delegation).data,
            message="Delegation created",
            status_code=status.HTTP_201_CREATED
        )
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['DELETE'])
def delegation_detail(request, pk):
    """
    DELETE /delegations/{id}/
    - Deactivates the delegation; only its delegator or an admin may do so
    """
    delegation = get_object_or_404(
        ApprovalDelegation,
        pk=pk,
        organization_id=request.user.organization_id
    )

    if delegation.delegator_id != request.user.pk and not request.user.is_admin():
        return error_response(
            "Only the delegator can deactivate this delegation",
            status_code=status.HTTP_403_FORBIDDEN
        )

    delegation.deactivate()
    return success_response(
        data=ApprovalDelegationSerializer(delegation).data,
        message="Delegation deactivated"
    )
