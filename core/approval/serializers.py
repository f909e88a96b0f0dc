"""
Serializers for approval chain models.
Handles serialization/deserialization of approval models for API endpoints.
"""
from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework import serializers

from core.user_accounts.models import UserRole

from . import exceptions
from .managers import ApprovalChainManager
from .models import (
    ApprovalChain,
    ApprovalChainStep,
    ApprovalProgress,
    ApprovalStepDecision,
    ApprovalDelegation,
)
from .validators import validate_conditions, validate_steps

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    """Lightweight serializer for users referenced by approval records."""

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role']
        read_only_fields = fields


class ApprovalChainStepSerializer(serializers.ModelSerializer):
    """
    Nested step serializer.
    ``chain`` is not accepted here; it is set by the parent chain.
    """
    approver_role = serializers.ChoiceField(
        choices=UserRole.choices,
        required=False,
        allow_null=True
    )
    approver_user = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(),
        required=False,
        allow_null=True
    )
    approver = serializers.SerializerMethodField()

    class Meta:
        model = ApprovalChainStep
        fields = [
            'id',
            'order',
            'name',
            'approver_role',
            'approver_user',
            'approver',
            'required_approvals',
        ]
        read_only_fields = ['id', 'approver']

    def get_approver(self, obj):
        return str(obj.approver)


class ApprovalChainListSerializer(serializers.ModelSerializer):
    """
    Lightweight serializer for listing chains.
    """
    step_count = serializers.SerializerMethodField()

    class Meta:
        model = ApprovalChain
        fields = [
            'id',
            'name',
            'type',
            'priority',
            'is_active',
            'step_count',
            'created_at',
        ]

    def get_step_count(self, obj):
        return obj.steps.count()


class ApprovalChainSerializer(serializers.ModelSerializer):
    """
    Full serializer for ApprovalChain, with steps and conditions.
    """
    steps = ApprovalChainStepSerializer(many=True, read_only=True)
    conditions = serializers.SerializerMethodField()
    pending_count = serializers.SerializerMethodField()

    class Meta:
        model = ApprovalChain
        fields = [
            'id',
            'organization',
            'name',
            'description',
            'type',
            'priority',
            'min_amount',
            'max_amount',
            'min_days',
            'categories',
            'conditions',
            'is_active',
            'steps',
            'pending_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_conditions(self, obj):
        # Decimals go out as strings, matching DRF's DecimalField
        return {
            key: str(value) if key.endswith('_amount') else value
            for key, value in obj.conditions.items()
        }

    def get_pending_count(self, obj):
        return obj.progress_records.filter(status=ApprovalProgress.STATUS_PENDING).count()


class ApprovalChainCreateUpdateSerializer(serializers.ModelSerializer):
    """
    Create/update serializer for chains with a nested ``steps`` array.

    On update, ``steps`` (when given) replaces the whole step list; this is
    refused while the chain has pending approvals.
    """
    steps = ApprovalChainStepSerializer(many=True, required=False)
    categories = serializers.ListField(
        child=serializers.CharField(),
        required=False
    )

    class Meta:
        model = ApprovalChain
        fields = [
            'id',
            'name',
            'description',
            'type',
            'priority',
            'min_amount',
            'max_amount',
            'min_days',
            'categories',
            'is_active',
            'steps',
        ]
        read_only_fields = ['id']

    def validate(self, data):
        instance = self.instance

        def current(field):
            if field in data:
                return data[field]
            return getattr(instance, field) if instance is not None else None

        try:
            validate_conditions(
                min_amount=current('min_amount'),
                max_amount=current('max_amount'),
                min_days=current('min_days'),
                categories=current('categories'),
            )
        except exceptions.ValidationError as e:
            raise serializers.ValidationError({'conditions': str(e)})

        steps = data.get('steps')
        if steps is None and instance is None:
            raise serializers.ValidationError({'steps': 'An approval chain needs at least one step'})

        if steps is not None:
            try:
                validate_steps(
                    {
                        'order': step.get('order'),
                        'approver_role': step.get('approver_role'),
                        'approver_user': step['approver_user'].pk if step.get('approver_user') else None,
                        'required_approvals': step.get('required_approvals', 1),
                    }
                    for step in steps
                )
            except exceptions.ValidationError as e:
                raise serializers.ValidationError({'steps': str(e)})

            organization_id = self._organization_id()
            for step in steps:
                approver_user = step.get('approver_user')
                if approver_user is not None and approver_user.organization_id != organization_id:
                    raise serializers.ValidationError({
                        'steps': f"Step {step.get('order')}: approver belongs to another organization"
                    })

            if instance is not None and instance.progress_records.filter(
                status=ApprovalProgress.STATUS_PENDING
            ).exists():
                raise serializers.ValidationError({
                    'steps': 'Steps cannot be replaced while the chain has pending approvals'
                })

        return data

    def _organization_id(self):
        if self.instance is not None:
            return self.instance.organization_id
        request = self.context.get('request')
        return request.user.organization_id if request is not None else None

    def _create_steps(self, chain, steps_data):
        ApprovalChainStep.objects.bulk_create([
            ApprovalChainStep(
                chain=chain,
                order=step['order'],
                name=step.get('name', ''),
                approver_role=step.get('approver_role') or None,
                approver_user=step.get('approver_user'),
                required_approvals=step.get('required_approvals', 1),
            )
            for step in steps_data
        ])

    @transaction.atomic
    def create(self, validated_data):
        steps_data = validated_data.pop('steps', [])
        chain = ApprovalChain.objects.create(**validated_data)
        self._create_steps(chain, steps_data)
        return chain

    @transaction.atomic
    def update(self, instance, validated_data):
        steps_data = validated_data.pop('steps', None)

        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()

        if steps_data is not None:
            instance.steps.all().delete()
            self._create_steps(instance, steps_data)

        return instance


class ApprovalStepDecisionSerializer(serializers.ModelSerializer):
    approved_by = UserSummarySerializer(read_only=True)
    on_behalf_of = UserSummarySerializer(read_only=True)

    class Meta:
        model = ApprovalStepDecision
        fields = [
            'id',
            'step',
            'decision',
            'approved_by',
            'on_behalf_of',
            'comment',
            'approved_at',
        ]
        read_only_fields = fields


class ApprovalProgressListSerializer(serializers.ModelSerializer):
    chain_name = serializers.CharField(source='chain.name', read_only=True)
    submitted_by_name = serializers.CharField(source='submitted_by.name', read_only=True, default=None)

    class Meta:
        model = ApprovalProgress
        fields = [
            'id',
            'chain',
            'chain_name',
            'entity_type',
            'entity_id',
            'submitted_by',
            'submitted_by_name',
            'current_step',
            'status',
            'created_at',
            'completed_at',
        ]
        read_only_fields = fields


class ApprovalProgressSerializer(serializers.ModelSerializer):
    """
    Detailed progress: decision history and who can act now.
    """
    chain = ApprovalChainListSerializer(read_only=True)
    submitted_by = UserSummarySerializer(read_only=True)
    history = serializers.SerializerMethodField()
    current_approvers = serializers.SerializerMethodField()
    can_decide = serializers.SerializerMethodField()

    class Meta:
        model = ApprovalProgress
        fields = [
            'id',
            'chain',
            'entity_type',
            'entity_id',
            'submitted_by',
            'current_step',
            'status',
            'version',
            'history',
            'current_approvers',
            'can_decide',
            'created_at',
            'completed_at',
        ]
        read_only_fields = fields

    def get_history(self, obj):
        return ApprovalStepDecisionSerializer(ApprovalChainManager.history(obj), many=True).data

    def get_current_approvers(self, obj):
        return UserSummarySerializer(ApprovalChainManager.current_approvers(obj), many=True).data

    def get_can_decide(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return False
        return ApprovalChainManager.can_decide(obj, request.user)


class EntityAttributesSerializer(serializers.Serializer):
    """Attributes chain conditions are evaluated against."""
    type = serializers.ChoiceField(choices=ApprovalChain.TYPE_CHOICES)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
    days = serializers.DecimalField(max_digits=7, decimal_places=2, required=False, allow_null=True)
    category = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def attributes(self):
        return {
            key: self.validated_data.get(key)
            for key in ('amount', 'days', 'category')
        }


class SubmitApprovalSerializer(EntityAttributesSerializer):
    entity_id = serializers.CharField(max_length=64)


class DecisionSerializer(serializers.Serializer):
    step = serializers.IntegerField(min_value=1)
    decision = serializers.ChoiceField(choices=ApprovalStepDecision.DECISION_CHOICES)
    comment = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class ApprovalDelegationSerializer(serializers.ModelSerializer):
    """
    Delegations are always created for the requesting user as delegator.
    """
    delegator = UserSummarySerializer(read_only=True)
    delegatee = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    delegatee_details = UserSummarySerializer(source='delegatee', read_only=True)
    in_effect = serializers.SerializerMethodField()

    class Meta:
        model = ApprovalDelegation
        fields = [
            'id',
            'organization',
            'delegator',
            'delegatee',
            'delegatee_details',
            'start_date',
            'end_date',
            'reason',
            'is_active',
            'in_effect',
            'created_at',
            'deactivated_at',
        ]
        read_only_fields = ['id', 'organization', 'delegator', 'is_active', 'created_at', 'deactivated_at']

    def get_in_effect(self, obj):
        return obj.is_in_effect()

    def validate(self, data):
        request = self.context.get('request')
        if request is not None and data.get('delegatee') == request.user:
            raise serializers.ValidationError({'delegatee': 'You cannot delegate to yourself'})
        if request is not None and data['delegatee'].organization_id != request.user.organization_id:
            raise serializers.ValidationError({'delegatee': 'Delegatee belongs to another organization'})

        if data['end_date'] < data['start_date']:
            raise serializers.ValidationError({'end_date': 'end_date cannot be before start_date'})

        return data
