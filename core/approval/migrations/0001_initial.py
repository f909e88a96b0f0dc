import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


ROLE_CHOICES = [('member', 'Member'), ('manager', 'Manager'), ('hr', 'HR'), ('admin', 'Admin')]
TYPE_CHOICES = [
    ('leave', 'Leave'),
    ('expense', 'Expense'),
    ('asset', 'Asset'),
    ('document', 'Document'),
    ('other', 'Other'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('user_accounts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ApprovalChain',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=120)),
                ('description', models.TextField(blank=True, default='')),
                ('type', models.CharField(choices=TYPE_CHOICES, max_length=20)),
                ('priority', models.IntegerField(default=0, help_text='Higher priority chains are checked first')),
                ('min_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('max_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('min_days', models.PositiveIntegerField(blank=True, null=True)),
                ('categories', models.JSONField(blank=True, default=list)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('organization', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='approval_chains',
                    to='user_accounts.organization',
                )),
            ],
            options={
                'db_table': 'approval_chain',
                'ordering': ['type', '-priority', 'created_at', 'id'],
                'indexes': [models.Index(
                    fields=['organization', 'type', 'is_active'],
                    name='approval_ch_organiz_4c1a2e_idx',
                )],
            },
        ),
        migrations.CreateModel(
            name='ApprovalChainStep',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order', models.PositiveIntegerField(help_text='Steps run in ascending order')),
                ('name', models.CharField(blank=True, default='', max_length=120)),
                ('approver_role', models.CharField(blank=True, choices=ROLE_CHOICES, max_length=20, null=True)),
                ('required_approvals', models.PositiveIntegerField(default=1)),
                ('approver_user', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='approval_steps',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('chain', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='steps',
                    to='approval.approvalchain',
                )),
            ],
            options={
                'db_table': 'approval_chain_step',
                'ordering': ['chain', 'order'],
                'constraints': [
                    models.UniqueConstraint(fields=('chain', 'order'), name='uniq_step_order_per_chain'),
                    models.CheckConstraint(
                        condition=(
                            models.Q(approver_role__isnull=False, approver_user__isnull=True)
                            | models.Q(approver_role__isnull=True, approver_user__isnull=False)
                        ),
                        name='step_has_exactly_one_approver',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(required_approvals__gte=1),
                        name='step_requires_an_approval',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='ApprovalProgress',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(choices=TYPE_CHOICES, max_length=20)),
                ('entity_id', models.CharField(max_length=64)),
                ('current_step', models.PositiveIntegerField(
                    blank=True,
                    help_text='Order of the step awaiting decisions; null once resolved',
                    null=True,
                )),
                ('status', models.CharField(
                    choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')],
                    default='pending',
                    max_length=10,
                )),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('chain', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='progress_records',
                    to='approval.approvalchain',
                )),
                ('organization', models.ForeignKey(
                    help_text='Copied from the chain; scopes entity ids per tenant',
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='approval_progress',
                    to='user_accounts.organization',
                )),
                ('submitted_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='submitted_approvals',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'db_table': 'approval_progress',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(
                        fields=['organization', 'entity_type', 'entity_id'],
                        name='approval_pr_organiz_9b7d31_idx',
                    ),
                    models.Index(fields=['status', 'current_step'], name='approval_pr_status_5e2f8a_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(status='pending'),
                        fields=('organization', 'entity_type', 'entity_id'),
                        name='uniq_pending_progress_per_entity',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='ApprovalStepDecision',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('step', models.PositiveIntegerField()),
                ('decision', models.CharField(
                    choices=[('approve', 'Approve'), ('reject', 'Reject')],
                    max_length=10,
                )),
                ('comment', models.TextField(blank=True, null=True)),
                ('approved_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('approved_by', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='approval_decisions',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('on_behalf_of', models.ForeignKey(
                    blank=True,
                    help_text='Set when the decision was made under a delegation',
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='delegated_approval_decisions',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('progress', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='step_approvals',
                    to='approval.approvalprogress',
                )),
            ],
            options={
                'db_table': 'approval_step_decision',
                'ordering': ['approved_at', 'id'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('progress', 'step', 'approved_by'),
                        name='uniq_decision_per_approver_step',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='ApprovalDelegation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('reason', models.TextField(blank=True, default='')),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('deactivated_at', models.DateTimeField(blank=True, null=True)),
                ('delegatee', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='delegations_received',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('delegator', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='delegations_given',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('organization', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='approval_delegations',
                    to='user_accounts.organization',
                )),
            ],
            options={
                'db_table': 'approval_delegation',
                'ordering': ['-start_date', '-id'],
                'indexes': [
                    models.Index(fields=['is_active', 'delegatee'], name='approval_de_is_acti_3d8c6b_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(end_date__gte=models.F('start_date')),
                        name='delegation_window_not_inverted',
                    ),
                ],
            },
        ),
    ]
