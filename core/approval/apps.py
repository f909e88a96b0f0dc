from django.apps import AppConfig


class ApprovalConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.approval'
    label = 'approval'
    verbose_name = 'Approval Chains'

    def ready(self):
        """Connect the default transition receivers."""
        from . import notifications  # noqa: F401
