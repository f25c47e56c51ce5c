# utils/models.py

"""
Base models for LibraryDesk with an audit trail and library-aware
timestamps.

Key Features:
- UUID primary keys and created/updated timestamps
- User and IP tracking from the thread-local request context
- Field-level change tracking written to AuditLog
- TenantModel: every tenant-owned row carries its library
"""

from django.db import models
from librarydesk.managers import get_current_library, LibraryManager
import uuid
import logging

logger = logging.getLogger(__name__)


AUDIT_SKIP_FIELDS = [
    'id', 'created_at', 'updated_at', 'created_by_id',
    'updated_by_id', 'created_from_ip', 'updated_from_ip',
]


# =============================================================================
# BASE MODEL
# =============================================================================

class BaseModel(models.Model):
    """
    Base model with audit trail capabilities.

    Features:
    - Automatic user tracking (who created/updated)
    - Client IP tracking
    - Change reason tracking
    - AuditLog row for every create, update and delete

    ``created_at`` is only filled in when it is not already set, so
    imports and fixtures can backdate rows.
    """

    # Core identification
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Timestamps
    created_at = models.DateTimeField("Created At", db_index=True, editable=False)
    updated_at = models.DateTimeField("Updated At", db_index=True, editable=False)

    # User tracking
    created_by_id = models.CharField(
        "Created By ID", max_length=50, null=True, blank=True, db_index=True
    )
    updated_by_id = models.CharField(
        "Updated By ID", max_length=50, null=True, blank=True, db_index=True
    )

    created_from_ip = models.GenericIPAddressField("Created From IP", null=True, blank=True)
    updated_from_ip = models.GenericIPAddressField("Updated From IP", null=True, blank=True)

    change_reason = models.CharField(
        "Change Reason",
        max_length=255,
        blank=True,
        null=True,
        help_text="Explanation for why this change was made"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Override save to:
        1. Set timestamps
        2. Populate audit trail fields (created_by, updated_by, IPs)
        3. Track field changes
        4. Create audit log entry
        """
        from utils.context import get_request_context
        from django.utils import timezone

        is_new = self._state.adding
        now = timezone.now()

        # =========================================================================
        # STEP 1: TIMESTAMPS
        # =========================================================================
        if is_new:
            if not self.created_at:
                self.created_at = now
            if not self.updated_at:
                self.updated_at = now
        else:
            self.updated_at = now

        # =========================================================================
        # STEP 2: AUDIT FIELDS FROM REQUEST CONTEXT
        # =========================================================================
        context = get_request_context()

        if context:
            user = context.get('user')
            ip_address = context.get('ip_address')

            if is_new:
                if user and not self.created_by_id:
                    self.created_by_id = str(user.pk)
                if ip_address and not self.created_from_ip:
                    self.created_from_ip = ip_address

            if user:
                self.updated_by_id = str(user.pk)
            if ip_address:
                self.updated_from_ip = ip_address

        # =========================================================================
        # STEP 3: TRACK CHANGES FOR EXISTING OBJECTS
        # =========================================================================
        changes = {}
        if not is_new and self.pk:
            changes = self._collect_changes()

        result = super().save(*args, **kwargs)

        # =========================================================================
        # STEP 4: AUDIT LOG ENTRY
        # =========================================================================
        self._create_audit_log(
            action='CREATE' if is_new else 'UPDATE',
            changes=changes
        )

        return result

    def delete(self, *args, **kwargs):
        """Log the deletion before the row goes away"""
        self._create_audit_log(action='DELETE', changes={})
        return super().delete(*args, **kwargs)

    def _collect_changes(self):
        changes = {}
        try:
            old_instance = self.__class__._base_manager.get(pk=self.pk)
        except self.__class__.DoesNotExist:
            logger.debug(f"Old instance not found for {self.__class__.__name__} {self.pk}")
            return changes

        for field in self._meta.fields:
            if field.name in AUDIT_SKIP_FIELDS:
                continue

            old_value = getattr(old_instance, field.attname)
            new_value = getattr(self, field.attname)

            if old_value != new_value:
                changes[field.name] = {
                    'old': str(old_value) if old_value is not None else None,
                    'new': str(new_value) if new_value is not None else None
                }
        return changes

    # -------------------------------------------------------------------------
    # AUDIT TRAIL HELPER METHODS
    # -------------------------------------------------------------------------

    def _audit_library_id(self):
        library_id = getattr(self, 'library_id', None)
        if library_id:
            return str(library_id)
        library = get_current_library()
        return str(library.pk) if library is not None else ''

    def _create_audit_log(self, action, changes):
        """
        Create an audit log entry for this change.

        Args:
            action: 'CREATE', 'UPDATE', or 'DELETE'
            changes: Dict of field changes
        """
        from utils.context import get_request_context

        context = get_request_context() or {}

        user_id = None
        user_email = ""
        user_name = ""

        user = context.get('user')
        if user:
            user_id = str(user.pk)
            user_email = getattr(user, 'email', '') or ''
            user_name = user.get_full_name() or user.get_username()

        AuditLog.objects.create(
            content_type=f"{self._meta.app_label}.{self._meta.model_name}",
            object_id=str(self.pk),
            object_repr=str(self)[:200],
            action=action,
            changes=changes,
            user_id=user_id,
            user_email=user_email,
            user_name=user_name,
            ip_address=context.get('ip_address'),
            user_agent=(context.get('user_agent') or '')[:255],
            change_reason=self.change_reason or '',
            request_path=context.get('request_path') or '',
            library_id=self._audit_library_id(),
        )
        logger.debug(f"Created audit log for {action} on {self._meta.label} {self.pk}")

    def get_history(self, limit=10):
        return AuditLog.objects.filter(
            content_type=f"{self._meta.app_label}.{self._meta.model_name}",
            object_id=str(self.pk)
        ).order_by('-timestamp')[:limit]

    def set_change_reason(self, reason):
        """
        Set the reason for the next change to this object.

        Usage:
            student.is_blocked = True
            student.set_change_reason("Repeated late payments")
            student.save()
        """
        self.change_reason = reason


# =============================================================================
# TENANT MODEL - LIBRARY-OWNED DATA
# =============================================================================

class TenantModel(BaseModel):
    """
    Base model for rows owned by exactly one library.

    Services always scope reads with ``Model.objects.for_library(library)``;
    a row that belongs to another library is reported as not found.
    """

    library = models.ForeignKey(
        'accounts.Library',
        on_delete=models.CASCADE,
        related_name='+',
        db_index=True,
    )

    objects = LibraryManager()

    class Meta:
        abstract = True


# =============================================================================
# AUDIT LOG MODEL
# =============================================================================

class AuditLog(models.Model):
    """
    Audit trail for all model changes.

    Tracks:
    - What changed (model, object_id, field changes)
    - Who made the change (user)
    - When and where it came from (timestamp, IP, path)
    - Which library the row belongs to
    """

    ACTION_CHOICES = (
        ('CREATE', 'Created'),
        ('UPDATE', 'Updated'),
        ('DELETE', 'Deleted'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    content_type = models.CharField("Model Type", max_length=100, db_index=True)
    object_id = models.CharField("Object ID", max_length=100, db_index=True)
    object_repr = models.CharField("Object Representation", max_length=200)
    action = models.CharField("Action", max_length=10, choices=ACTION_CHOICES, db_index=True)

    changes = models.JSONField(
        "Changes",
        help_text="Dictionary of field changes: {'field_name': {'old': 'value', 'new': 'value'}}",
        default=dict,
        blank=True
    )

    user_id = models.CharField("User ID", max_length=50, db_index=True, null=True, blank=True)
    user_email = models.EmailField("User Email", max_length=255, blank=True)
    user_name = models.CharField("User Name", max_length=255, blank=True)

    timestamp = models.DateTimeField("Timestamp", db_index=True)

    ip_address = models.GenericIPAddressField("IP Address", null=True, blank=True)
    user_agent = models.TextField("User Agent", blank=True)
    change_reason = models.CharField("Change Reason", max_length=255, blank=True)
    request_path = models.CharField("Request Path", max_length=255, blank=True)
    library_id = models.CharField("Library ID", max_length=50, blank=True, db_index=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['content_type', 'object_id']),
            models.Index(fields=['user_id', 'timestamp']),
            models.Index(fields=['library_id', 'timestamp']),
        ]
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"

    def __str__(self):
        return f"{self.action} {self.content_type} {self.object_id} at {self.timestamp}"

    def save(self, *args, **kwargs):
        from django.utils import timezone

        if not self.timestamp:
            self.timestamp = timezone.now()
        return super().save(*args, **kwargs)

    def get_changes_display(self):
        """Get a human-readable display of changes"""
        if not self.changes:
            return "No field changes recorded"

        lines = []
        for field, change in self.changes.items():
            old_val = change.get('old', 'N/A')
            new_val = change.get('new', 'N/A')
            lines.append(f"{field}: '{old_val}' → '{new_val}'")

        return "\n".join(lines)

    def get_summary(self):
        user_display = self.user_name or self.user_email or self.user_id or "System"
        return f"{user_display} {self.get_action_display().lower()} {self.content_type}"
