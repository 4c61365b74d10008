from django.db import models
from django.contrib.auth.models import User


class AuditLog(models.Model):
    class EventType(models.TextChoices):
        QUESTION_SAVED = 'question_saved', 'Question Saved'
        QUESTION_DELETED = 'question_deleted', 'Question Deleted'
        QUIZ_REVISED = 'quiz_revised', 'Quiz Revised'
        MEMBERSHIP_CHANGED = 'membership_changed', 'Quiz Membership Changed'
        QUIZ_RETARGETED = 'quiz_retargeted', 'Quiz Moved To New Question Version'
        RESPONSE_SCORED = 'response_scored', 'Response Scored Manually'

    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='quiz_audit_logs'
    )
    event_type = models.CharField(max_length=30, choices=EventType.choices, db_index=True)
    description = models.TextField()
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'event_type'], name='qq_audit_user_event_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} - {self.user} - {self.created_at}"

    @classmethod
    def log(cls, event_type, description, request=None, user=None, metadata=None):
        ip_address = None

        if request:
            x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
            ip_address = x_forwarded_for.split(',')[0].strip() if x_forwarded_for else request.META.get('REMOTE_ADDR')

            if not user and hasattr(request, 'user') and request.user.is_authenticated:
                user = request.user

        if user is not None and not getattr(user, 'is_authenticated', False):
            user = None

        return cls.objects.create(
            user=user,
            event_type=event_type,
            description=description,
            ip_address=ip_address,
            metadata=metadata or {}
        )
