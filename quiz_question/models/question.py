from django.db import models
from django.contrib.auth.models import User


class Question(models.Model):
    question_type = models.CharField(max_length=50, db_index=True)
    title = models.CharField(max_length=300)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_questions'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        permissions = [
            ('view_any_correct_response', 'Can view any quiz question correct response'),
            ('manual_quiz_revisioning', 'Can choose quiz revision actions manually'),
            ('score_any_response', 'Can score any quiz question response'),
        ]

    def __str__(self):
        return f"{self.title} [{self.question_type}]"

    @property
    def latest_version(self):
        return self.versions.order_by('-number').first()


class QuestionVersion(models.Model):
    question = models.ForeignKey(
        'Question',
        on_delete=models.CASCADE,
        related_name='versions',
        db_index=True
    )
    number = models.PositiveIntegerField(default=1)
    body = models.TextField(blank=True)
    title_override = models.CharField(max_length=300, blank=True)
    # Variant specific fields (choices, evaluation mode, correct answer...)
    type_data = models.JSONField(default=dict, blank=True)
    log = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['question', 'number']
        constraints = [
            models.UniqueConstraint(
                fields=['question', 'number'],
                name='unique_question_version_number'
            )
        ]

    def __str__(self):
        return f"{self.display_title} (v{self.number})"

    @property
    def display_title(self):
        return self.title_override or self.question.title


class QuestionProperties(models.Model):
    """Shared properties store, one row per question version."""
    question = models.ForeignKey(
        'Question',
        on_delete=models.CASCADE,
        related_name='properties'
    )
    question_version = models.OneToOneField(
        'QuestionVersion',
        on_delete=models.CASCADE,
        related_name='properties'
    )
    max_score = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name_plural = 'question properties'

    def __str__(self):
        return f"{self.question_version}: max {self.max_score}"
