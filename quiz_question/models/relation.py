from django.db import models


class QuizQuestionRelation(models.Model):
    """Edge from a specific quiz version to a specific question version."""

    class Status(models.IntegerChoices):
        RANDOM = 0, 'Random'
        ALWAYS = 1, 'Always'

    parent_version = models.ForeignKey(
        'QuizVersion',
        on_delete=models.CASCADE,
        related_name='relations',
        db_index=True
    )
    child_version = models.ForeignKey(
        'QuestionVersion',
        on_delete=models.CASCADE,
        related_name='memberships',
        db_index=True
    )
    question_status = models.IntegerField(
        choices=Status.choices,
        default=Status.ALWAYS
    )
    weight = models.IntegerField(default=0)
    max_score = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['parent_version', 'weight', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['parent_version', 'child_version'],
                name='unique_quiz_question_relation'
            )
        ]

    def __str__(self):
        return f"{self.parent_version} -> {self.child_version}"
