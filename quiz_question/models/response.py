from django.db import models


class QuestionResponse(models.Model):
    attempt = models.ForeignKey(
        'Attempt',
        on_delete=models.CASCADE,
        related_name='responses',
        db_index=True
    )
    question_version = models.ForeignKey(
        'QuestionVersion',
        on_delete=models.CASCADE,
        related_name='responses',
        db_index=True
    )

    answer = models.JSONField(null=True, blank=True)
    is_skipped = models.BooleanField(default=False)
    is_evaluated = models.BooleanField(default=True)
    is_correct = models.BooleanField(null=True)
    # Unweighted score; only kept for manually graded responses
    raw_score = models.IntegerField(null=True, blank=True)
    points_awarded = models.PositiveIntegerField(default=0)
    answered_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['attempt', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['attempt', 'question_version'],
                name='unique_attempt_question_version'
            )
        ]

    def __str__(self):
        return f"Response to {self.question_version} in attempt {self.attempt_id}"
