from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone


class Attempt(models.Model):
    class Status(models.TextChoices):
        IN_PROGRESS = 'in_progress', 'In Progress'
        FINISHED = 'finished', 'Finished'

    quiz_version = models.ForeignKey(
        'QuizVersion',
        on_delete=models.CASCADE,
        related_name='attempts',
        db_index=True
    )
    taker = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='quiz_attempts',
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.IN_PROGRESS,
        db_index=True
    )

    started_at = models.DateTimeField(auto_now_add=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    score = models.PositiveIntegerField(null=True, blank=True)
    is_evaluated = models.BooleanField(default=False)

    class Meta:
        ordering = ['-started_at']
        indexes = [
            models.Index(fields=['taker', 'quiz_version'], name='qq_attempt_taker_idx'),
            models.Index(fields=['quiz_version', 'status'], name='qq_attempt_status_idx'),
        ]

    def __str__(self):
        return f"{self.taker.username} - {self.quiz_version} ({self.get_status_display()})"

    def recompute_score(self):
        """Sum the weighted points of every saved response."""
        totals = self.responses.aggregate(total=models.Sum('points_awarded'))
        self.score = totals['total'] or 0
        self.is_evaluated = not self.responses.filter(is_evaluated=False).exists()
        self.save(update_fields=['score', 'is_evaluated'])
        return self.score

    def finish(self):
        self.status = self.Status.FINISHED
        self.finished_at = timezone.now()
        self.save(update_fields=['status', 'finished_at'])
        return self.recompute_score()
