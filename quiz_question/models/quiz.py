from django.db import models
from django.contrib.auth.models import User


class Quiz(models.Model):
    title = models.CharField(max_length=300)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_quizzes'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'quizzes'
        permissions = [
            ('edit_any_quiz', 'Can edit any quiz'),
        ]

    def __str__(self):
        return self.title

    @property
    def latest_version(self):
        return self.versions.order_by('-number').first()


class QuizVersion(models.Model):
    """An immutable snapshot of a quiz once it has attempts."""

    class Randomization(models.IntegerChoices):
        NONE = 0, 'No randomization'
        RANDOM_ORDER = 1, 'Random order'
        RANDOM_QUESTIONS = 2, 'Random questions'
        CATEGORIZED = 3, 'Categorized random questions'

    quiz = models.ForeignKey(
        'Quiz',
        on_delete=models.CASCADE,
        related_name='versions',
        db_index=True
    )
    number = models.PositiveIntegerField(default=1)
    randomization = models.IntegerField(
        choices=Randomization.choices,
        default=Randomization.NONE
    )
    # Denormalized sum of the max_score of every question edge
    max_score = models.PositiveIntegerField(default=0)
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
        ordering = ['quiz', 'number']
        constraints = [
            models.UniqueConstraint(
                fields=['quiz', 'number'],
                name='unique_quiz_version_number'
            )
        ]

    def __str__(self):
        return f"{self.quiz.title} (v{self.number})"

    @property
    def is_latest(self):
        return not self.quiz.versions.filter(number__gt=self.number).exists()

    def has_been_answered(self):
        return self.attempts.exists()

    def get_total_max_score(self):
        return self.relations.aggregate(total=models.Sum('max_score'))['total'] or 0

    def recompute_max_score(self):
        self.max_score = self.get_total_max_score()
        self.save(update_fields=['max_score'])
        return self.max_score

    def next_weight(self):
        top = self.relations.aggregate(top=models.Max('weight'))['top']
        return 1 if top is None else top + 1
