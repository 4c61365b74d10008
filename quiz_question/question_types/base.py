"""
Base classes for question types.

A question type is a pair of classes: a ``QuizQuestion`` subclass that knows
how to validate its configuration and compute its maximum score, and a
``QuizQuestionResponse`` subclass that scores one answer to it.
"""
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, List, Optional

from django.db import transaction

from quiz_question.access import can_view_correct_answers
from quiz_question.exceptions import ManualScoringError, VersionLockedError
from quiz_question.models import (
    Attempt, AuditLog, QuestionProperties, QuestionResponse, QuizQuestionRelation, QuizVersion,
)
from quiz_question.services.membership import MembershipChanges, MembershipReconciler, ReconcileResult
from quiz_question.services.revisions import retarget_quizzes, should_prompt_for_revision_actions

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    errors: Dict[str, List[str]] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, field_name: str, message: str):
        self.errors.setdefault(field_name, []).append(str(message))

    def add_serializer_errors(self, errors, prefix=''):
        """Flatten DRF serializer errors into dotted field names."""
        if isinstance(errors, dict):
            for key, value in errors.items():
                name = f"{prefix}.{key}" if prefix else str(key)
                self.add_serializer_errors(value, name)
        elif isinstance(errors, list):
            for index, value in enumerate(errors):
                if isinstance(value, (dict, list)):
                    if value:
                        self.add_serializer_errors(value, f"{prefix}.{index}" if prefix else str(index))
                else:
                    self.add_error(prefix or 'non_field_errors', value)
        else:
            self.add_error(prefix or 'non_field_errors', errors)


def _as_fraction(value) -> Fraction:
    if isinstance(value, float):
        return Fraction(str(value))
    return Fraction(value)


def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    exact = _as_fraction(value)
    magnitude = math.floor(abs(exact) + Fraction(1, 2))
    return magnitude if exact >= 0 else -magnitude


def apply_weight(value: int, weight) -> int:
    if weight is None:
        return value
    return round_half_up(_as_fraction(value) * _as_fraction(weight))


class QuizQuestion(ABC):
    type_key: str = ''
    type_name: str = ''
    # DRF serializer validating ``type_data``
    data_serializer_class = None
    response_class = None

    def __init__(self, version):
        self.version = version
        self.question = version.question

    def __repr__(self):
        return f"<{self.__class__.__name__} version={self.version.pk}>"

    @property
    def type_data(self) -> dict:
        return self.version.type_data or {}

    @abstractmethod
    def compute_maximum_score(self) -> int:
        pass

    @abstractmethod
    def get_correct_answer(self):
        pass

    def get_public_data(self) -> dict:
        """Type data that may be shown to someone answering the question."""
        return {}

    def validate(self, submitted: dict) -> ValidationResult:
        result = ValidationResult()
        if self.data_serializer_class is None:
            result.data = dict(submitted or {})
            return result

        serializer = self.data_serializer_class(data=submitted or {})
        if not serializer.is_valid():
            result.add_serializer_errors(serializer.errors)
            return result

        result.data = serializer.data
        self.clean(result)
        return result

    def clean(self, result: ValidationResult):
        """Cross-field checks on ``result.data``; add errors to ``result``."""

    def save_type_data(self, is_new_version: bool):
        self.version.save()

    def get_maximum_score(self) -> int:
        if self.version.pk is None:
            return 0
        properties = QuestionProperties.objects.filter(question_version=self.version).first()
        return properties.max_score if properties else 0

    def persist(self, is_new_version: bool = False, membership_changes: Optional[MembershipChanges] = None,
                actor=None) -> ReconcileResult:
        """
        Save type data, upsert the stored max score and reconcile quiz membership,
        all in one transaction.
        """
        with transaction.atomic():
            if not is_new_version and self.has_been_answered():
                raise VersionLockedError(self.version)

            previous_max = None if is_new_version else self.get_maximum_score()
            self.save_type_data(is_new_version)
            max_score = self.compute_maximum_score()

            if is_new_version:
                QuestionProperties.objects.create(
                    question=self.question,
                    question_version=self.version,
                    max_score=max_score,
                )
            else:
                updated = QuestionProperties.objects.filter(
                    question_version=self.version
                ).update(max_score=max_score)
                if not updated:
                    logger.warning(f"Question version {self.version.pk} had no properties row; creating it")
                    QuestionProperties.objects.create(
                        question=self.question,
                        question_version=self.version,
                        max_score=max_score,
                    )

            reconciler = MembershipReconciler(self.version, max_score, actor=actor)
            result = reconciler.reconcile(membership_changes or MembershipChanges(), previous_max)

            if is_new_version and result.has_kept:
                self._handle_revision_actions(result, actor)

            AuditLog.log(
                event_type=AuditLog.EventType.QUESTION_SAVED,
                description=f"Saved: {self.version.display_title} (v{self.version.number})",
                user=actor,
                metadata={
                    'question_id': self.question.pk,
                    'question_version_id': self.version.pk,
                    'max_score': max_score,
                    'new_version': is_new_version,
                }
            )

        return result

    def _handle_revision_actions(self, result, actor):
        previous = self.previous_version()
        if previous is None:
            return
        if should_prompt_for_revision_actions(actor):
            result.needs_revision_actions = True
            return
        result.retargeted = retarget_quizzes(previous, self.version, actor=actor)

    def previous_version(self):
        return self.question.versions.filter(number__lt=self.version.number).order_by('-number').first()

    def has_been_answered(self) -> bool:
        """
        True if a response references this version, or an attempt exists on any
        quiz version containing it (an attempt may have shown it already).
        """
        if self.version.pk is None:
            return False
        if QuestionResponse.objects.filter(question_version=self.version).exists():
            return True
        return Attempt.objects.filter(quiz_version__relations__child_version=self.version).exists()

    def can_reveal_correct_answer(self, actor) -> bool:
        return can_view_correct_answers(actor, self.version)

    def delete(self, only_this_version: bool = False, actor=None):
        """Delete this version (or the whole question) and refresh affected quiz and attempt scores."""
        question_id = self.question.pk
        version_id = self.version.pk
        with transaction.atomic():
            if only_this_version:
                versions = self.question.versions.filter(pk=version_id)
            else:
                versions = self.question.versions.all()

            parent_ids = set(
                QuizQuestionRelation.objects.filter(child_version__in=versions)
                .values_list('parent_version_id', flat=True)
            )
            attempt_ids = set(
                QuestionResponse.objects.filter(question_version__in=versions)
                .values_list('attempt_id', flat=True)
            )

            if only_this_version:
                versions.delete()
            else:
                self.question.delete()

            for quiz_version in QuizVersion.objects.select_for_update().filter(pk__in=parent_ids):
                quiz_version.recompute_max_score()
            for attempt in Attempt.objects.select_for_update().filter(pk__in=attempt_ids):
                attempt.recompute_score()

            AuditLog.log(
                event_type=AuditLog.EventType.QUESTION_DELETED,
                description=f"Deleted: {self.question.title}" + (f" (v{self.version.number})" if only_this_version else ''),
                user=actor,
                metadata={
                    'question_id': question_id,
                    'quiz_versions': sorted(parent_ids),
                    'attempts': sorted(attempt_ids),
                }
            )

        logger.info(f"Deleted question {question_id} (only version {version_id}: {only_this_version})")

    def get_response(self, attempt, **kwargs):
        return self.response_class.load(attempt, self, **kwargs)


class QuizQuestionResponse(ABC):
    """One answer to one pinned question version within one attempt."""

    def __init__(self, attempt_id, question: QuizQuestion, answer=None, is_skipped: bool = False,
                 is_evaluated: Optional[bool] = None, score_weight=None, stored_score: Optional[int] = None):
        self.attempt_id = attempt_id
        self.question = question
        self.answer = answer
        self.is_skipped = is_skipped
        self.evaluated = not self.requires_manual_scoring() if is_evaluated is None else is_evaluated
        self.score_weight = score_weight
        self.stored_score = stored_score
        self._score = None

    def __repr__(self):
        return f"<{self.__class__.__name__} attempt={self.attempt_id} version={self.question.version.pk}>"

    @classmethod
    def load(cls, attempt, question: QuizQuestion, weighted: bool = True):
        """Build the response from its stored row, or a fresh one if none exists."""
        score_weight = get_score_weight(attempt.quiz_version_id, question) if weighted else None
        row = QuestionResponse.objects.filter(attempt=attempt, question_version=question.version).first()
        if row is None:
            return cls(attempt.pk, question, score_weight=score_weight)
        return cls(
            attempt.pk,
            question,
            answer=row.answer,
            is_skipped=row.is_skipped,
            is_evaluated=row.is_evaluated,
            score_weight=score_weight,
            stored_score=row.raw_score,
        )

    @abstractmethod
    def score(self) -> int:
        pass

    @abstractmethod
    def get_response(self):
        """The answer payload in its stored form."""

    def requires_manual_scoring(self) -> bool:
        return False

    def get_score(self, weight_adjusted: bool = True) -> int:
        if self.is_skipped:
            return 0
        if self._score is None:
            self._score = self.score()
        if weight_adjusted:
            return apply_weight(self._score, self.score_weight)
        return self._score

    def get_max_score(self, weight_adjusted: bool = True) -> int:
        max_score = self.question.get_maximum_score()
        if weight_adjusted:
            return apply_weight(max_score, self.score_weight)
        return max_score

    def is_correct(self) -> bool:
        return self.get_score(weight_adjusted=False) == self.get_max_score(weight_adjusted=False)

    def is_evaluated(self) -> bool:
        return self.evaluated

    def validate_answer(self, answer) -> ValidationResult:
        return ValidationResult()

    def is_valid(self, answer=None) -> bool:
        return self.validate_answer(self.answer if answer is None else answer).is_valid

    def to_summary(self) -> dict:
        return {
            'score': self.get_score(),
            'question_id': self.question.question.pk,
            'question_version_id': self.question.version.pk,
            'attempt_id': self.attempt_id,
            'is_correct': self.is_correct(),
            'is_evaluated': self.is_evaluated(),
            'is_skipped': self.is_skipped,
            'is_valid': self.is_valid(),
        }

    def save(self):
        self.is_skipped = False
        self._persist()

    def skip(self):
        self.is_skipped = True
        self.evaluated = True
        self.answer = None
        self._persist()

    def _persist(self):
        evaluated = self.is_evaluated()
        with transaction.atomic():
            QuestionResponse.objects.update_or_create(
                attempt_id=self.attempt_id,
                question_version=self.question.version,
                defaults={
                    'answer': None if self.is_skipped else self.get_response(),
                    'is_skipped': self.is_skipped,
                    'is_evaluated': evaluated,
                    'is_correct': self.is_correct() if evaluated and not self.is_skipped else None,
                    'raw_score': self.get_score(weight_adjusted=False) if evaluated and not self.is_skipped else None,
                    'points_awarded': self.get_score() if evaluated else 0,
                }
            )
            Attempt.objects.get(pk=self.attempt_id).recompute_score()

    def delete(self):
        with transaction.atomic():
            QuestionResponse.objects.filter(
                attempt_id=self.attempt_id,
                question_version=self.question.version,
            ).delete()
            Attempt.objects.get(pk=self.attempt_id).recompute_score()

    def set_manual_score(self, points: int, actor=None):
        if not self.requires_manual_scoring():
            raise ManualScoringError(f"{self.question.type_name} responses are scored automatically.")
        max_score = self.get_max_score(weight_adjusted=False)
        if not 0 <= points <= max_score:
            raise ManualScoringError(f"Score must be between 0 and {max_score}.")

        self.stored_score = points
        self.evaluated = True
        self._score = None
        self.save()

        AuditLog.log(
            event_type=AuditLog.EventType.RESPONSE_SCORED,
            description=f"Scored {points}/{max_score}: {self.question.version.display_title}",
            user=actor,
            metadata={'attempt_id': self.attempt_id, 'question_version_id': self.question.version.pk, 'score': points}
        )
        logger.info(f"Attempt {self.attempt_id}: question version {self.question.version.pk} scored {points}/{max_score}")


def get_score_weight(quiz_version_id, question: QuizQuestion):
    """Ratio of the quiz's per-edge max score to the question's own max score."""
    relation = QuizQuestionRelation.objects.filter(
        parent_version_id=quiz_version_id,
        child_version=question.version,
    ).first()
    question_max = question.get_maximum_score()
    if relation is None or not question_max:
        return None
    return Fraction(relation.max_score, question_max)
