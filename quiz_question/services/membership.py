"""
Quiz membership reconciliation for a question version.

Applies a desired-state diff (keep/remove existing quizzes, add candidate
quizzes, create a new quiz) against the current edges. Quiz versions that
already have attempts are copied before they are touched, and the cached
max score of every touched quiz version is recomputed in the same
transaction.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from django.db import transaction

from quiz_question.access import has_capability
from quiz_question.models import AuditLog, QuizVersion, QuizQuestionRelation
from .versioning import create_quiz, get_writable_quiz_version

logger = logging.getLogger(__name__)


@dataclass
class NewQuiz:
    title: str
    randomization: int = QuizVersion.Randomization.NONE


@dataclass
class MembershipChanges:
    # quiz version id -> True to keep the question, False to remove it
    keep_or_remove: Dict[int, bool] = field(default_factory=dict)
    add_from_candidates: List[int] = field(default_factory=list)
    create_new: Optional[NewQuiz] = None


@dataclass
class ReconcileResult:
    kept: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)
    added: List[int] = field(default_factory=list)
    created_quiz: Optional[int] = None
    # answered quiz version id -> version the change landed on
    revised: Dict[int, int] = field(default_factory=dict)
    # quiz version id -> reason nothing was applied
    skipped: Dict[int, str] = field(default_factory=dict)
    touched: Set[int] = field(default_factory=set)
    needs_revision_actions: bool = False
    retargeted: List[int] = field(default_factory=list)

    @property
    def has_kept(self) -> bool:
        return bool(self.kept)

    @property
    def changed(self) -> bool:
        return bool(self.removed or self.added or self.created_quiz or self.retargeted)

    def as_dict(self):
        return {
            'kept': self.kept,
            'removed': self.removed,
            'added': self.added,
            'created_quiz': self.created_quiz,
            'revised': {str(old): new for old, new in self.revised.items()},
            'skipped': {str(vid): reason for vid, reason in self.skipped.items()},
            'touched': sorted(self.touched),
            'needs_revision_actions': self.needs_revision_actions,
            'retargeted': self.retargeted,
        }


def question_status_for(quiz_version):
    if quiz_version.randomization == QuizVersion.Randomization.RANDOM_QUESTIONS:
        return QuizQuestionRelation.Status.RANDOM
    return QuizQuestionRelation.Status.ALWAYS


class MembershipReconciler:
    """Reconcile the quizzes a single question version belongs to."""

    def __init__(self, question_version, max_score: int, actor=None):
        self.question_version = question_version
        self.question = question_version.question
        self.max_score = max_score
        self.actor = actor

    def reconcile(self, changes: MembershipChanges, previous_max_score: Optional[int] = None) -> ReconcileResult:
        result = ReconcileResult()

        with transaction.atomic():
            if previous_max_score is not None and previous_max_score != self.max_score:
                self._sync_edge_scores(previous_max_score, result)

            for quiz_version_id, keep in changes.keep_or_remove.items():
                if keep:
                    self._keep(quiz_version_id, result)
                else:
                    self._remove(quiz_version_id, result)

            for quiz_version_id in changes.add_from_candidates:
                self._add(quiz_version_id, result)

            if changes.create_new is not None:
                self._create(changes.create_new, result)

            for quiz_version in QuizVersion.objects.select_for_update().filter(pk__in=result.touched):
                quiz_version.recompute_max_score()

            if result.changed:
                AuditLog.log(
                    event_type=AuditLog.EventType.MEMBERSHIP_CHANGED,
                    description=f"Quiz membership of question {self.question.pk} changed",
                    user=self.actor,
                    metadata={'question_version_id': self.question_version.pk, **result.as_dict()}
                )

        logger.info(
            f"Reconciled question version {self.question_version.pk}: "
            f"kept={result.kept} removed={result.removed} added={result.added} revised={result.revised}"
        )
        return result

    def _lock(self, quiz_version_id, result):
        quiz_version = (
            QuizVersion.objects.select_for_update()
            .select_related('quiz')
            .filter(pk=quiz_version_id)
            .first()
        )
        if quiz_version is None:
            result.skipped[quiz_version_id] = 'Quiz version not found.'
            logger.warning(f"Question {self.question.pk}: quiz version {quiz_version_id} not found")
        return quiz_version

    def _may_edit(self, quiz_version, result):
        # No actor means a system call
        if self.actor is None or has_capability(self.actor, 'edit_any_quiz', resource=quiz_version.quiz):
            return True
        result.skipped[quiz_version.pk] = 'Not allowed to edit this quiz.'
        logger.warning(f"User {self.actor.pk} may not edit quiz {quiz_version.quiz_id}")
        return False

    def _question_edges(self, quiz_version):
        return quiz_version.relations.filter(child_version__question=self.question)

    def _writable(self, quiz_version, result):
        target, created = get_writable_quiz_version(quiz_version, actor=self.actor)
        if target.pk != quiz_version.pk:
            result.revised[quiz_version.pk] = target.pk
            target = QuizVersion.objects.select_for_update().get(pk=target.pk)
        return target

    def _keep(self, quiz_version_id, result):
        quiz_version = self._lock(quiz_version_id, result)
        if quiz_version is None:
            return
        if not self._question_edges(quiz_version).exists():
            result.skipped[quiz_version_id] = 'Question is not a member of this quiz version.'
            return
        result.kept.append(quiz_version_id)

    def _remove(self, quiz_version_id, result):
        quiz_version = self._lock(quiz_version_id, result)
        if quiz_version is None:
            return
        if not self._question_edges(quiz_version).exists():
            result.skipped[quiz_version_id] = 'Question is not a member of this quiz version.'
            return
        if not self._may_edit(quiz_version, result):
            return

        target = self._writable(quiz_version, result)
        deleted, _ = self._question_edges(target).delete()
        result.touched.add(target.pk)
        if deleted:
            result.removed.append(target.pk)

    def _add(self, quiz_version_id, result):
        quiz_version = self._lock(quiz_version_id, result)
        if quiz_version is None:
            return
        if self._question_edges(quiz_version).exists():
            logger.debug(f"Question {self.question.pk} already in quiz version {quiz_version_id}")
            return
        if not self._may_edit(quiz_version, result):
            return

        target = self._writable(quiz_version, result)
        result.touched.add(target.pk)
        if self._question_edges(target).exists():
            return

        QuizQuestionRelation.objects.create(
            parent_version=target,
            child_version=self.question_version,
            question_status=question_status_for(target),
            weight=target.next_weight(),
            max_score=self.max_score,
        )
        result.added.append(target.pk)

    def _create(self, new_quiz, result):
        quiz_version = create_quiz(new_quiz.title, actor=self.actor, randomization=new_quiz.randomization)
        QuizQuestionRelation.objects.create(
            parent_version=quiz_version,
            child_version=self.question_version,
            question_status=question_status_for(quiz_version),
            max_score=self.max_score,
        )
        result.created_quiz = quiz_version.pk
        result.added.append(quiz_version.pk)
        result.touched.add(quiz_version.pk)

    def _sync_edge_scores(self, previous_max_score, result):
        """Follow an in-place max score change on edges that were not overridden."""
        edges = self.question_version.memberships.filter(max_score=previous_max_score)
        parent_ids = set(edges.values_list('parent_version_id', flat=True))
        edges.update(max_score=self.max_score)
        result.touched.update(parent_ids)
