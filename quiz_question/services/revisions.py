"""
Revision actions: move quizzes from an old question version to a new one.

Only the latest version of each quiz is retargeted; older quiz versions are
history and keep pointing at the question version they were answered with.
"""
import logging

from django.db import transaction

from quiz_question.access import has_capability
from quiz_question.conf import get_setting
from quiz_question.models import AuditLog, QuestionProperties, QuizVersion
from .versioning import get_writable_quiz_version

logger = logging.getLogger(__name__)


def should_prompt_for_revision_actions(actor):
    """Whether a human should pick revision actions instead of applying the defaults."""
    if get_setting('AUTO_REVISIONING'):
        return False
    return has_capability(actor, 'manual_quiz_revisioning')


def quizzes_using_version(question_version):
    """Latest quiz versions that still contain the given question version."""
    candidates = QuizVersion.objects.filter(
        relations__child_version=question_version
    ).select_related('quiz').distinct()
    return [quiz_version for quiz_version in candidates if quiz_version.is_latest]


def _max_score(question_version):
    properties = QuestionProperties.objects.filter(question_version=question_version).first()
    return properties.max_score if properties else 0


def retarget_quizzes(from_version, to_version, quiz_version_ids=None, actor=None):
    """
    Point the given quiz versions (default: every latest quiz version using
    ``from_version``) at ``to_version``. Answered quiz versions are copied first.

    Returns the ids of the quiz versions that now hold ``to_version``.
    """
    old_max = _max_score(from_version)
    new_max = _max_score(to_version)
    retargeted = []

    with transaction.atomic():
        for quiz_version in quizzes_using_version(from_version):
            if quiz_version_ids is not None and quiz_version.pk not in quiz_version_ids:
                continue

            target, created = get_writable_quiz_version(quiz_version, actor=actor)
            target = QuizVersion.objects.select_for_update().get(pk=target.pk)
            edge = target.relations.filter(child_version=from_version).first()
            if edge is None:
                continue

            if target.relations.filter(child_version=to_version).exists():
                edge.delete()
            else:
                edge.child_version = to_version
                if edge.max_score == old_max:
                    edge.max_score = new_max
                edge.save(update_fields=['child_version', 'max_score'])

            target.recompute_max_score()
            retargeted.append(target.pk)

            AuditLog.log(
                event_type=AuditLog.EventType.QUIZ_RETARGETED,
                description=f"{target.quiz.title} now uses question version {to_version.pk}",
                user=actor,
                metadata={
                    'quiz_version_id': target.pk,
                    'from_question_version': from_version.pk,
                    'to_question_version': to_version.pk,
                    'quiz_revised': created,
                }
            )

    logger.info(f"Question version {from_version.pk} -> {to_version.pk}: retargeted quiz versions {retargeted}")
    return retargeted
