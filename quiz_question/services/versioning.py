"""
Versioning authority for quizzes and questions.

Quiz versions with attempts are never edited: edits land on a fresh copy.
"""
import logging

from django.db import models, transaction

from quiz_question.models import (
    AuditLog, Quiz, QuizVersion, QuizQuestionRelation, QuestionVersion,
)

logger = logging.getLogger(__name__)


def _next_number(versions):
    top = versions.aggregate(top=models.Max('number'))['top']
    return (top or 0) + 1


def create_quiz(title, actor=None, randomization=QuizVersion.Randomization.NONE):
    """Create a quiz with its first version and return that version."""
    with transaction.atomic():
        quiz = Quiz.objects.create(title=title, created_by=actor)
        version = QuizVersion.objects.create(
            quiz=quiz,
            number=1,
            randomization=randomization,
            created_by=actor,
        )
    logger.info(f"Created quiz {quiz.pk} '{title}' (version {version.pk})")
    return version


def create_quiz_version(quiz_version, actor=None, log=''):
    """Copy a quiz version and all of its question edges into a new latest version."""
    with transaction.atomic():
        quiz = quiz_version.quiz
        new_version = QuizVersion.objects.create(
            quiz=quiz,
            number=_next_number(quiz.versions),
            randomization=quiz_version.randomization,
            max_score=quiz_version.max_score,
            log=log,
            created_by=actor,
        )
        QuizQuestionRelation.objects.bulk_create([
            QuizQuestionRelation(
                parent_version=new_version,
                child_version_id=relation.child_version_id,
                question_status=relation.question_status,
                weight=relation.weight,
                max_score=relation.max_score,
            )
            for relation in quiz_version.relations.all()
        ])

        AuditLog.log(
            event_type=AuditLog.EventType.QUIZ_REVISED,
            description=f"Revised: {quiz.title} (v{quiz_version.number} -> v{new_version.number})",
            user=actor,
            metadata={'quiz_id': quiz.pk, 'from_version': quiz_version.pk, 'to_version': new_version.pk}
        )

    logger.info(f"Quiz {quiz.pk}: version {quiz_version.pk} copied to {new_version.pk}")
    return new_version


def get_writable_quiz_version(quiz_version, actor=None):
    """
    Return a version of the quiz that may be edited, and whether it was created.

    An unanswered version is returned as-is. For an answered one the quiz's
    latest version is reused when it is unanswered, otherwise a new version is
    copied from the latest one.
    """
    if not quiz_version.has_been_answered():
        return quiz_version, False

    latest = quiz_version.quiz.latest_version
    if latest.pk != quiz_version.pk and not latest.has_been_answered():
        return latest, False

    return create_quiz_version(latest, actor=actor, log=f"Copy of answered version {quiz_version.pk}"), True


def create_question_version(question_version, actor=None, log=''):
    """Create the next version of a question with the same content; edges are not copied."""
    question = question_version.question
    new_version = QuestionVersion.objects.create(
        question=question,
        number=_next_number(question.versions),
        body=question_version.body,
        title_override=question_version.title_override,
        type_data=dict(question_version.type_data or {}),
        log=log,
        created_by=actor,
    )
    logger.info(f"Question {question.pk}: version {question_version.pk} copied to {new_version.pk}")
    return new_version
