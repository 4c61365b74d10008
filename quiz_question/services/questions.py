"""
Create and edit questions through their type classes.

Edits to an answered question version always go to a new version.
"""
import logging
from dataclasses import replace

from django.db import transaction

from quiz_question.models import Question, QuestionVersion
from .membership import MembershipChanges
from .revisions import quizzes_using_version
from .versioning import create_question_version

logger = logging.getLogger(__name__)


def create_question(question_type, title, type_data, actor=None, body='', title_override='',
                    membership_changes=None):
    """
    Validate and store a new question.

    Returns ``(quiz_question, validation, result)``; ``result`` is None when
    validation failed and nothing was stored.
    """
    from quiz_question.question_types import get_question_class

    question_class = get_question_class(question_type)
    question = Question(question_type=question_type, title=title, created_by=actor)
    version = QuestionVersion(
        question=question,
        number=1,
        body=body,
        title_override=title_override,
        created_by=actor,
    )
    quiz_question = question_class(version)

    validation = quiz_question.validate(type_data)
    if not validation.is_valid:
        return quiz_question, validation, None

    with transaction.atomic():
        question.save()
        version.question = question
        version.type_data = validation.data
        result = quiz_question.persist(is_new_version=True, membership_changes=membership_changes, actor=actor)

    logger.info(f"Created {question_type} question {question.pk} (version {version.pk})")
    return quiz_question, validation, result


def update_question(quiz_question, type_data=None, title=None, body=None, title_override=None,
                    new_version=False, membership_changes=None, actor=None, log=''):
    """
    Apply edits to a question. A new version is created when requested or when
    the current version has been answered.

    Returns ``(quiz_question, validation, result)`` like ``create_question``;
    the returned ``quiz_question`` wraps the version that was written.
    """
    validation = quiz_question.validate(quiz_question.type_data if type_data is None else type_data)
    if not validation.is_valid:
        return quiz_question, validation, None

    with transaction.atomic():
        if not new_version and quiz_question.has_been_answered():
            logger.info(f"Question version {quiz_question.version.pk} has been answered; creating a new version")
            new_version = True

        if new_version:
            membership_changes = _keep_current_quizzes(quiz_question.version, membership_changes)
            version = create_question_version(quiz_question.version, actor=actor, log=log)
            quiz_question = quiz_question.__class__(version)
        version = quiz_question.version

        if title is not None:
            quiz_question.question.title = title
            quiz_question.question.save(update_fields=['title', 'updated_at'])
        if body is not None:
            version.body = body
        if title_override is not None:
            version.title_override = title_override
        version.type_data = validation.data

        result = quiz_question.persist(is_new_version=new_version, membership_changes=membership_changes, actor=actor)

    return quiz_question, validation, result


def _keep_current_quizzes(question_version, membership_changes):
    """Unless told otherwise, every quiz holding the old version keeps the question."""
    changes = membership_changes or MembershipChanges()
    changes = replace(
        changes,
        keep_or_remove=dict(changes.keep_or_remove),
        add_from_candidates=list(changes.add_from_candidates),
    )
    for quiz_version in quizzes_using_version(question_version):
        changes.keep_or_remove.setdefault(quiz_version.pk, True)
    return changes
