"""
Capability checks and the pluggable "answers access" extension point.

Other apps can grant access to correct answers by registering a predicate
``check(actor, question_version) -> bool``, either with
``register_answers_access_check`` or by listing its dotted path in
``QUIZ_QUESTION['ANSWERS_ACCESS_CHECKS']``. Any check returning True grants
access.
"""
import logging

from django.utils.module_loading import import_string

from .conf import get_setting

logger = logging.getLogger(__name__)

_answers_access_checks = []


def register_answers_access_check(check):
    if check not in _answers_access_checks:
        _answers_access_checks.append(check)
    return check


def unregister_answers_access_check(check):
    if check in _answers_access_checks:
        _answers_access_checks.remove(check)


def get_answers_access_checks():
    configured = [import_string(path) for path in get_setting('ANSWERS_ACCESS_CHECKS')]
    return configured + list(_answers_access_checks)


def _is_active_user(actor):
    return actor is not None and getattr(actor, 'is_authenticated', False) and actor.is_active


def has_capability(actor, capability, resource=None):
    """
    Return True if the actor holds ``quiz_question.<capability>``.

    When a resource with a ``created_by`` owner is given, its owner also passes.
    """
    if not _is_active_user(actor):
        return False
    if actor.has_perm(f'quiz_question.{capability}'):
        return True
    if resource is not None:
        return is_owner(actor, resource)
    return False


def is_owner(actor, resource):
    if not _is_active_user(actor):
        return False
    return getattr(resource, 'created_by_id', None) == actor.pk


def can_view_correct_answers(actor, question_version):
    if has_capability(actor, 'view_any_correct_response'):
        return True
    if is_owner(actor, question_version.question):
        return True
    for check in get_answers_access_checks():
        if check(actor, question_version):
            logger.debug(f"Answers access granted by {check.__name__} for version {question_version.pk}")
            return True
    return False
