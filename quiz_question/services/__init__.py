from .membership import MembershipChanges, MembershipReconciler, NewQuiz, ReconcileResult
from .questions import create_question, update_question
from .reports import build_attempt_report
from .revisions import retarget_quizzes, should_prompt_for_revision_actions
from .versioning import (
    create_question_version, create_quiz, create_quiz_version, get_writable_quiz_version,
)

__all__ = [
    'MembershipChanges', 'MembershipReconciler', 'NewQuiz', 'ReconcileResult',
    'create_question', 'update_question', 'build_attempt_report',
    'retarget_quizzes', 'should_prompt_for_revision_actions',
    'create_question_version', 'create_quiz', 'create_quiz_version', 'get_writable_quiz_version',
]
