from .quiz import Quiz, QuizVersion
from .question import Question, QuestionVersion, QuestionProperties
from .relation import QuizQuestionRelation
from .attempt import Attempt
from .response import QuestionResponse
from .audit import AuditLog

__all__ = [
    'Quiz', 'QuizVersion',
    'Question', 'QuestionVersion', 'QuestionProperties',
    'QuizQuestionRelation', 'Attempt', 'QuestionResponse',
    'AuditLog',
]
