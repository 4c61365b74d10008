from typing import Dict, Optional, Type

from quiz_question.exceptions import UnknownQuestionTypeError
from quiz_question.models import QuestionVersion
from .base import QuizQuestion

_registry: Dict[str, Type[QuizQuestion]] = {}


def register_question_type(question_class: Type[QuizQuestion]) -> Type[QuizQuestion]:
    _registry[question_class.type_key] = question_class
    return question_class


def get_question_types() -> Dict[str, Type[QuizQuestion]]:
    return dict(_registry)


def get_question_class(type_key: str) -> Type[QuizQuestion]:
    try:
        return _registry[type_key]
    except KeyError:
        raise UnknownQuestionTypeError(type_key) from None


def get_question(version: QuestionVersion) -> QuizQuestion:
    return get_question_class(version.question.question_type)(version)


def load_question(question_version_id) -> Optional[QuizQuestion]:
    version = QuestionVersion.objects.select_related('question').filter(pk=question_version_id).first()
    if version is None:
        return None
    return get_question(version)
