from .base import QuizQuestion, QuizQuestionResponse, ValidationResult, round_half_up
from .factory import (
    get_question, get_question_class, get_question_types, load_question, register_question_type,
)
from .truefalse import TrueFalseQuestion, TrueFalseResponse
from .multichoice import MultichoiceQuestion, MultichoiceResponse
from .short_answer import ShortAnswerQuestion, ShortAnswerResponse
from .long_answer import LongAnswerQuestion, LongAnswerResponse

__all__ = [
    'QuizQuestion', 'QuizQuestionResponse', 'ValidationResult', 'round_half_up',
    'get_question', 'get_question_class', 'get_question_types', 'load_question', 'register_question_type',
    'TrueFalseQuestion', 'TrueFalseResponse',
    'MultichoiceQuestion', 'MultichoiceResponse',
    'ShortAnswerQuestion', 'ShortAnswerResponse',
    'LongAnswerQuestion', 'LongAnswerResponse',
]
