from rest_framework import serializers

from quiz_question.conf import get_setting
from .base import QuizQuestion, QuizQuestionResponse, ValidationResult
from .factory import register_question_type


class LongAnswerDataSerializer(serializers.Serializer):
    rubric = serializers.CharField(required=False, allow_blank=True, default='')
    max_score = serializers.IntegerField(
        min_value=1,
        default=lambda: get_setting('DEFAULT_LONG_ANSWER_SCORE')
    )


class LongAnswerResponse(QuizQuestionResponse):
    """Always scored by a person; unevaluated until then."""

    def requires_manual_scoring(self) -> bool:
        return True

    def validate_answer(self, answer) -> ValidationResult:
        result = ValidationResult()
        if not isinstance(answer, str):
            result.add_error('answer', 'Answer must be text.')
        return result

    def score(self) -> int:
        return self.stored_score or 0

    def get_response(self):
        return self.answer


@register_question_type
class LongAnswerQuestion(QuizQuestion):
    type_key = 'long_answer'
    type_name = 'Long answer'
    data_serializer_class = LongAnswerDataSerializer
    response_class = LongAnswerResponse

    def compute_maximum_score(self) -> int:
        return int(self.type_data.get('max_score', get_setting('DEFAULT_LONG_ANSWER_SCORE')))

    def get_correct_answer(self):
        return self.type_data.get('rubric', '')
