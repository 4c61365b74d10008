from rest_framework import serializers

from .base import QuizQuestion, QuizQuestionResponse, ValidationResult
from .factory import register_question_type


class TrueFalseDataSerializer(serializers.Serializer):
    correct_answer = serializers.BooleanField()
    feedback = serializers.CharField(required=False, allow_blank=True, default='')


class TrueFalseResponse(QuizQuestionResponse):
    def validate_answer(self, answer) -> ValidationResult:
        result = ValidationResult()
        if not isinstance(answer, bool):
            result.add_error('answer', 'Choose true or false.')
        return result

    def score(self) -> int:
        return 1 if self.answer == self.question.get_correct_answer() else 0

    def get_response(self):
        return self.answer


@register_question_type
class TrueFalseQuestion(QuizQuestion):
    type_key = 'truefalse'
    type_name = 'True/False'
    data_serializer_class = TrueFalseDataSerializer
    response_class = TrueFalseResponse

    def compute_maximum_score(self) -> int:
        return 1

    def get_correct_answer(self):
        return bool(self.type_data.get('correct_answer'))
