import re
from functools import lru_cache

from rest_framework import serializers

from quiz_question.conf import get_setting
from .base import QuizQuestion, QuizQuestionResponse, ValidationResult, round_half_up
from .factory import register_question_type
from .text_similarity import text_similarity


class Evaluation:
    EXACT = 'exact'
    CASE_INSENSITIVE = 'case_insensitive'
    REGEX = 'regex'
    SIMILARITY = 'similarity'
    MANUAL = 'manual'

    CHOICES = [EXACT, CASE_INSENSITIVE, REGEX, SIMILARITY, MANUAL]


@lru_cache(maxsize=256)
def compile_pattern(pattern):
    return re.compile(pattern)


class ShortAnswerDataSerializer(serializers.Serializer):
    correct_answer = serializers.CharField(allow_blank=True, required=False, default='')
    evaluation = serializers.ChoiceField(choices=Evaluation.CHOICES, default=Evaluation.CASE_INSENSITIVE)
    max_score = serializers.IntegerField(
        min_value=1,
        default=lambda: get_setting('DEFAULT_SHORT_ANSWER_SCORE')
    )

    def validate(self, data):
        if data['evaluation'] != Evaluation.MANUAL and not data['correct_answer']:
            raise serializers.ValidationError({'correct_answer': 'Required unless answers are scored manually.'})
        if data['evaluation'] == Evaluation.REGEX:
            try:
                compile_pattern(data['correct_answer'])
            except re.error as e:
                raise serializers.ValidationError({'correct_answer': f"Invalid regular expression: {e}"})
        return data


class ShortAnswerResponse(QuizQuestionResponse):
    # Rounding can award full points to a near miss; only this counts as correct
    CORRECT_SIMILARITY = 0.9

    @property
    def evaluation(self):
        return self.question.type_data.get('evaluation', Evaluation.CASE_INSENSITIVE)

    def requires_manual_scoring(self) -> bool:
        return self.evaluation == Evaluation.MANUAL

    def validate_answer(self, answer) -> ValidationResult:
        result = ValidationResult()
        max_length = get_setting('MAX_SHORT_ANSWER_LENGTH')
        if not isinstance(answer, str):
            result.add_error('answer', 'Answer must be text.')
        elif len(answer) > max_length:
            result.add_error('answer', f"Answer must be at most {max_length} characters.")
        return result

    def similarity(self) -> float:
        return text_similarity(self.answer or '', self.question.get_correct_answer())

    def score(self) -> int:
        max_score = self.question.get_maximum_score()
        answer = self.answer or ''
        correct = self.question.get_correct_answer()

        if self.evaluation == Evaluation.MANUAL:
            return self.stored_score or 0
        if self.evaluation == Evaluation.EXACT:
            return max_score if answer == correct else 0
        if self.evaluation == Evaluation.CASE_INSENSITIVE:
            return max_score if answer.strip().lower() == correct.strip().lower() else 0
        if self.evaluation == Evaluation.REGEX:
            answer = answer[:get_setting('MAX_SHORT_ANSWER_LENGTH')]
            return max_score if compile_pattern(correct).search(answer) else 0

        similarity = self.similarity()
        if similarity < get_setting('SIMILARITY_THRESHOLD'):
            return 0
        return round_half_up(max_score * similarity)

    def is_correct(self) -> bool:
        if self.evaluation == Evaluation.SIMILARITY:
            return not self.is_skipped and self.similarity() >= self.CORRECT_SIMILARITY
        return super().is_correct()

    def get_response(self):
        return self.answer


@register_question_type
class ShortAnswerQuestion(QuizQuestion):
    type_key = 'short_answer'
    type_name = 'Short answer'
    data_serializer_class = ShortAnswerDataSerializer
    response_class = ShortAnswerResponse

    def compute_maximum_score(self) -> int:
        return int(self.type_data.get('max_score', get_setting('DEFAULT_SHORT_ANSWER_SCORE')))

    def get_correct_answer(self):
        return self.type_data.get('correct_answer', '')
