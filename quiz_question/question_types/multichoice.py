from rest_framework import serializers

from .base import QuizQuestion, QuizQuestionResponse, ValidationResult
from .factory import register_question_type


class ChoiceSerializer(serializers.Serializer):
    text = serializers.CharField()
    correct = serializers.BooleanField(default=False)
    feedback = serializers.CharField(required=False, allow_blank=True, default='')


class MultichoiceDataSerializer(serializers.Serializer):
    choices = ChoiceSerializer(many=True)
    choice_multi = serializers.BooleanField(default=False)


class MultichoiceResponse(QuizQuestionResponse):
    """Answer is a list of selected choice indexes (a bare index is accepted)."""

    def selected(self, answer=None):
        answer = self.answer if answer is None else answer
        if isinstance(answer, int) and not isinstance(answer, bool):
            return [answer]
        return list(answer or [])

    def validate_answer(self, answer) -> ValidationResult:
        result = ValidationResult()
        if not isinstance(answer, (int, list)) or isinstance(answer, bool):
            result.add_error('answer', 'Select one or more choices.')
            return result

        selected = self.selected(answer)
        choices = self.question.type_data.get('choices', [])
        for index in selected:
            if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(choices):
                result.add_error('answer', f"Invalid choice: {index!r}.")
        if len(set(map(repr, selected))) != len(selected):
            result.add_error('answer', 'A choice was selected more than once.')
        if not self.question.type_data.get('choice_multi') and len(selected) > 1:
            result.add_error('answer', 'Only one choice may be selected.')
        return result

    def score(self) -> int:
        correct = set(self.question.get_correct_answer())
        selected = set(self.selected())
        if not self.question.type_data.get('choice_multi'):
            return 1 if selected and selected <= correct else 0
        hits = len(selected & correct)
        wrong = len(selected - correct)
        return max(0, hits - wrong)

    def get_response(self):
        return self.selected()


@register_question_type
class MultichoiceQuestion(QuizQuestion):
    type_key = 'multichoice'
    type_name = 'Multiple choice'
    data_serializer_class = MultichoiceDataSerializer
    response_class = MultichoiceResponse

    def clean(self, result: ValidationResult):
        if len(result.data['choices']) < 2:
            result.add_error('choices', 'Provide at least two choices.')
            return
        correct = [choice for choice in result.data['choices'] if choice['correct']]
        if not correct:
            result.add_error('choices', 'At least one choice must be marked correct.')
        elif not result.data['choice_multi'] and len(correct) > 1:
            result.add_error('choices', 'Only one choice may be correct unless multiple answers are allowed.')

    def compute_maximum_score(self) -> int:
        if self.type_data.get('choice_multi'):
            return len(self.get_correct_answer())
        return 1

    def get_correct_answer(self):
        return [
            index for index, choice in enumerate(self.type_data.get('choices', []))
            if choice.get('correct')
        ]

    def get_public_data(self) -> dict:
        return {
            'choices': [choice.get('text', '') for choice in self.type_data.get('choices', [])],
            'choice_multi': bool(self.type_data.get('choice_multi')),
        }
