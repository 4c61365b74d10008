"""
Attempt reports built from response summaries.
"""
from quiz_question.models import QuestionResponse


def build_attempt_report(attempt):
    from quiz_question.question_types import get_question

    rows = QuestionResponse.objects.filter(attempt=attempt).select_related('question_version__question')
    summaries = []
    for row in rows:
        question = get_question(row.question_version)
        summaries.append(question.get_response(attempt).to_summary())

    return {
        'attempt_id': attempt.pk,
        'quiz_version_id': attempt.quiz_version_id,
        'status': attempt.status,
        'score': attempt.score or 0,
        'max_score': attempt.quiz_version.max_score,
        'is_evaluated': attempt.is_evaluated,
        'responses': summaries,
    }
