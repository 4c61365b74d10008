"""
Test cases for the quiz question framework.
Covers scoring, quiz membership reconciliation, revisioning and the API.
"""
import math
from decimal import Decimal
from fractions import Fraction

from django.test import TestCase, override_settings
from django.contrib.auth.models import Permission, User
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework.authtoken.models import Token

from .access import register_answers_access_check, unregister_answers_access_check
from .exceptions import ManualScoringError, UnknownQuestionTypeError, VersionLockedError
from .models import Attempt, AuditLog, Question, QuestionResponse, Quiz, QuizQuestionRelation, QuizVersion
from .question_types import get_question_class, load_question, round_half_up
from .question_types.base import apply_weight, get_score_weight
from .question_types.text_similarity import text_similarity
from .services import (
    MembershipChanges, MembershipReconciler, NewQuiz, create_question, create_quiz,
    retarget_quizzes, update_question,
)


def grant(user, *codenames):
    user.user_permissions.add(*Permission.objects.filter(
        content_type__app_label='quiz_question', codename__in=codenames
    ))
    # Permissions are cached on the instance
    return User.objects.get(pk=user.pk)


def make_question(actor, question_type='truefalse', type_data=None, changes=None, title='Question'):
    if type_data is None:
        type_data = {'correct_answer': True}
    quiz_question, validation, result = create_question(
        question_type, title, type_data, actor=actor, membership_changes=changes
    )
    assert result is not None, validation.errors
    return quiz_question, result


def edge_total(quiz_version):
    return sum(quiz_version.relations.values_list('max_score', flat=True))


class QuizQuestionTestCase(TestCase):
    def setUp(self):
        self.author = User.objects.create_user('author', 'author@test.com', 'pass12345')
        self.student = User.objects.create_user('student', 'student@test.com', 'pass12345')
        self.other = User.objects.create_user('other', 'other@test.com', 'pass12345')


class RoundingTests(TestCase):
    """Weighted scores round half up."""

    def test_half_rounds_up(self):
        self.assertEqual(round_half_up(Decimal('2.5')), 3)
        self.assertEqual(round_half_up(Decimal('3.5')), 4)
        self.assertEqual(round_half_up(Decimal('2.4999')), 2)

    def test_apply_weight(self):
        self.assertEqual(apply_weight(1, Fraction(1, 2)), 1)
        self.assertEqual(apply_weight(5, Fraction(1, 2)), 3)
        self.assertEqual(apply_weight(4, Fraction(1, 3)), 1)
        self.assertEqual(apply_weight(7, None), 7)

    def test_exact_halves_round_up(self):
        self.assertEqual(apply_weight(3, Fraction(11, 6)), 6)
        self.assertEqual(apply_weight(21, Fraction(11, 6)), 39)
        self.assertEqual(round_half_up(Fraction(-5, 2)), -3)

    def test_apply_weight_matches_exact_rounding(self):
        for raw in range(31):
            for numerator in range(21):
                for denominator in range(1, 21):
                    weight = Fraction(numerator, denominator)
                    expected = math.floor(raw * weight + Fraction(1, 2))
                    self.assertEqual(apply_weight(raw, weight), expected, (raw, weight))


class TextSimilarityTests(TestCase):
    def test_identical(self):
        self.assertEqual(text_similarity('A decorator wraps a function.', 'a decorator wraps a function'), 1.0)

    def test_empty(self):
        self.assertEqual(text_similarity('', 'expected'), 0.0)

    def test_unrelated(self):
        self.assertLess(text_similarity('Berlin', 'Paris is the capital of France'), 0.7)


class ResponseScoringTests(QuizQuestionTestCase):
    def setUp(self):
        super().setUp()
        self.quiz_version = create_quiz('Scoring', actor=self.author)
        # Questions outside self.quiz_version are answered here, unweighted
        self.attempt = Attempt.objects.create(
            quiz_version=create_quiz('Scratch', actor=self.author), taker=self.student
        )

    def _in_quiz(self, question_type='truefalse', type_data=None):
        quiz_question, _ = make_question(
            self.author, question_type, type_data,
            changes=MembershipChanges(add_from_candidates=[self.quiz_version.pk])
        )
        return quiz_question

    def _multichoice(self, correct=4, wrong=1):
        choices = [{'text': f'right {i}', 'correct': True} for i in range(correct)]
        choices += [{'text': f'wrong {i}', 'correct': False} for i in range(wrong)]
        return self._in_quiz('multichoice', {'choices': choices, 'choice_multi': True})

    def _start(self):
        # Only after the quiz is built; an attempt locks the quiz version
        return Attempt.objects.create(quiz_version=self.quiz_version, taker=self.student)

    def test_skipped_response_scores_zero(self):
        question = self._in_quiz()
        attempt = self._start()
        response = question.get_response(attempt)
        response.answer = True
        response.skip()

        self.assertTrue(response.is_skipped)
        self.assertEqual(response.get_score(), 0)
        self.assertEqual(response.get_score(weight_adjusted=False), 0)
        row = QuestionResponse.objects.get(attempt=attempt)
        self.assertTrue(row.is_skipped)
        self.assertIsNone(row.answer)

    def test_delete_response(self):
        question = self._in_quiz()
        attempt = self._start()
        response = question.get_response(attempt)
        response.answer = True
        response.save()
        attempt.refresh_from_db()
        self.assertEqual(attempt.score, 1)

        response.delete()
        attempt.refresh_from_db()
        self.assertEqual(attempt.score, 0)
        self.assertFalse(QuestionResponse.objects.filter(attempt=attempt).exists())

    def test_is_correct_matches_score(self):
        question, _ = make_question(self.author)
        for answer, expected in [(True, True), (False, False)]:
            response = question.response_class(self.attempt.pk, question, answer=answer)
            self.assertEqual(response.is_correct(), expected)
            self.assertEqual(
                response.is_correct(),
                response.get_score(weight_adjusted=False) == response.get_max_score(weight_adjusted=False)
            )

    def test_score_is_memoized(self):
        question, _ = make_question(self.author)
        response = question.response_class(self.attempt.pk, question, answer=True)
        self.assertEqual(response.get_score(), 1)
        response.answer = False
        self.assertEqual(response.get_score(), 1)

    def test_weight_adjusted_score(self):
        question = self._multichoice(correct=4)
        QuizQuestionRelation.objects.filter(parent_version=self.quiz_version).update(max_score=5)
        self.attempt = self._start()

        response = question.get_response(self.attempt)
        response.answer = [0, 1]
        response.save()

        self.assertEqual(response.score_weight, Fraction(5, 4))
        self.assertEqual(response.get_score(weight_adjusted=False), 2)
        # 2 * 5/4 = 2.5
        self.assertEqual(response.get_score(), 3)
        self.assertEqual(response.get_score(), round_half_up(Decimal(2) * Decimal(5) / Decimal(4)))
        self.assertEqual(response.get_max_score(), 5)
        self.assertFalse(response.is_correct())

        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.score, 3)

    def test_unweighted_without_edge(self):
        question, _ = make_question(self.author)
        self.assertIsNone(get_score_weight(self.quiz_version.pk, question))
        response = question.get_response(self.attempt)
        response.answer = True
        self.assertEqual(response.get_score(), response.get_score(weight_adjusted=False))

    def test_multichoice_single(self):
        quiz_question = self._in_quiz('multichoice', {'choices': [{'text': 'yes', 'correct': True}, {'text': 'no'}]})
        self.assertEqual(quiz_question.get_maximum_score(), 1)
        self.assertEqual(quiz_question.get_public_data(), {'choices': ['yes', 'no'], 'choice_multi': False})

        response = quiz_question.get_response(self.attempt)
        self.assertTrue(response.is_valid(0))
        self.assertFalse(response.is_valid([0, 1]))
        self.assertFalse(response.is_valid([5]))
        response.answer = 0
        self.assertEqual(response.get_score(), 1)

    def test_multichoice_wrong_choices_cancel_hits(self):
        question = self._multichoice(correct=2, wrong=2)
        self.assertEqual(question.get_maximum_score(), 2)
        response = question.get_response(self.attempt)
        response.answer = [0, 2]
        self.assertEqual(response.get_score(), 0)

    def test_short_answer_modes(self):
        cases = [
            ({'correct_answer': 'Paris'}, ' paris ', 5),
            ({'correct_answer': 'Paris', 'evaluation': 'exact'}, 'paris', 0),
            ({'correct_answer': r'^\d{4}$', 'evaluation': 'regex'}, '1984', 5),
            ({'correct_answer': 'A decorator wraps a function', 'evaluation': 'similarity'},
             'a decorator wraps a function!', 5),
            ({'correct_answer': 'Paris is the capital of France', 'evaluation': 'similarity'}, 'Berlin', 0),
        ]
        for type_data, answer, expected in cases:
            with self.subTest(type_data=type_data, answer=answer):
                question, _ = make_question(self.author, 'short_answer', type_data)
                response = question.response_class(self.attempt.pk, question, answer=answer)
                self.assertEqual(response.get_score(), expected)

    def test_short_answer_validation(self):
        question_class = get_question_class('short_answer')
        _, validation, result = create_question('short_answer', 'Regex', {'correct_answer': '(', 'evaluation': 'regex'})
        self.assertIsNone(result)
        self.assertIn('correct_answer', validation.errors)

        _, validation, result = create_question('short_answer', 'Empty', {})
        self.assertIsNone(result)
        self.assertIn('correct_answer', validation.errors)

        _, validation, result = create_question('short_answer', 'Manual', {'evaluation': 'manual'})
        self.assertIsNotNone(result)
        self.assertEqual(validation.data['max_score'], 5)
        self.assertEqual(question_class.type_key, 'short_answer')

    @override_settings(QUIZ_QUESTION={'MAX_SHORT_ANSWER_LENGTH': 10})
    def test_short_answer_length_is_bounded(self):
        question, _ = make_question(
            self.author, 'short_answer', {'correct_answer': r'x$', 'evaluation': 'regex'}
        )
        response = question.response_class(self.attempt.pk, question)
        self.assertTrue(response.validate_answer('a' * 10).is_valid)
        self.assertIn('answer', response.validate_answer('a' * 11).errors)

        # Text past the limit is never matched
        response.answer = 'a' * 20 + 'x'
        self.assertEqual(response.get_score(), 0)
        response = question.response_class(self.attempt.pk, question, answer='aax')
        self.assertEqual(response.get_score(), 5)

    def test_long_answer_manual_scoring(self):
        question = self._in_quiz('long_answer', {'rubric': 'Mention mutability'})
        self.assertEqual(question.get_maximum_score(), 10)
        self.attempt = self._start()

        response = question.get_response(self.attempt)
        response.answer = 'Lists are mutable, tuples are not.'
        response.save()

        self.attempt.refresh_from_db()
        self.assertFalse(self.attempt.is_evaluated)
        self.assertFalse(response.is_evaluated())

        with self.assertRaises(ManualScoringError):
            response.set_manual_score(11, actor=self.author)

        response.set_manual_score(7, actor=self.author)
        self.attempt.refresh_from_db()
        self.assertTrue(self.attempt.is_evaluated)
        self.assertEqual(self.attempt.score, 7)

        reloaded = question.get_response(self.attempt)
        self.assertEqual(reloaded.get_score(), 7)
        self.assertTrue(reloaded.is_evaluated())
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EventType.RESPONSE_SCORED).exists())

    def test_automatic_types_reject_manual_score(self):
        question, _ = make_question(self.author)
        response = question.response_class(self.attempt.pk, question, answer=True)
        with self.assertRaises(ManualScoringError):
            response.set_manual_score(1)

    def test_truefalse_answer_must_be_bool(self):
        question, _ = make_question(self.author)
        response = question.response_class(self.attempt.pk, question)
        self.assertFalse(response.is_valid('true'))
        self.assertTrue(response.is_valid(False))


class QuestionValidationTests(QuizQuestionTestCase):
    def test_multichoice_needs_two_choices(self):
        _, validation, result = create_question(
            'multichoice', 'One choice', {'choices': [{'text': 'a', 'correct': True}]}, actor=self.author
        )
        self.assertIsNone(result)
        self.assertIn('choices', validation.errors)

    def test_multichoice_needs_a_correct_choice(self):
        _, validation, result = create_question(
            'multichoice', 'None correct', {'choices': [{'text': 'a'}, {'text': 'b'}]}, actor=self.author
        )
        self.assertIsNone(result)
        self.assertIn('choices', validation.errors)

    def test_nested_errors_are_flattened(self):
        _, validation, result = create_question(
            'multichoice', 'Bad choice', {'choices': [{'correct': True}, {'text': 'b'}]}, actor=self.author
        )
        self.assertIsNone(result)
        self.assertIn('choices.0.text', validation.errors)

    def test_invalid_question_is_not_stored(self):
        create_question('truefalse', 'Bad', {}, actor=self.author)
        self.assertFalse(Question.objects.exists())
        self.assertEqual(AuditLog.objects.filter(event_type=AuditLog.EventType.QUESTION_SAVED).count(), 0)

    def test_unknown_type(self):
        with self.assertRaises(UnknownQuestionTypeError):
            get_question_class('essay')

    def test_load_missing_version(self):
        self.assertIsNone(load_question(999999))

    def test_maximum_score_stored(self):
        question, _ = make_question(self.author, 'short_answer', {'correct_answer': 'x', 'max_score': 3})
        self.assertEqual(question.get_maximum_score(), 3)
        self.assertEqual(question.version.properties.max_score, 3)


class MembershipReconcilerTests(QuizQuestionTestCase):
    def test_add_to_unanswered_quiz(self):
        quiz_a = create_quiz('Quiz A', actor=self.author)
        question, result = make_question(
            self.author, 'long_answer', {'max_score': 10},
            changes=MembershipChanges(add_from_candidates=[quiz_a.pk])
        )

        self.assertEqual(result.added, [quiz_a.pk])
        edges = list(quiz_a.relations.all())
        self.assertEqual(len(edges), 1)
        self.assertEqual(edges[0].child_version, question.version)
        self.assertEqual(edges[0].weight, 1)
        self.assertEqual(edges[0].max_score, 10)
        self.assertEqual(edges[0].question_status, QuizQuestionRelation.Status.ALWAYS)

        quiz_a.refresh_from_db()
        self.assertEqual(quiz_a.max_score, 10)
        self.assertEqual(quiz_a.quiz.versions.count(), 1)

    def test_random_questions_quiz_uses_random_mode(self):
        quiz = create_quiz('Random', actor=self.author, randomization=QuizVersion.Randomization.RANDOM_QUESTIONS)
        make_question(self.author, changes=MembershipChanges(add_from_candidates=[quiz.pk]))
        edge = quiz.relations.get()
        self.assertEqual(edge.question_status, QuizQuestionRelation.Status.RANDOM)

        # Random edges still count toward the quiz total
        quiz.refresh_from_db()
        self.assertEqual(quiz.max_score, 1)

    def test_weights_increase(self):
        quiz = create_quiz('Ordered', actor=self.author)
        changes = MembershipChanges(add_from_candidates=[quiz.pk])
        make_question(self.author, changes=changes)
        make_question(self.author, changes=changes)
        self.assertEqual(list(quiz.relations.values_list('weight', flat=True)), [1, 2])

    def test_add_is_idempotent(self):
        quiz = create_quiz('Idempotent', actor=self.author)
        make_question(self.author, changes=MembershipChanges(add_from_candidates=[quiz.pk]))
        question, _ = make_question(self.author)

        changes = MembershipChanges(add_from_candidates=[quiz.pk])
        reconciler = MembershipReconciler(question.version, question.get_maximum_score(), actor=self.author)
        first = reconciler.reconcile(changes)
        second = reconciler.reconcile(changes)

        self.assertEqual(first.added, [quiz.pk])
        self.assertEqual(second.added, [])
        self.assertEqual(quiz.relations.count(), 2)
        self.assertEqual(quiz.relations.get(child_version=question.version).weight, 2)

    def test_add_to_answered_quiz_copies_it(self):
        quiz_b = create_quiz('Quiz B', actor=self.author)
        first, _ = make_question(self.author, changes=MembershipChanges(add_from_candidates=[quiz_b.pk]))
        Attempt.objects.create(quiz_version=quiz_b, taker=self.student)

        question, result = make_question(self.author, changes=MembershipChanges(add_from_candidates=[quiz_b.pk]))

        new_version = quiz_b.quiz.latest_version
        self.assertNotEqual(new_version.pk, quiz_b.pk)
        self.assertEqual(result.revised, {quiz_b.pk: new_version.pk})
        self.assertEqual(list(quiz_b.relations.values_list('child_version', flat=True)), [first.version.pk])
        self.assertEqual(
            set(new_version.relations.values_list('child_version', flat=True)),
            {first.version.pk, question.version.pk}
        )
        new_version.refresh_from_db()
        self.assertEqual(new_version.max_score, edge_total(new_version))

    def test_remove_from_answered_quiz(self):
        quiz_b = create_quiz('Quiz B', actor=self.author)
        changes = MembershipChanges(add_from_candidates=[quiz_b.pk])
        kept, _ = make_question(self.author, changes=changes)
        question, _ = make_question(self.author, 'long_answer', {'max_score': 10}, changes=changes)

        attempt = Attempt.objects.create(quiz_version=quiz_b, taker=self.student)
        response = question.get_response(attempt)
        response.answer = 'An answer'
        response.set_manual_score(6, actor=self.author)

        reconciler = MembershipReconciler(question.version, question.get_maximum_score(), actor=self.author)
        result = reconciler.reconcile(MembershipChanges(keep_or_remove={quiz_b.pk: False}))

        b_prime = quiz_b.quiz.latest_version
        self.assertNotEqual(b_prime.pk, quiz_b.pk)
        self.assertEqual(result.removed, [b_prime.pk])
        self.assertFalse(b_prime.relations.filter(child_version=question.version).exists())
        self.assertTrue(b_prime.relations.filter(child_version=kept.version).exists())

        # The answered version is untouched
        self.assertEqual(quiz_b.relations.count(), 2)
        quiz_b.refresh_from_db()
        self.assertEqual(quiz_b.max_score, 11)
        row = QuestionResponse.objects.get(attempt=attempt)
        self.assertEqual(row.attempt.quiz_version_id, quiz_b.pk)
        self.assertEqual(row.points_awarded, 6)

        b_prime.refresh_from_db()
        self.assertEqual(b_prime.max_score, 1)
        self.assertEqual(b_prime.max_score, edge_total(b_prime))

    def test_remove_is_idempotent(self):
        quiz_b = create_quiz('Quiz B', actor=self.author)
        question, _ = make_question(self.author, changes=MembershipChanges(add_from_candidates=[quiz_b.pk]))
        Attempt.objects.create(quiz_version=quiz_b, taker=self.student)

        changes = MembershipChanges(keep_or_remove={quiz_b.pk: False})
        reconciler = MembershipReconciler(question.version, 1, actor=self.author)
        reconciler.reconcile(changes)
        second = reconciler.reconcile(changes)

        self.assertEqual(quiz_b.quiz.versions.count(), 2)
        self.assertEqual(second.removed, [])
        self.assertEqual(quiz_b.quiz.latest_version.relations.count(), 0)

    def test_keep_and_unknown_versions(self):
        quiz = create_quiz('Keep', actor=self.author)
        other = create_quiz('Other', actor=self.author)
        question, _ = make_question(self.author, changes=MembershipChanges(add_from_candidates=[quiz.pk]))

        reconciler = MembershipReconciler(question.version, 1, actor=self.author)
        result = reconciler.reconcile(MembershipChanges(keep_or_remove={quiz.pk: True, other.pk: True, 999999: False}))

        self.assertEqual(result.kept, [quiz.pk])
        self.assertIn(other.pk, result.skipped)
        self.assertIn(999999, result.skipped)
        self.assertFalse(result.changed)

    def test_only_quiz_editors_change_membership(self):
        quiz = create_quiz('Owned', actor=self.author)
        question, result = make_question(self.other, changes=MembershipChanges(add_from_candidates=[quiz.pk]))
        self.assertEqual(result.added, [])
        self.assertIn(quiz.pk, result.skipped)
        self.assertEqual(quiz.relations.count(), 0)

        editor = grant(self.other, 'edit_any_quiz')
        reconciler = MembershipReconciler(question.version, 1, actor=editor)
        result = reconciler.reconcile(MembershipChanges(add_from_candidates=[quiz.pk]))
        self.assertEqual(result.added, [quiz.pk])

    def test_create_new_quiz(self):
        question, result = make_question(
            self.author, 'short_answer', {'correct_answer': 'x', 'max_score': 4},
            changes=MembershipChanges(create_new=NewQuiz(title='Brand new'))
        )
        quiz_version = QuizVersion.objects.get(pk=result.created_quiz)
        self.assertEqual(quiz_version.quiz.title, 'Brand new')
        self.assertEqual(quiz_version.quiz.created_by, self.author)
        self.assertEqual(quiz_version.relations.get().child_version, question.version)
        self.assertEqual(quiz_version.max_score, 4)
        self.assertIn(quiz_version.pk, result.added)

    def test_in_place_max_score_change_updates_edges(self):
        quiz = create_quiz('Scores', actor=self.author)
        question, _ = make_question(
            self.author, 'short_answer', {'correct_answer': 'x', 'max_score': 4},
            changes=MembershipChanges(add_from_candidates=[quiz.pk])
        )
        update_question(question, type_data={'correct_answer': 'x', 'max_score': 6}, actor=self.author)

        quiz.refresh_from_db()
        self.assertEqual(quiz.relations.get().max_score, 6)
        self.assertEqual(quiz.max_score, 6)
        self.assertEqual(question.version.question.versions.count(), 1)

    def test_audit_entry(self):
        quiz = create_quiz('Audit', actor=self.author)
        make_question(self.author, changes=MembershipChanges(add_from_candidates=[quiz.pk]))
        entry = AuditLog.objects.filter(event_type=AuditLog.EventType.MEMBERSHIP_CHANGED).get()
        self.assertEqual(entry.user, self.author)
        self.assertEqual(entry.metadata['added'], [quiz.pk])


class VersioningTests(QuizQuestionTestCase):
    def setUp(self):
        super().setUp()
        self.quiz = create_quiz('Versioned', actor=self.author)
        self.question, _ = make_question(
            self.author, changes=MembershipChanges(add_from_candidates=[self.quiz.pk])
        )

    def test_has_been_answered(self):
        self.assertFalse(self.question.has_been_answered())
        other_quiz = create_quiz('Unrelated', actor=self.author)
        Attempt.objects.create(quiz_version=other_quiz, taker=self.student)
        self.assertFalse(self.question.has_been_answered())

        # Any attempt on a quiz holding the version counts
        Attempt.objects.create(quiz_version=self.quiz, taker=self.student)
        self.assertTrue(self.question.has_been_answered())

    def test_answered_version_is_locked(self):
        Attempt.objects.create(quiz_version=self.quiz, taker=self.student)
        with self.assertRaises(VersionLockedError):
            self.question.persist(actor=self.author)

    def test_update_unanswered_in_place(self):
        updated, validation, result = update_question(
            self.question, type_data={'correct_answer': False}, actor=self.author
        )
        self.assertTrue(validation.is_valid)
        self.assertEqual(updated.version.pk, self.question.version.pk)
        self.assertFalse(updated.get_correct_answer())

    def test_update_answered_creates_version_and_retargets(self):
        Attempt.objects.create(quiz_version=self.quiz, taker=self.student)

        updated, _, result = update_question(
            self.question, type_data={'correct_answer': False}, actor=self.author, log='Fix answer'
        )

        self.assertEqual(updated.version.number, 2)
        self.assertEqual(updated.version.log, 'Fix answer')
        self.assertEqual(result.kept, [self.quiz.pk])
        self.assertFalse(result.needs_revision_actions)

        latest = self.quiz.quiz.latest_version
        self.assertEqual(result.retargeted, [latest.pk])
        self.assertEqual(latest.relations.get().child_version, updated.version)
        # History keeps pointing at the answered version
        self.assertEqual(self.quiz.relations.get().child_version, self.question.version)
        self.assertTrue(self.question.get_correct_answer())

    def test_update_with_invalid_data_changes_nothing(self):
        _, validation, result = update_question(self.question, type_data={'correct_answer': 'maybe'})
        self.assertIsNone(result)
        self.assertIn('correct_answer', validation.errors)
        self.assertEqual(self.question.question.versions.count(), 1)

    @override_settings(QUIZ_QUESTION={'AUTO_REVISIONING': False})
    def test_manual_revisioning(self):
        author = grant(self.author, 'manual_quiz_revisioning')
        Attempt.objects.create(quiz_version=self.quiz, taker=self.student)

        updated, _, result = update_question(self.question, type_data={'correct_answer': False}, actor=author)

        self.assertTrue(result.needs_revision_actions)
        self.assertEqual(result.retargeted, [])
        self.assertEqual(self.quiz.quiz.latest_version.pk, self.quiz.pk)

        retargeted = retarget_quizzes(self.question.version, updated.version, actor=author)
        latest = self.quiz.quiz.latest_version
        self.assertEqual(retargeted, [latest.pk])
        self.assertEqual(latest.relations.get().child_version, updated.version)

    @override_settings(QUIZ_QUESTION={'AUTO_REVISIONING': False})
    def test_manual_revisioning_needs_permission(self):
        Attempt.objects.create(quiz_version=self.quiz, taker=self.student)
        _, _, result = update_question(self.question, type_data={'correct_answer': False}, actor=self.author)
        self.assertFalse(result.needs_revision_actions)
        self.assertEqual(len(result.retargeted), 1)

    def test_explicit_new_version_can_drop_quiz(self):
        updated, _, result = update_question(
            self.question, new_version=True, actor=self.author,
            membership_changes=MembershipChanges(keep_or_remove={self.quiz.pk: False})
        )
        self.assertEqual(updated.version.number, 2)
        self.assertEqual(result.retargeted, [])
        self.assertEqual(self.quiz.relations.count(), 0)

    def test_keeps_do_not_leak_into_callers_changes(self):
        changes = MembershipChanges()
        update_question(self.question, new_version=True, actor=self.author, membership_changes=changes)
        self.assertEqual(changes.keep_or_remove, {})

    def test_delete_question(self):
        attempt = Attempt.objects.create(quiz_version=self.quiz, taker=self.student)
        response = self.question.get_response(attempt)
        response.answer = True
        response.save()
        attempt.refresh_from_db()
        self.assertEqual(attempt.score, 1)
        question_id = self.question.question.pk

        self.question.delete(actor=self.author)

        self.quiz.refresh_from_db()
        self.assertEqual(self.quiz.max_score, 0)
        attempt.refresh_from_db()
        self.assertEqual(attempt.score, 0)
        self.assertTrue(attempt.is_evaluated)
        entry = AuditLog.objects.get(event_type=AuditLog.EventType.QUESTION_DELETED)
        self.assertEqual(entry.metadata['question_id'], question_id)
        self.assertEqual(entry.metadata['attempts'], [attempt.pk])


class AnswersAccessTests(QuizQuestionTestCase):
    def setUp(self):
        super().setUp()
        self.question, _ = make_question(self.author)

    def test_author_can_view(self):
        self.assertTrue(self.question.can_reveal_correct_answer(self.author))

    def test_others_cannot_view(self):
        self.assertFalse(self.question.can_reveal_correct_answer(self.other))
        self.assertFalse(self.question.can_reveal_correct_answer(None))

    def test_permission_grants_access(self):
        other = grant(self.other, 'view_any_correct_response')
        self.assertTrue(self.question.can_reveal_correct_answer(other))

    def test_registered_check_grants_access(self):
        def allow_other(actor, question_version):
            return actor is not None and actor.username == 'other'

        register_answers_access_check(allow_other)
        self.addCleanup(unregister_answers_access_check, allow_other)

        self.assertTrue(self.question.can_reveal_correct_answer(self.other))
        self.assertFalse(self.question.can_reveal_correct_answer(self.student))


class QuizApiTests(APITestCase):
    """End-to-end flows through the REST API."""

    def setUp(self):
        self.author = User.objects.create_user('author', 'author@test.com', 'pass12345')
        self.student = User.objects.create_user('student', 'student@test.com', 'pass12345')
        self.author_token = Token.objects.create(user=self.author)
        self.student_token = Token.objects.create(user=self.student)

    def as_author(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {self.author_token.key}')

    def as_student(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {self.student_token.key}')

    def create_quiz(self):
        self.as_author()
        response = self.client.post('/api/quizzes/', {'title': 'API quiz'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data

    def create_question(self, quiz_version_id, **overrides):
        payload = {
            'question_type': 'multichoice',
            'title': 'Pick one',
            'body': 'Which one?',
            'type_data': {'choices': [{'text': 'a', 'correct': True}, {'text': 'b'}]},
            'memberships': {'add_from_candidates': [quiz_version_id]},
        }
        payload.update(overrides)
        self.as_author()
        return self.client.post('/api/questions/', payload, format='json')

    def test_requires_authentication(self):
        response = self.client.get('/api/quizzes/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_question_in_quiz(self):
        quiz = self.create_quiz()
        version_id = quiz['latest_version']['id']

        response = self.create_question(version_id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['max_score'], 1)
        self.assertEqual(response.data['memberships_result']['added'], [version_id])
        self.assertIn('type_data', response.data)

        response = self.client.get(f"/api/quizzes/{quiz['id']}/")
        self.assertEqual(response.data['latest_version']['max_score'], 1)
        self.assertEqual(response.data['latest_version']['question_count'], 1)

    def test_invalid_type_data(self):
        quiz = self.create_quiz()
        response = self.create_question(quiz['latest_version']['id'], type_data={'choices': [{'text': 'a'}]})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('type_data.choices', response.data)

    def test_unknown_question_type(self):
        quiz = self.create_quiz()
        response = self.create_question(quiz['latest_version']['id'], question_type='essay')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('question_type', response.data)

    def test_student_cannot_see_answers(self):
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data

        self.as_student()
        response = self.client.get(f"/api/questions/{question['question']}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('type_data', response.data)
        self.assertEqual(response.data['public_data']['choices'], ['a', 'b'])

        response = self.client.get(f"/api/questions/{question['question']}/correct-answer/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.as_author()
        response = self.client.get(f"/api/questions/{question['question']}/correct-answer/")
        self.assertEqual(response.data['correct_answer'], [0])

    def test_student_cannot_edit(self):
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data

        self.as_student()
        response = self.client.patch(f"/api/questions/{question['question']}/", {'title': 'Mine'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_attempt_flow(self):
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data

        self.as_student()
        response = self.client.post('/api/attempts/', {'quiz': quiz['id']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        attempt_id = response.data['id']

        response = self.client.post(
            f'/api/attempts/{attempt_id}/respond/',
            {'question_version': question['id'], 'answer': [0]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 1)
        self.assertTrue(response.data['is_correct'])

        response = self.client.post(f'/api/attempts/{attempt_id}/finish/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 1)
        self.assertEqual(response.data['status'], Attempt.Status.FINISHED)

        response = self.client.post(
            f'/api/attempts/{attempt_id}/respond/',
            {'question_version': question['id'], 'answer': [1]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(f'/api/attempts/{attempt_id}/report/')
        self.assertEqual(response.data['max_score'], 1)
        self.assertEqual(len(response.data['responses']), 1)

    def test_skip_and_invalid_answers(self):
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data

        self.as_student()
        attempt_id = self.client.post('/api/attempts/', {'quiz': quiz['id']}, format='json').data['id']

        response = self.client.post(
            f'/api/attempts/{attempt_id}/respond/',
            {'question_version': question['id'], 'answer': [7]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            f'/api/attempts/{attempt_id}/respond/',
            {'question_version': question['id'] + 1000, 'answer': [0]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            f'/api/attempts/{attempt_id}/respond/',
            {'question_version': question['id'], 'skip': True},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 0)
        self.assertTrue(response.data['is_skipped'])

    def test_other_users_attempts_hidden(self):
        quiz = self.create_quiz()
        self.create_question(quiz['latest_version']['id'])
        self.as_student()
        attempt_id = self.client.post('/api/attempts/', {'quiz': quiz['id']}, format='json').data['id']

        self.as_author()
        response = self.client.get(f'/api/attempts/{attempt_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_editing_answered_question_revises_quiz(self):
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data
        self.as_student()
        self.client.post('/api/attempts/', {'quiz': quiz['id']}, format='json')

        self.as_author()
        response = self.client.patch(
            f"/api/questions/{question['question']}/",
            {'type_data': {'choices': [{'text': 'a'}, {'text': 'b', 'correct': True}]}},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['number'], 2)
        self.assertEqual(len(response.data['memberships_result']['retargeted']), 1)

        response = self.client.get(f"/api/quizzes/{quiz['id']}/versions/")
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['relations'][0]['child_version'], question['id'])
        self.assertNotEqual(response.data[1]['relations'][0]['child_version'], question['id'])

    @override_settings(QUIZ_QUESTION={'AUTO_REVISIONING': False})
    def test_revision_actions_endpoint(self):
        self.author = grant(self.author, 'manual_quiz_revisioning')
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data
        self.as_student()
        self.client.post('/api/attempts/', {'quiz': quiz['id']}, format='json')

        self.as_author()
        response = self.client.patch(
            f"/api/questions/{question['question']}/", {'title': 'Renamed'}, format='json'
        )
        self.assertTrue(response.data['memberships_result']['needs_revision_actions'])

        response = self.client.post(
            f"/api/questions/{question['question']}/revision-actions/",
            {'from_version': question['id']},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['retargeted']), 1)

        self.as_student()
        response = self.client.post(
            f"/api/questions/{question['question']}/revision-actions/",
            {'from_version': question['id']},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_memberships_endpoint(self):
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data
        version_id = quiz['latest_version']['id']

        response = self.client.post(
            f"/api/questions/{question['question']}/memberships/",
            {'keep_or_remove': {str(version_id): False}},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['removed'], [version_id])
        self.assertEqual(QuizVersion.objects.get(pk=version_id).max_score, 0)

    def test_manual_scoring(self):
        quiz = self.create_quiz()
        question = self.create_question(
            quiz['latest_version']['id'],
            question_type='long_answer',
            type_data={'rubric': 'Anything', 'max_score': 4},
        ).data

        self.as_student()
        attempt_id = self.client.post('/api/attempts/', {'quiz': quiz['id']}, format='json').data['id']
        response = self.client.post(
            f'/api/attempts/{attempt_id}/respond/',
            {'question_version': question['id'], 'answer': 'My essay'},
            format='json'
        )
        self.assertFalse(response.data['is_evaluated'])
        row = QuestionResponse.objects.get(attempt_id=attempt_id)

        response = self.client.post(f'/api/responses/{row.pk}/score/', {'score': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.as_author()
        response = self.client.get('/api/responses/pending/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.post(f'/api/responses/{row.pk}/score/', {'score': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/responses/{row.pk}/score/', {'score': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 3)
        self.assertEqual(Attempt.objects.get(pk=attempt_id).score, 3)

    def test_delete_question_updates_quiz(self):
        quiz = self.create_quiz()
        question = self.create_question(quiz['latest_version']['id']).data

        response = self.client.delete(f"/api/questions/{question['question']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(Quiz.objects.get(pk=quiz['id']).latest_version.max_score, 0)
