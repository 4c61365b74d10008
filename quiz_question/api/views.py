"""
API Views for the quiz question framework.
Provides endpoints for quizzes, versioned questions, attempts and responses.
"""
import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import (
    extend_schema, extend_schema_view, OpenApiParameter,
    OpenApiExample, OpenApiResponse
)

from quiz_question.access import has_capability
from quiz_question.exceptions import ManualScoringError, VersionLockedError
from quiz_question.models import Attempt, Question, QuestionResponse, QuestionVersion, Quiz
from quiz_question.permissions import CanManageRevisions, CanRespond, IsAuthorOrReadOnly, IsTakerOrAdmin
from quiz_question.question_types import get_question, load_question
from quiz_question.services import (
    MembershipReconciler, build_attempt_report, create_question, create_quiz, retarget_quizzes, update_question,
)
from quiz_question.throttling import ResponseRateThrottle
from .serializers import (
    AttemptCreateSerializer, AttemptReportSerializer, AttemptSerializer,
    ManualScoreSerializer, MembershipChangesSerializer,
    QuestionCreateSerializer, QuestionSerializer, QuestionUpdateSerializer, QuestionVersionSerializer,
    QuizCreateSerializer, QuizSerializer, QuizVersionDetailSerializer,
    ResponseSubmitSerializer, ResponseSummarySerializer, RevisionActionsSerializer,
)

logger = logging.getLogger(__name__)


def _membership_changes(data):
    memberships = data.get('memberships')
    if not memberships:
        return None
    return MembershipChangesSerializer().to_changes(memberships)


def _validation_error_response(validation):
    errors = {f"type_data.{name}": messages for name, messages in validation.errors.items()}
    return Response(errors, status=status.HTTP_400_BAD_REQUEST)


# =============================================================================
# QUIZZES
# =============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List quizzes",
        description="Returns a paginated list of quizzes with their latest version."
    ),
    retrieve=extend_schema(
        summary="Get quiz details",
        description="Returns a quiz and its latest version."
    ),
)
@extend_schema(tags=['Quizzes'])
class QuizViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                  viewsets.GenericViewSet):
    """
    Quizzes are containers of question versions.

    A quiz is edited through the membership of its questions; once a quiz
    version has attempts, edits land on a new version.
    """
    queryset = Quiz.objects.select_related('created_by').order_by('-created_at')
    serializer_class = QuizSerializer
    permission_classes = [IsAuthenticated]
    search_fields = ['title']
    ordering_fields = ['title', 'created_at']

    @extend_schema(
        summary="Create quiz",
        description="Create an empty quiz with its first version.",
        request=QuizCreateSerializer,
        responses={201: QuizSerializer},
        examples=[
            OpenApiExample(
                'Request Example',
                value={"title": "Python Basics", "randomization": 0},
                request_only=True
            )
        ]
    )
    def create(self, request, *args, **kwargs):
        serializer = QuizCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        version = create_quiz(
            serializer.validated_data['title'],
            actor=request.user,
            randomization=serializer.validated_data['randomization'],
        )
        return Response(
            QuizSerializer(version.quiz, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )

    @extend_schema(
        summary="List quiz versions",
        description="Every version of the quiz, oldest first, with its question edges.",
        responses={200: QuizVersionDetailSerializer(many=True)}
    )
    @action(detail=True, methods=['get'])
    def versions(self, request, pk=None):
        quiz = self.get_object()
        versions = quiz.versions.prefetch_related('relations__parent_version__quiz').order_by('number')
        return Response(QuizVersionDetailSerializer(versions, many=True, context={'request': request}).data)


# =============================================================================
# QUESTIONS
# =============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List questions",
        description="Returns a paginated list of questions.",
        parameters=[
            OpenApiParameter(name='question_type', description='Filter by question type', required=False, type=str),
        ]
    ),
    retrieve=extend_schema(
        summary="Get question",
        description="""
Returns the latest version of a question.

`type_data` (which holds the correct answer) is only included for the author,
holders of `view_any_correct_response`, or users granted access by a registered check.
""",
        responses={200: QuestionVersionSerializer}
    ),
)
@extend_schema(tags=['Questions'])
class QuestionViewSet(viewsets.ModelViewSet):
    """
    Versioned questions.

    Saving a question validates its type data, stores its maximum score and
    reconciles the quizzes it belongs to in a single transaction.
    """
    queryset = Question.objects.select_related('created_by').order_by('-created_at')
    serializer_class = QuestionSerializer
    permission_classes = [IsAuthenticated, IsAuthorOrReadOnly]
    filterset_fields = ['question_type']
    search_fields = ['title']
    ordering_fields = ['title', 'created_at', 'updated_at']

    def _latest(self, question):
        version = question.latest_version
        if version is None:
            return None
        return get_question(version)

    def _latest_or_404(self, question):
        quiz_question = self._latest(question)
        if quiz_question is None:
            raise NotFound("This question has no versions.")
        return quiz_question

    def retrieve(self, request, *args, **kwargs):
        quiz_question = self._latest_or_404(self.get_object())
        return Response(QuestionVersionSerializer(quiz_question.version, context={'request': request}).data)

    @extend_schema(
        summary="Create question",
        description="""
Create a question and optionally place it in quizzes.

**Memberships:**
- `add_from_candidates`: quiz version ids to add the question to
- `create_new`: a new quiz to create around the question

Invalid `type_data` returns field errors prefixed with `type_data.`.
""",
        request=QuestionCreateSerializer,
        responses={201: QuestionVersionSerializer},
        examples=[
            OpenApiExample(
                'Request Example',
                value={
                    "question_type": "multichoice",
                    "title": "Python keywords",
                    "body": "Which of these are Python keywords?",
                    "type_data": {
                        "choice_multi": True,
                        "choices": [
                            {"text": "lambda", "correct": True},
                            {"text": "yield", "correct": True},
                            {"text": "function", "correct": False}
                        ]
                    },
                    "memberships": {"add_from_candidates": [1]}
                },
                request_only=True
            )
        ]
    )
    def create(self, request, *args, **kwargs):
        serializer = QuestionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        quiz_question, validation, result = create_question(
            data['question_type'],
            data['title'],
            data['type_data'],
            actor=request.user,
            body=data['body'],
            title_override=data['title_override'],
            membership_changes=_membership_changes(data),
        )
        if result is None:
            return _validation_error_response(validation)

        payload = QuestionVersionSerializer(quiz_question.version, context={'request': request}).data
        payload['memberships_result'] = result.as_dict()
        return Response(payload, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Update question",
        description="""
Edit the latest version of a question.

If that version has been answered, or `new_version` is true, the edit is saved as
a new version. Quizzes holding the previous version are moved to the new one
unless revision actions are chosen manually (`needs_revision_actions` in the result).
""",
        request=QuestionUpdateSerializer,
        responses={200: QuestionVersionSerializer, 409: OpenApiResponse(description="Version is locked")}
    )
    def update(self, request, *args, **kwargs):
        question = self.get_object()
        serializer = QuestionUpdateSerializer(data=request.data, partial=kwargs.get('partial', False))
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        quiz_question = self._latest_or_404(question)
        try:
            quiz_question, validation, result = update_question(
                quiz_question,
                type_data=data.get('type_data'),
                title=data.get('title'),
                body=data.get('body'),
                title_override=data.get('title_override'),
                new_version=data.get('new_version', False),
                membership_changes=_membership_changes(data),
                actor=request.user,
                log=data.get('log', ''),
            )
        except VersionLockedError as e:
            return Response({"detail": str(e)}, status=status.HTTP_409_CONFLICT)

        if result is None:
            return _validation_error_response(validation)

        payload = QuestionVersionSerializer(quiz_question.version, context={'request': request}).data
        payload['memberships_result'] = result.as_dict()
        return Response(payload)

    @extend_schema(
        summary="Delete question",
        description="Delete a question, or a single version of it with `?version=<id>`.",
        parameters=[
            OpenApiParameter(name='version', description='Only delete this question version', required=False, type=int),
        ]
    )
    def destroy(self, request, *args, **kwargs):
        question = self.get_object()
        version_id = request.query_params.get('version')

        if version_id:
            version = get_object_or_404(QuestionVersion, pk=version_id, question=question)
            get_question(version).delete(only_this_version=True, actor=request.user)
        else:
            quiz_question = self._latest(question)
            if quiz_question is None:
                question.delete()
            else:
                quiz_question.delete(actor=request.user)

        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        summary="Get correct answer",
        description="Returns the correct answer of the latest version, if you may see it.",
        responses={200: dict, 403: OpenApiResponse(description="Not allowed to view correct answers")}
    )
    @action(detail=True, methods=['get'], url_path='correct-answer')
    def correct_answer(self, request, pk=None):
        quiz_question = self._latest(self.get_object())
        if quiz_question is None or not quiz_question.can_reveal_correct_answer(request.user):
            return Response(
                {"detail": "You are not allowed to view correct answers for this question."},
                status=status.HTTP_403_FORBIDDEN
            )
        return Response({
            'question_version_id': quiz_question.version.pk,
            'correct_answer': quiz_question.get_correct_answer(),
        })

    @extend_schema(
        summary="Apply revision actions",
        description="""
Move quizzes from an older version of this question to its latest version.

Used when automatic revisioning is off and a save reported `needs_revision_actions`.
Omit `quiz_versions` to move every quiz still using `from_version`.
""",
        request=RevisionActionsSerializer,
        responses={200: dict}
    )
    @action(detail=True, methods=['post'], url_path='revision-actions',
            permission_classes=[IsAuthenticated, CanManageRevisions])
    def revision_actions(self, request, pk=None):
        question = self.get_object()
        serializer = RevisionActionsSerializer(data=request.data, context={'question': question})
        serializer.is_valid(raise_exception=True)

        latest = question.latest_version
        from_version = serializer.validated_data['from_version']
        if from_version.pk == latest.pk:
            return Response({"detail": "Already the latest version."}, status=status.HTTP_400_BAD_REQUEST)

        retargeted = retarget_quizzes(
            from_version,
            latest,
            quiz_version_ids=serializer.validated_data.get('quiz_versions'),
            actor=request.user,
        )
        return Response({'to_version': latest.pk, 'retargeted': retargeted})

    @extend_schema(
        summary="Change quiz memberships",
        description="""
Reconcile the quizzes the latest version belongs to.

`keep_or_remove` maps quiz version ids to true (keep) or false (remove). Answered
quiz versions are copied before they change.
""",
        request=MembershipChangesSerializer,
        responses={200: dict}
    )
    @action(detail=True, methods=['post'])
    def memberships(self, request, pk=None):
        question = self.get_object()
        serializer = MembershipChangesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        quiz_question = self._latest_or_404(question)
        reconciler = MembershipReconciler(quiz_question.version, quiz_question.get_maximum_score(), actor=request.user)
        result = reconciler.reconcile(serializer.to_changes(serializer.validated_data))
        return Response(result.as_dict())


# =============================================================================
# ATTEMPTS
# =============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List attempts",
        description="Your attempts. Staff see every attempt."
    ),
    retrieve=extend_schema(summary="Get attempt"),
)
@extend_schema(tags=['Attempts'])
class AttemptViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                     viewsets.GenericViewSet):
    """
    Attempts pin a quiz version; responses are scored against the question
    versions of that quiz version.
    """
    queryset = Attempt.objects.none()
    serializer_class = AttemptSerializer
    permission_classes = [IsAuthenticated, IsTakerOrAdmin]
    filterset_fields = ['quiz_version', 'status']
    ordering_fields = ['started_at', 'finished_at', 'score']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Attempt.objects.none()

        queryset = Attempt.objects.select_related('quiz_version', 'quiz_version__quiz', 'taker')
        if not self.request.user.is_staff:
            queryset = queryset.filter(taker=self.request.user)
        return queryset

    @extend_schema(
        summary="Start attempt",
        description="Start an attempt on the latest version of a quiz.",
        request=AttemptCreateSerializer,
        responses={201: AttemptSerializer},
        examples=[
            OpenApiExample('Request Example', value={"quiz": 1}, request_only=True)
        ]
    )
    def create(self, request, *args, **kwargs):
        serializer = AttemptCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        quiz = serializer.validated_data['quiz']
        attempt = Attempt.objects.create(quiz_version=quiz.latest_version, taker=request.user)
        logger.info(f"User {request.user.username} started attempt {attempt.pk} on {attempt.quiz_version}")

        return Response(AttemptSerializer(attempt).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Answer a question",
        description="Save (or skip) the answer to one question of the attempt. Returns the scored response.",
        request=ResponseSubmitSerializer,
        responses={200: ResponseSummarySerializer},
        examples=[
            OpenApiExample(
                'Request Example',
                value={"question_version": 3, "answer": [0, 2]},
                request_only=True
            )
        ]
    )
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, CanRespond],
            throttle_classes=[ResponseRateThrottle])
    def respond(self, request, pk=None):
        attempt = self.get_object()
        serializer = ResponseSubmitSerializer(data=request.data, context={'attempt': attempt})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        quiz_question = load_question(data['question_version'])
        response = quiz_question.get_response(attempt)

        if data['skip']:
            response.skip()
        else:
            validation = response.validate_answer(data['answer'])
            if not validation.is_valid:
                return Response(validation.errors, status=status.HTTP_400_BAD_REQUEST)
            response.answer = data['answer']
            if response.requires_manual_scoring():
                # A changed answer needs scoring again
                response.evaluated = False
                response.stored_score = None
            response.save()

        return Response(response.to_summary())

    @extend_schema(
        summary="Finish attempt",
        request=None,
        responses={200: AttemptSerializer}
    )
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, CanRespond])
    def finish(self, request, pk=None):
        attempt = self.get_object()
        attempt.finish()
        logger.info(f"Attempt {attempt.pk} finished with score {attempt.score}/{attempt.quiz_version.max_score}")
        return Response(AttemptSerializer(attempt).data)

    @extend_schema(
        summary="Attempt report",
        description="Per-question scores for the attempt.",
        responses={200: AttemptReportSerializer}
    )
    @action(detail=True, methods=['get'])
    def report(self, request, pk=None):
        attempt = self.get_object()
        return Response(build_attempt_report(attempt))


# =============================================================================
# MANUAL SCORING
# =============================================================================

@extend_schema(tags=['Attempts'])
class ResponseScoreView(APIView):
    """Manual scoring of responses that are not scored automatically."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Score a response",
        description="""
Set the score of a manually scored response (long answers, manual short answers).

**Requires** `score_any_response` or ownership of the quiz.
""",
        request=ManualScoreSerializer,
        responses={200: ResponseSummarySerializer, 400: dict, 403: dict, 404: dict}
    )
    def post(self, request, response_id):
        row = get_object_or_404(
            QuestionResponse.objects.select_related('attempt', 'attempt__quiz_version__quiz', 'question_version'),
            pk=response_id
        )
        quiz = row.attempt.quiz_version.quiz
        if not has_capability(request.user, 'score_any_response', resource=quiz):
            return Response(
                {"detail": "You do not have permission to score this response."},
                status=status.HTTP_403_FORBIDDEN
            )

        serializer = ManualScoreSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        response = get_question(row.question_version).get_response(row.attempt)
        try:
            response.set_manual_score(serializer.validated_data['score'], actor=request.user)
        except ManualScoringError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(response.to_summary())


@extend_schema(tags=['Attempts'])
class PendingScoringView(APIView):
    """Responses still waiting for a manual score."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Responses awaiting scoring",
        description="Unscored responses on quizzes you own. Holders of `score_any_response` see all of them.",
        responses={200: dict}
    )
    def get(self, request):
        queryset = QuestionResponse.objects.filter(is_evaluated=False, is_skipped=False).select_related(
            'attempt', 'attempt__taker', 'question_version', 'question_version__question'
        )
        if not has_capability(request.user, 'score_any_response'):
            queryset = queryset.filter(
                Q(attempt__quiz_version__quiz__created_by=request.user)
                | Q(question_version__question__created_by=request.user)
            )

        return Response({
            'count': queryset.count(),
            'results': [
                {
                    'response_id': row.pk,
                    'attempt_id': row.attempt_id,
                    'taker': row.attempt.taker.username,
                    'question_version_id': row.question_version_id,
                    'question': row.question_version.display_title,
                    'answer': row.answer,
                }
                for row in queryset[:100]
            ]
        })
