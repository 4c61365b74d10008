from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field

from quiz_question.models import Attempt, Question, QuestionVersion, Quiz, QuizQuestionRelation, QuizVersion
from quiz_question.question_types import get_question, get_question_types
from quiz_question.services import MembershipChanges, NewQuiz


class QuizQuestionRelationSerializer(serializers.ModelSerializer):
    quiz_id = serializers.IntegerField(source='parent_version.quiz_id', read_only=True)
    quiz_title = serializers.CharField(source='parent_version.quiz.title', read_only=True)

    class Meta:
        model = QuizQuestionRelation
        fields = [
            'id', 'parent_version', 'quiz_id', 'quiz_title', 'child_version',
            'question_status', 'weight', 'max_score'
        ]
        read_only_fields = fields


class QuizVersionSerializer(serializers.ModelSerializer):
    question_count = serializers.IntegerField(source='relations.count', read_only=True)
    is_answered = serializers.SerializerMethodField()

    class Meta:
        model = QuizVersion
        fields = [
            'id', 'quiz', 'number', 'randomization', 'max_score', 'log',
            'question_count', 'is_answered', 'created_at'
        ]
        read_only_fields = fields

    def get_is_answered(self, obj) -> bool:
        return obj.has_been_answered()


class QuizVersionDetailSerializer(QuizVersionSerializer):
    relations = QuizQuestionRelationSerializer(many=True, read_only=True)

    class Meta(QuizVersionSerializer.Meta):
        fields = QuizVersionSerializer.Meta.fields + ['relations']
        read_only_fields = fields


class QuizSerializer(serializers.ModelSerializer):
    created_by = serializers.CharField(source='created_by.username', read_only=True, default=None)
    latest_version = QuizVersionSerializer(read_only=True)

    class Meta:
        model = Quiz
        fields = ['id', 'title', 'created_by', 'created_at', 'latest_version']
        read_only_fields = fields


class QuizCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=300)
    randomization = serializers.ChoiceField(
        choices=QuizVersion.Randomization.choices,
        default=QuizVersion.Randomization.NONE
    )


class NewQuizSerializer(QuizCreateSerializer):
    pass


class MembershipChangesSerializer(serializers.Serializer):
    keep_or_remove = serializers.DictField(child=serializers.BooleanField(), required=False, default=dict)
    add_from_candidates = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    create_new = NewQuizSerializer(required=False, allow_null=True, default=None)

    def validate_keep_or_remove(self, value):
        try:
            return {int(key): keep for key, keep in value.items()}
        except (TypeError, ValueError):
            raise serializers.ValidationError("Keys must be quiz version ids.")

    def to_changes(self, data):
        create_new = data.get('create_new')
        return MembershipChanges(
            keep_or_remove=dict(data.get('keep_or_remove') or {}),
            add_from_candidates=list(data.get('add_from_candidates') or []),
            create_new=NewQuiz(**create_new) if create_new else None,
        )


class QuestionSerializer(serializers.ModelSerializer):
    created_by = serializers.CharField(source='created_by.username', read_only=True, default=None)
    latest_version = serializers.IntegerField(source='latest_version.pk', read_only=True, default=None)

    class Meta:
        model = Question
        fields = ['id', 'question_type', 'title', 'created_by', 'latest_version', 'created_at', 'updated_at']
        read_only_fields = fields


class QuestionVersionSerializer(serializers.ModelSerializer):
    question_type = serializers.CharField(source='question.question_type', read_only=True)
    display_title = serializers.CharField(read_only=True)
    max_score = serializers.SerializerMethodField()
    public_data = serializers.SerializerMethodField()
    memberships = QuizQuestionRelationSerializer(many=True, read_only=True)

    class Meta:
        model = QuestionVersion
        fields = [
            'id', 'question', 'question_type', 'number', 'display_title', 'title_override', 'body',
            'max_score', 'public_data', 'type_data', 'memberships', 'log', 'created_at'
        ]
        read_only_fields = fields

    def get_max_score(self, obj) -> int:
        return get_question(obj).get_maximum_score()

    @extend_schema_field(serializers.DictField())
    def get_public_data(self, obj):
        return get_question(obj).get_public_data()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        request = self.context.get('request')
        actor = request.user if request else None
        # Type data carries the correct answer
        if not get_question(instance).can_reveal_correct_answer(actor):
            data.pop('type_data', None)
        return data


class QuestionCreateSerializer(serializers.Serializer):
    question_type = serializers.CharField(max_length=50)
    title = serializers.CharField(max_length=300)
    body = serializers.CharField(required=False, allow_blank=True, default='')
    title_override = serializers.CharField(required=False, allow_blank=True, default='', max_length=300)
    type_data = serializers.DictField(required=False, default=dict)
    memberships = MembershipChangesSerializer(required=False)

    def validate_question_type(self, value):
        if value not in get_question_types():
            raise serializers.ValidationError(
                f"Unknown question type. Choose from: {', '.join(sorted(get_question_types()))}."
            )
        return value


class QuestionUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=300, required=False)
    body = serializers.CharField(required=False, allow_blank=True)
    title_override = serializers.CharField(required=False, allow_blank=True, max_length=300)
    type_data = serializers.DictField(required=False)
    memberships = MembershipChangesSerializer(required=False)
    new_version = serializers.BooleanField(required=False, default=False)
    log = serializers.CharField(required=False, allow_blank=True, default='')


class RevisionActionsSerializer(serializers.Serializer):
    from_version = serializers.PrimaryKeyRelatedField(queryset=QuestionVersion.objects.all())
    quiz_versions = serializers.ListField(
        child=serializers.IntegerField(), required=False, allow_null=True, default=None
    )

    def validate_from_version(self, version):
        question = self.context.get('question')
        if question is not None and version.question_id != question.pk:
            raise serializers.ValidationError("Version belongs to another question.")
        return version


class AttemptSerializer(serializers.ModelSerializer):
    taker = serializers.CharField(source='taker.username', read_only=True)
    quiz = serializers.IntegerField(source='quiz_version.quiz_id', read_only=True)
    max_score = serializers.IntegerField(source='quiz_version.max_score', read_only=True)

    class Meta:
        model = Attempt
        fields = [
            'id', 'quiz', 'quiz_version', 'taker', 'status',
            'started_at', 'finished_at', 'score', 'max_score', 'is_evaluated'
        ]
        read_only_fields = fields


class AttemptCreateSerializer(serializers.Serializer):
    quiz = serializers.PrimaryKeyRelatedField(queryset=Quiz.objects.all())

    def validate_quiz(self, quiz):
        version = quiz.latest_version
        if version is None or not version.relations.exists():
            raise serializers.ValidationError("This quiz has no questions.")
        return quiz


class ResponseSubmitSerializer(serializers.Serializer):
    question_version = serializers.IntegerField()
    answer = serializers.JSONField(required=False, allow_null=True, default=None)
    skip = serializers.BooleanField(required=False, default=False)

    def validate_question_version(self, value):
        attempt = self.context.get('attempt')
        if attempt and not attempt.quiz_version.relations.filter(child_version_id=value).exists():
            raise serializers.ValidationError("This question is not part of the attempt's quiz.")
        return value

    def validate(self, data):
        if not data.get('skip') and data.get('answer') is None:
            raise serializers.ValidationError({'answer': "Provide an answer or skip the question."})
        return data


class ResponseSummarySerializer(serializers.Serializer):
    score = serializers.IntegerField()
    question_id = serializers.IntegerField()
    question_version_id = serializers.IntegerField()
    attempt_id = serializers.IntegerField()
    is_correct = serializers.BooleanField()
    is_evaluated = serializers.BooleanField()
    is_skipped = serializers.BooleanField()
    is_valid = serializers.BooleanField()


class AttemptReportSerializer(serializers.Serializer):
    attempt_id = serializers.IntegerField()
    quiz_version_id = serializers.IntegerField()
    status = serializers.CharField()
    score = serializers.IntegerField()
    max_score = serializers.IntegerField()
    is_evaluated = serializers.BooleanField()
    responses = ResponseSummarySerializer(many=True)


class ManualScoreSerializer(serializers.Serializer):
    score = serializers.IntegerField(min_value=0)
