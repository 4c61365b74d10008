from django.contrib import admin

from .models import (
    Attempt, AuditLog, Question, QuestionProperties, QuestionResponse, QuestionVersion,
    Quiz, QuizQuestionRelation, QuizVersion,
)


class QuizVersionInline(admin.TabularInline):
    model = QuizVersion
    extra = 0
    fields = ['number', 'randomization', 'max_score', 'log', 'created_at']
    readonly_fields = ['max_score', 'created_at']
    show_change_link = True


class RelationInline(admin.TabularInline):
    model = QuizQuestionRelation
    fk_name = 'parent_version'
    extra = 0
    fields = ['child_version', 'question_status', 'weight', 'max_score']
    raw_id_fields = ['child_version']


class QuestionVersionInline(admin.TabularInline):
    model = QuestionVersion
    extra = 0
    fields = ['number', 'title_override', 'log', 'created_at']
    readonly_fields = ['number', 'created_at']
    show_change_link = True


class ResponseInline(admin.TabularInline):
    model = QuestionResponse
    extra = 0
    readonly_fields = ['question_version', 'answer', 'is_skipped', 'is_evaluated', 'is_correct', 'points_awarded']
    can_delete = False


@admin.register(Quiz)
class QuizAdmin(admin.ModelAdmin):
    list_display = ['title', 'created_by', 'created_at']
    search_fields = ['title']
    inlines = [QuizVersionInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(QuizVersion)
class QuizVersionAdmin(admin.ModelAdmin):
    list_display = ['quiz', 'number', 'randomization', 'max_score', 'created_at']
    list_filter = ['randomization']
    search_fields = ['quiz__title']
    inlines = [RelationInline]
    readonly_fields = ['max_score', 'created_at']


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'question_type', 'created_by', 'updated_at']
    list_filter = ['question_type']
    search_fields = ['title']
    inlines = [QuestionVersionInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(QuestionVersion)
class QuestionVersionAdmin(admin.ModelAdmin):
    list_display = ['id', 'question', 'number', 'body_preview', 'created_at']
    search_fields = ['question__title', 'body']
    readonly_fields = ['created_at']

    def body_preview(self, obj):
        return obj.body[:50] + '...' if len(obj.body) > 50 else obj.body
    body_preview.short_description = 'Body'


@admin.register(QuestionProperties)
class QuestionPropertiesAdmin(admin.ModelAdmin):
    list_display = ['question_version', 'max_score']
    readonly_fields = ['question', 'question_version', 'max_score']


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = ['id', 'taker', 'quiz_version', 'status', 'score', 'is_evaluated', 'started_at']
    list_filter = ['status', 'is_evaluated']
    search_fields = ['taker__username', 'quiz_version__quiz__title']
    inlines = [ResponseInline]
    readonly_fields = ['started_at', 'finished_at', 'score']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'event_type', 'user', 'ip_address', 'description_preview']
    list_filter = ['event_type', 'created_at']
    search_fields = ['user__username', 'description', 'ip_address']
    readonly_fields = ['user', 'event_type', 'description', 'ip_address', 'metadata', 'created_at']
    ordering = ['-created_at']

    def description_preview(self, obj):
        return obj.description[:50] + '...' if len(obj.description) > 50 else obj.description
    description_preview.short_description = 'Description'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
