from django.apps import AppConfig


class QuizQuestionConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'quiz_question'
    verbose_name = 'Quiz questions'

    def ready(self):
        # Register the built-in question types
        from . import question_types  # noqa: F401
