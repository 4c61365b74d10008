class QuizQuestionError(Exception):
    """Base class for quiz question errors."""


class VersionLockedError(QuizQuestionError):
    """Raised when an answered question version would be changed in place."""

    def __init__(self, question_version):
        self.question_version = question_version
        super().__init__(
            f"Question version {question_version.pk} has been answered; create a new version instead."
        )


class UnknownQuestionTypeError(QuizQuestionError):
    def __init__(self, type_key):
        self.type_key = type_key
        super().__init__(f"Unknown question type: {type_key!r}")


class ManualScoringError(QuizQuestionError):
    pass
