from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .api.views import (
    QuizViewSet, QuestionViewSet, AttemptViewSet,
    ResponseScoreView, PendingScoringView,
)

# Router for ViewSets
router = DefaultRouter()
router.register(r'quizzes', QuizViewSet, basename='quiz')
router.register(r'questions', QuestionViewSet, basename='question')
router.register(r'attempts', AttemptViewSet, basename='attempt')

urlpatterns = [
    # ============================================
    # MANUAL SCORING
    # ============================================
    path('responses/pending/', PendingScoringView.as_view(), name='responses-pending'),
    path('responses/<int:response_id>/score/', ResponseScoreView.as_view(), name='response-score'),

    # ============================================
    # CORE API ROUTES (ViewSets)
    # ============================================
    path('', include(router.urls)),
]
