from rest_framework import permissions

from quiz_question.access import has_capability, is_owner


class IsAuthorOrReadOnly(permissions.BasePermission):
    message = "Only the author or an editor can change this."

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        if request.user.is_staff or is_owner(request.user, obj):
            return True
        return request.user.has_perm(f'quiz_question.change_{obj._meta.model_name}')


class IsTakerOrAdmin(permissions.BasePermission):
    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        return obj.taker == request.user


class CanRespond(permissions.BasePermission):
    message = "You cannot answer in this attempt."

    def has_object_permission(self, request, view, obj):
        if obj.taker != request.user:
            return False
        if obj.status != obj.Status.IN_PROGRESS:
            self.message = "This attempt is already finished."
            return False
        return True


class CanManageRevisions(permissions.BasePermission):
    message = "You cannot choose quiz revision actions for this question."

    def has_object_permission(self, request, view, obj):
        return has_capability(request.user, 'manual_quiz_revisioning', resource=obj)
