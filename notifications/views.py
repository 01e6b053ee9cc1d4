"""
Notifications App Views - Notification feed API
"""

from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .serializers import NotificationSerializer
from .services import NotificationService


class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    The current user's notifications.

    GET    /api/notifications/?read=false
    GET    /api/notifications/unread_count/
    POST   /api/notifications/<id>/mark_read/
    POST   /api/notifications/mark_all_read/
    DELETE /api/notifications/<id>/
    """

    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        read = self.request.query_params.get('read')
        if read is not None:
            read = read.lower() in ('1', 'true', 'yes')
        return NotificationService.list_for_user(self.request.user, read=read)

    def destroy(self, request, pk=None):
        NotificationService.delete(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def unread_count(self, request):
        return Response({'count': NotificationService.unread_count(request.user)})

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):
        notification = NotificationService.mark_read(request.user, pk)
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['post'])
    def mark_all_read(self, request):
        updated = NotificationService.mark_all_read(request.user)
        return Response({'updated': updated})
