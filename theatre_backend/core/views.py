import logging

from django.db import DatabaseError, connection

from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import LoginSerializer, RefreshSerializer, UserMeSerializer
from .utils import log_action

logger = logging.getLogger(__name__)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    """Liveness plus a database round trip; 503 when the store is unreachable."""
    try:
        connection.ensure_connection()
    except DatabaseError:
        logger.exception('Health check: database unreachable')
        return Response({'status': 'error'}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response({'status': 'ok'})


class LoginView(APIView):
    """POST /api/auth/login/ -> ``{user, access, refresh}``; the tokens carry the role."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = serializer.validated_data
        user = session['user']

        log_action(user, 'login')
        logger.info('User %s logged in as %s', user.username, user.role_name or 'no role')
        return Response({
            'user': UserMeSerializer(user).data,
            'access': session['access'],
            'refresh': session['refresh'],
        })


class RefreshView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response({'access': serializer.validated_data['access']})


class MeView(APIView):
    def get(self, request):
        return Response(UserMeSerializer(request.user).data)
