"""Serializers for the core app.

Contains serializers for User and Role plus the JWT login/refresh payloads.
"""

from django.contrib.auth import authenticate

from rest_framework import serializers
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from theatre_backend.core.models import Role, User


class RoleSerializer(serializers.ModelSerializer):
    """Read-only serializer for Role model."""

    class Meta:
        model = Role
        fields = ['id', 'name', 'label']
        read_only_fields = fields


class UserMeSerializer(serializers.ModelSerializer):
    """Serializer for the /auth/me/ endpoint.

    Returns current user info with role details.
    """

    role = RoleSerializer(read_only=True)
    staff_id = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'is_active',
            'role',
            'staff_id',
        ]
        read_only_fields = fields

    def get_staff_id(self, obj):
        # None for accounts without a Staff profile (admins, planners).
        profile = getattr(obj, 'staff_profile', None)
        return profile.id if profile is not None else None


class LoginSerializer(serializers.Serializer):
    """Serializer for user login.

    Authenticates the user and mints a refresh/access pair whose ``role``
    claim lets clients route by role without calling /auth/me/.
    """

    username = serializers.CharField(required=True)
    password = serializers.CharField(required=True, write_only=True)

    def validate(self, attrs):
        user = authenticate(username=attrs.get('username'), password=attrs.get('password'))

        if user is None:
            raise serializers.ValidationError('Invalid credentials.')

        if not user.is_active:
            raise serializers.ValidationError('User account is disabled.')

        refresh = RefreshToken.for_user(user)
        refresh['role'] = user.role_name
        return {'user': user, 'refresh': str(refresh), 'access': str(refresh.access_token)}


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=True)

    def validate(self, attrs):
        try:
            token = RefreshToken(attrs['refresh'])
        except TokenError as exc:
            raise serializers.ValidationError({'refresh': str(exc)})
        return {'access': str(token.access_token)}
