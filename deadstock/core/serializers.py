from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, AuditLog, Notification, SettingsHistory


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role', 'department']


class UserSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source='vendor.company_name', read_only=True, default=None)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'first_name', 'last_name', 'role', 'department',
                  'employee_id', 'phone', 'vendor', 'vendor_name', 'is_active', 'last_login',
                  'created_at', 'updated_at']
        read_only_fields = ['last_login', 'created_at', 'updated_at']


class UserSelfUpdateSerializer(serializers.ModelSerializer):
    """Fields a non-admin may change on their own profile"""
    class Meta:
        model = User
        fields = ['name', 'first_name', 'last_name', 'phone']


class UserCreateSerializer(serializers.ModelSerializer):
    username = serializers.CharField(required=False, allow_blank=True, max_length=150)
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'name', 'first_name', 'last_name',
                  'phone', 'role', 'department', 'employee_id', 'vendor']

    def validate_username(self, value):
        if value and User.objects.filter(username=value).exists():
            raise serializers.ValidationError('A user with that username already exists.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        # only admins may hand out roles; self-registration is always an employee
        if not self.context.get('allow_role'):
            attrs['role'] = User.ROLE_EMPLOYEE
            attrs.pop('vendor', None)
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        if not validated_data.get('username'):
            validated_data['username'] = self._username_from_email(validated_data['email'])
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user

    @staticmethod
    def _username_from_email(email):
        base = email.split('@')[0][:140] or 'user'
        username = base
        suffix = 1
        while User.objects.filter(username=username).exists():
            suffix += 1
            username = f"{base}{suffix}"
        return username


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True)
    new_password_confirm = serializers.CharField(write_only=True)

    def validate_old_password(self, value):
        if not self.context['user'].check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def validate(self, attrs):
        if attrs['new_password'] != attrs['new_password_confirm']:
            raise serializers.ValidationError({'new_password': "Passwords don't match"})
        validate_password(attrs['new_password'], self.context['user'])
        return attrs


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'entity_type', 'entity_id', 'description', 'severity',
                  'old_values', 'new_values', 'changes', 'ip_address', 'user_agent', 'timestamp']


class NotificationSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)

    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'type', 'priority', 'is_read', 'read_at', 'data',
                  'action_url', 'expires_at', 'sender', 'created_at']
        read_only_fields = fields


class NotificationCreateSerializer(serializers.Serializer):
    recipients = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    roles = serializers.ListField(
        child=serializers.ChoiceField(choices=[choice[0] for choice in User.ROLE_CHOICES]),
        required=False, default=list
    )
    title = serializers.CharField(max_length=200)
    message = serializers.CharField(max_length=1000)
    type = serializers.ChoiceField(choices=Notification.TYPE_CHOICES, default='info')
    priority = serializers.ChoiceField(choices=Notification.PRIORITY_CHOICES, default='medium')
    action_url = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    data = serializers.JSONField(required=False, allow_null=True)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs['recipients'] and not attrs['roles']:
            raise serializers.ValidationError('Provide recipients or roles.')
        return attrs


class SettingsHistorySerializer(serializers.ModelSerializer):
    changed_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = SettingsHistory
        fields = ['id', 'section', 'changed_by', 'old_values', 'new_values', 'ip_address', 'changed_at']
