"""
Defaults and serializers for the runtime settings sections.

Each section has one serializer; updates are validated with ``partial=True``
so only the supplied keys are checked and merged. ``write_only`` fields are
masked when read back.
"""
from rest_framework import serializers

SECTION_DEFAULTS = {
    'security': {
        'sessionTimeout': 30,
        'passwordExpiry': 90,
        'maxLoginAttempts': 5,
        'twoFactorAuth': False,
        'passwordMinLength': 8,
        'requireSpecialChar': True,
        'requireNumber': True,
        'requireUppercase': True,
    },
    'database': {
        'backupEnabled': True,
        'backupFrequency': 'daily',
        'backupRetention': 30,
        'backupLocation': '/backups',
        'connectionPoolSize': 10,
        'queryTimeout': 30000,
    },
    'email': {
        'smtpHost': 'smtp.gmail.com',
        'smtpPort': 587,
        'smtpSecure': False,
        'smtpUser': '',
        'smtpPassword': '',
        'fromEmail': 'noreply@dsr.com',
        'fromName': 'DSR System',
        'enableNotifications': True,
    },
    'application': {
        'appName': 'DSR - Dead Stock Register',
        'appVersion': '1.0.0',
        'timezone': 'UTC',
        'dateFormat': 'DD/MM/YYYY',
        'currency': 'INR',
        'language': 'en',
        'itemsPerPage': 10,
        'maintenanceMode': False,
        'maintenanceMessage': 'System is under maintenance. Please check back later.',
        'auditLogRetentionDays': 180,
    },
    'lifecycle': {
        'maxAgeYears': 5,
        'poorConditionAgeYears': 2,
        'noMaintenanceMonths': 24,
        'daysInDeadStock': 90,
        'autoApprove': False,
    },
}


class SecuritySettingsSerializer(serializers.Serializer):
    sessionTimeout = serializers.IntegerField(min_value=5, max_value=1440)
    passwordExpiry = serializers.IntegerField(min_value=0, max_value=365)
    maxLoginAttempts = serializers.IntegerField(min_value=3, max_value=10)
    twoFactorAuth = serializers.BooleanField()
    passwordMinLength = serializers.IntegerField(min_value=6, max_value=32)
    requireSpecialChar = serializers.BooleanField()
    requireNumber = serializers.BooleanField()
    requireUppercase = serializers.BooleanField()


class DatabaseSettingsSerializer(serializers.Serializer):
    backupEnabled = serializers.BooleanField()
    backupFrequency = serializers.ChoiceField(choices=['daily', 'weekly', 'monthly'])
    backupRetention = serializers.IntegerField(min_value=7, max_value=365)
    backupLocation = serializers.CharField(min_length=1)
    connectionPoolSize = serializers.IntegerField(min_value=5, max_value=100)
    queryTimeout = serializers.IntegerField(min_value=5000, max_value=300000)


class EmailSettingsSerializer(serializers.Serializer):
    smtpHost = serializers.CharField(min_length=1)
    smtpPort = serializers.IntegerField(min_value=1, max_value=65535)
    smtpSecure = serializers.BooleanField()
    smtpUser = serializers.CharField(allow_blank=True)
    smtpPassword = serializers.CharField(allow_blank=True, trim_whitespace=False, write_only=True)
    fromEmail = serializers.EmailField()
    fromName = serializers.CharField(min_length=1)
    enableNotifications = serializers.BooleanField()


class ApplicationSettingsSerializer(serializers.Serializer):
    appName = serializers.CharField(min_length=3, max_length=100)
    appVersion = serializers.CharField()
    timezone = serializers.CharField()
    dateFormat = serializers.ChoiceField(choices=['MM/DD/YYYY', 'DD/MM/YYYY', 'YYYY-MM-DD'])
    currency = serializers.CharField(min_length=3, max_length=3)
    language = serializers.CharField()
    itemsPerPage = serializers.IntegerField(min_value=5, max_value=100)
    maintenanceMode = serializers.BooleanField()
    maintenanceMessage = serializers.CharField(allow_blank=True, max_length=500)
    auditLogRetentionDays = serializers.IntegerField(min_value=30, max_value=3650)


class LifecycleSettingsSerializer(serializers.Serializer):
    maxAgeYears = serializers.IntegerField(min_value=1, max_value=50)
    poorConditionAgeYears = serializers.IntegerField(min_value=0, max_value=50)
    noMaintenanceMonths = serializers.IntegerField(min_value=1, max_value=240)
    daysInDeadStock = serializers.IntegerField(min_value=0, max_value=3650)
    autoApprove = serializers.BooleanField()


SECTION_SERIALIZERS = {
    'security': SecuritySettingsSerializer,
    'database': DatabaseSettingsSerializer,
    'email': EmailSettingsSerializer,
    'application': ApplicationSettingsSerializer,
    'lifecycle': LifecycleSettingsSerializer,
}

MASK = '********'


def validate_section(section, values):
    """
    Validate a partial update for ``section``.

    Returns (cleaned, errors). Keys the section does not define are
    reported as errors rather than dropped.
    """
    serializer = SECTION_SERIALIZERS[section](data=values, partial=True)
    valid = serializer.is_valid()
    errors = dict(serializer.errors)
    if isinstance(values, dict):
        for key in set(values) - set(serializer.fields):
            errors[key] = [f"Unknown {section} setting."]
    if errors or not valid:
        return {}, errors
    return dict(serializer.validated_data), {}


def mask_section(section, values):
    """Hide write-only values (SMTP password) from API output"""
    masked = dict(values)
    for name, field in SECTION_SERIALIZERS[section]().fields.items():
        if field.write_only and masked.get(name):
            masked[name] = MASK
    return masked
