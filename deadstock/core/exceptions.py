from rest_framework import status
from rest_framework.exceptions import APIException


class BusinessRuleError(APIException):
    """
    Raised by service functions when a request breaks a register rule
    (wrong status transition, inactive audit, duplicate entry...).

    Rendered by DRF as ``{"error": "<message>"}``, plus any ``extra`` keys.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request violates a business rule.'
    default_code = 'business_rule'

    def __init__(self, message=None, status_code=None, extra=None):
        if status_code is not None:
            self.status_code = status_code
        super().__init__({'error': message or self.default_detail, **(extra or {})})
