"""Domain errors shared by the apps, and the DRF handler that renders them"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Business rule violation that maps onto an HTTP status"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_response_data(self):
        data = {'error': self.message}
        if self.details:
            data['details'] = self.details
        return data


class ValidationError(DomainError):
    pass


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStockError(DomainError):
    pass


class InvalidStateError(DomainError):
    pass


class BarcodeGenerationError(DomainError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def domain_exception_handler(exc, context):
    """Render DomainError as {'error': ...}; defer everything else to DRF"""
    if isinstance(exc, DomainError):
        view = context.get('view')
        logger.warning(f"{type(exc).__name__} in {getattr(view, '__name__', view)}: {exc.message}")
        return Response(exc.to_response_data(), status=exc.status_code)
    return exception_handler(exc, context)
