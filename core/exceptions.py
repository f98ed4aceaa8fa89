"""
Domain errors raised by the marketplace services and the DRF exception handler
that turns them into ``{"message": ...}`` responses.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """
    Base class for errors raised by the lifecycle and review services.

    Each subclass carries the HTTP status it maps to and a short machine code.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'error'
    default_message = 'An error occurred.'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'not_found'
    default_message = 'Resource not found.'


class ForbiddenError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'forbidden'
    default_message = 'You do not have permission to perform this action.'


class ConflictError(MarketplaceError):
    """The entity is not in the state the operation requires."""

    status_code = status.HTTP_409_CONFLICT
    code = 'conflict'
    default_message = 'The resource is not in a valid state for this operation.'


class InvalidOperationError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'invalid_operation'
    default_message = 'This operation is not allowed.'


class ValidationFailedError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'validation_failed'
    default_message = 'Validation failed.'


class UnexpectedError(MarketplaceError):
    code = 'unexpected'
    default_message = 'An unexpected error occurred.'


class InconsistentStateError(MarketplaceError):
    """
    A multi-entity write found a row out of step with its counterpart.

    Raised inside the transaction so the whole unit rolls back.
    """

    code = 'inconsistent_state'
    default_message = 'Order and product state are out of sync.'


def _flatten_detail(detail):
    """Pick a human readable sentence out of a DRF error detail."""
    if isinstance(detail, list):
        return _flatten_detail(detail[0]) if detail else ''
    if isinstance(detail, dict):
        for value in detail.values():
            return _flatten_detail(value)
        return ''
    return str(detail)


def marketplace_exception_handler(exc, context):
    """
    DRF exception handler producing ``{"message": ...}`` payloads.

    Handles, in order:
    - MarketplaceError subclasses (status and message from the error)
    - Django ValidationError raised by ``full_clean()``
    - IntegrityError from database constraints (409)
    - DRF's own exceptions (authentication, permission, parsing, validation)
    Anything else is logged with its traceback and answered with a 500.
    """
    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else 'unknown'

    if isinstance(exc, MarketplaceError):
        payload = {'message': exc.message, 'code': exc.code}
        if exc.errors:
            payload['errors'] = exc.errors
        if exc.status_code >= 500:
            logger.error(f"{view_name}: {exc.code}: {exc.message}", exc_info=exc)
        return Response(payload, status=exc.status_code)

    if isinstance(exc, DjangoValidationError):
        errors = exc.message_dict if hasattr(exc, 'error_dict') else {'non_field_errors': exc.messages}
        return Response(
            {'message': 'Validation failed.', 'code': 'validation_failed', 'errors': errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    if isinstance(exc, IntegrityError):
        logger.warning(f"{view_name}: integrity error: {exc}")
        return Response(
            {'message': 'The request conflicts with existing data.', 'code': 'conflict'},
            status=status.HTTP_409_CONFLICT
        )

    response = exception_handler(exc, context)

    if response is None:
        logger.error(f"Unhandled error in {view_name}: {exc}", exc_info=exc)
        return Response(
            {'message': UnexpectedError.default_message, 'code': UnexpectedError.code},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(exc, DRFValidationError):
        response.data = {
            'message': 'Validation failed.',
            'code': 'validation_failed',
            'errors': response.data,
        }
    else:
        detail = getattr(exc, 'detail', response.data)
        response.data = {
            'message': _flatten_detail(detail),
            'code': getattr(detail, 'code', None) or 'error',
        }
    return response
