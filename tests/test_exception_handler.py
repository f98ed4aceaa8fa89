"""
Tests for the error payloads produced by the DRF exception handler.
"""

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, PermissionDenied
from rest_framework.exceptions import ValidationError as DRFValidationError

from core.exceptions import (
    ConflictError,
    InconsistentStateError,
    InvalidOperationError,
    NotFoundError,
    ValidationFailedError,
    marketplace_exception_handler,
)

CONTEXT = {'view': None}


@pytest.mark.parametrize('error, status_code, code', [
    (NotFoundError(), status.HTTP_404_NOT_FOUND, 'not_found'),
    (ConflictError(), status.HTTP_409_CONFLICT, 'conflict'),
    (InvalidOperationError(), status.HTTP_400_BAD_REQUEST, 'invalid_operation'),
    (InconsistentStateError(), status.HTTP_500_INTERNAL_SERVER_ERROR, 'inconsistent_state'),
])
def test_marketplace_errors(error, status_code, code):
    response = marketplace_exception_handler(error, CONTEXT)

    assert response.status_code == status_code
    assert response.data == {'message': error.default_message, 'code': code}


def test_custom_message_and_field_errors():
    error = ValidationFailedError('Bad input.', errors={'price': ['Too low.']})
    response = marketplace_exception_handler(error, CONTEXT)

    assert response.data == {'message': 'Bad input.', 'code': 'validation_failed', 'errors': {'price': ['Too low.']}}


def test_django_validation_error():
    response = marketplace_exception_handler(DjangoValidationError({'title': ['Required.']}), CONTEXT)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data['errors'] == {'title': ['Required.']}


def test_integrity_error_is_a_conflict():
    response = marketplace_exception_handler(IntegrityError('UNIQUE constraint failed'), CONTEXT)

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.data['code'] == 'conflict'


def test_drf_validation_error_keeps_field_errors():
    response = marketplace_exception_handler(DRFValidationError({'rating': ['Invalid.']}), CONTEXT)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data['message'] == 'Validation failed.'
    assert response.data['errors'] == {'rating': ['Invalid.']}


def test_drf_errors_become_message_and_code():
    response = marketplace_exception_handler(NotAuthenticated(), CONTEXT)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.data == {
        'message': 'Authentication credentials were not provided.',
        'code': 'not_authenticated',
    }

    response = marketplace_exception_handler(PermissionDenied('Nope.'), CONTEXT)
    assert response.data == {'message': 'Nope.', 'code': 'permission_denied'}


def test_unexpected_errors_are_hidden():
    response = marketplace_exception_handler(RuntimeError('secret detail'), CONTEXT)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.data == {'message': 'An unexpected error occurred.', 'code': 'unexpected'}
