"""Account domain exceptions.

Raised by ``AccountService``; the API exception handler renders them with
the status code each class declares.
"""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import ConflictError, DomainError, NotFoundError


class CustomerNotFound(NotFoundError):
    code = "customer_not_found"
    default_detail = "Customer not found."


class CustomerAlreadyExists(ConflictError):
    code = "email_taken"
    default_detail = "An account with this email already exists."


class InvalidCredentials(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    default_detail = "Invalid email or password."


class EmailNotVerified(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "email_not_verified"
    default_detail = "Please verify your email address before logging in."


class EmailAlreadyVerified(DomainError):
    code = "email_already_verified"
    default_detail = "Email is already verified."


class InvalidToken(DomainError):
    code = "invalid_token"
    default_detail = "The token is invalid or has expired."


class IncorrectPassword(DomainError):
    code = "incorrect_password"
    default_detail = "Current password is incorrect."


class AddressNotFound(NotFoundError):
    code = "address_not_found"
    default_detail = "Address not found."
