from fastapi import status
from tradespark.core.exceptions import AppException

class ErrorCode:
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_UNAUTHORIZED = "AUTH_UNAUTHORIZED"
    AUTH_FAILED = "AUTH_FAILED"

    VALIDATION_FAILED = "VALIDATION_FAILED"

    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    PHONE_IN_USE = "PHONE_IN_USE"

    REFERRAL_INVALID = "REFERRAL_INVALID"
    REFERRAL_CODE_TAKEN = "REFERRAL_CODE_TAKEN"

    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_CREATION_FAILED = "ORDER_CREATION_FAILED"
    PAYMENT_NOT_CONFIRMED = "PAYMENT_NOT_CONFIRMED"
    PAYMENT_VERIFICATION_FAILED = "PAYMENT_VERIFICATION_FAILED"
    WITHDRAWAL_FAILED = "WITHDRAWAL_FAILED"

    MARKET_DATA_UNAVAILABLE = "MARKET_DATA_UNAVAILABLE"
    TRADE_FAILED = "TRADE_FAILED"

    BACKEND_ERROR = "BACKEND_ERROR"


class ErrorMessage:
    INVALID_CREDENTIALS = "Please enter email and password."
    UNAUTHORIZED = "You are not authorized to perform this action"
    SESSION_EXPIRED = "Your session has expired. Please sign in again."

    USER_DATA_FAILED = "Failed to load user data"
    EMAIL_IN_USE = "Email already in use."
    PHONE_IN_USE = "Phone number already in use."

    REFERRAL_INVALID = "Invalid referral code."
    REFERRAL_CODE_TAKEN = "This referral code is already in use"

    INVALID_AMOUNT = "Enter a positive number"
    INSUFFICIENT_BALANCE = "Insufficient balance"
    ORDER_MISSING = "Order ID missing after return."
    NO_PAYMENT_LINK = "No payment link returned by backend"
    ORDER_CREATION_FAILED = "Failed to create order"

    MARKET_DATA_UNAVAILABLE = "Failed to load market data"
    INVALID_QUANTITY = "Enter quantity greater than 0"


def bad_request(code: str, message: str, title: str = "Error", details: dict | None = None):
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=code,
        message=message,
        title=title,
        details=details
    )


def unauthorized(message: str = ErrorMessage.UNAUTHORIZED):
    return AppException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=ErrorCode.AUTH_UNAUTHORIZED,
        message=message
    )


def forbidden(code: str, message: str):
    return AppException(
        status_code=status.HTTP_403_FORBIDDEN,
        code=code,
        message=message
    )


def not_found(code: str, message: str):
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=code,
        message=message
    )


def conflict(code: str, message: str):
    return AppException(
        status_code=status.HTTP_409_CONFLICT,
        code=code,
        message=message
    )


def upstream_error(code: str, message: str, title: str = "Error", details: dict | None = None):
    return AppException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        code=code,
        message=message,
        title=title,
        details=details
    )
