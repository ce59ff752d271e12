"""Centralized message codes and default messages for API responses."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel


class MessageCode(str, Enum):
    """Centralized message codes for API responses."""

    # Success codes
    SUCCESS = "SUCCESS"
    UPDATED = "UPDATED"

    # Authentication & Authorization
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # User management
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # Credit management
    CREDIT_CONSUMED = "CREDIT_CONSUMED"
    RECENT_SEARCH_NOT_CHARGED = "RECENT_SEARCH_NOT_CHARGED"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    CREDIT_CONFLICT = "CREDIT_CONFLICT"
    INVALID_PURCHASE_PACKAGE = "INVALID_PURCHASE_PACKAGE"

    # Referrals
    REFERRAL_RECORDED = "REFERRAL_RECORDED"
    INVALID_REFERRAL = "INVALID_REFERRAL"
    ALREADY_REFERRED = "ALREADY_REFERRED"
    REFERRAL_LIMIT_REACHED = "REFERRAL_LIMIT_REACHED"

    # Device trial
    DEVICE_LINKED = "DEVICE_LINKED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"


# Default messages for each message code
DEFAULT_MESSAGES = {
    # Success messages
    MessageCode.SUCCESS: "Operation completed successfully",
    MessageCode.UPDATED: "Resource updated successfully",
    # Authentication & Authorization
    MessageCode.AUTH_REQUIRED: "Authentication required",
    MessageCode.INVALID_TOKEN: "Invalid authentication token",
    MessageCode.INSUFFICIENT_PERMISSIONS: "Insufficient permissions",
    # User management
    MessageCode.USER_NOT_FOUND: "User not found",
    # Credit management
    MessageCode.CREDIT_CONSUMED: "Credit consumed",
    MessageCode.RECENT_SEARCH_NOT_CHARGED: "Address searched recently, no credit used",
    MessageCode.INSUFFICIENT_CREDITS: "Insufficient credits",
    MessageCode.CREDIT_CONFLICT: "Credit balance changed concurrently, please retry",
    MessageCode.INVALID_PURCHASE_PACKAGE: "Unknown purchase package",
    # Referrals
    MessageCode.REFERRAL_RECORDED: "Referral recorded",
    MessageCode.INVALID_REFERRAL: "Users cannot refer themselves",
    MessageCode.ALREADY_REFERRED: "User already has a referrer",
    MessageCode.REFERRAL_LIMIT_REACHED: "Referrer has reached the referral limit",
    # Device trial
    MessageCode.DEVICE_LINKED: "Device linked to account",
    # Validation errors
    MessageCode.VALIDATION_ERROR: "Validation failed",
    MessageCode.INVALID_INPUT: "Invalid input provided",
    # Generic errors
    MessageCode.INTERNAL_ERROR: "Internal server error",
    MessageCode.INTERNAL_SERVER_ERROR: "Internal server error",
    MessageCode.BAD_REQUEST: "Bad request",
    MessageCode.NOT_FOUND: "Resource not found",
}

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Base API response model with consistent structure and proper typing."""

    message_code: MessageCode
    message: str
    data: T | None = None

    @classmethod
    def success(
        cls,
        message_code: MessageCode = MessageCode.SUCCESS,
        message: str | None = None,
        data: T | None = None,
    ) -> "APIResponse[T]":
        """Create a success response."""
        return cls(
            message_code=message_code,
            message=message or DEFAULT_MESSAGES.get(message_code, "Success"),
            data=data,
        )

    @classmethod
    def error(
        cls,
        message_code: MessageCode,
        message: str | None = None,
        data: T | None = None,
    ) -> "APIResponse[T]":
        """Create an error response."""
        return cls(
            message_code=message_code,
            message=message or DEFAULT_MESSAGES.get(message_code, "Error occurred"),
            data=data,
        )


def get_default_message(message_code: MessageCode) -> str:
    """Get default message for a message code."""
    return DEFAULT_MESSAGES.get(message_code, "Operation completed")
