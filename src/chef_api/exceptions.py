"""
Exception classes for the Chef API SDK
"""

from typing import Optional, Dict, Any


class ChefSDKError(Exception):
    """Base exception for all Chef API SDK errors"""

    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (code: {self.error_code}, details: {self.details})"
        return f"{self.message} (code: {self.error_code})"


class ValidationError(ChefSDKError):
    """Exception raised for invalid input values"""
    pass


class SigningError(ChefSDKError):
    """Base class for failures while producing request signature headers"""
    pass


class PrivateKeyError(SigningError):
    """Exception raised when private key material is malformed or unreadable"""
    pass


class CryptoError(SigningError):
    """Exception raised when a digest, encrypt or sign operation fails"""
    pass


class HeaderEncodingError(SigningError):
    """Exception raised when a computed value cannot be sent as an HTTP header"""
    pass


class VerificationError(ChefSDKError):
    """Exception raised when a signed header set cannot be interpreted"""
    pass


class CredentialsError(ChefSDKError):
    """Exception raised for credentials file loading and profile resolution errors"""
    pass


class ServerCommunicationError(ChefSDKError):
    """Exception raised for server communication errors"""

    def __init__(self, message: str, error_code: str = "SERVER_ERROR",
                 http_status: int = 0, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)
        self.http_status = http_status


class ChefServerResponseError(ServerCommunicationError):
    """Exception raised when the Chef Server answers with a non-success status"""

    def __init__(self, http_status: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Chef Server returned an error, with error code: {http_status}",
            "CHEF_SERVER_RESPONSE_ERROR",
            http_status,
            details
        )
