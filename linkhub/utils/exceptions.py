"""Custom exceptions for the linkhub connection system"""

from typing import Any, Dict, Optional


class LinkhubError(Exception):
    """Base exception for linkhub"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.__class__.__name__, "message": self.message}


class ValidationError(LinkhubError):
    """Missing or malformed input"""

    status_code = 400


class InvalidState(LinkhubError):
    """OAuth state missing, mismatched, expired or unparseable"""

    status_code = 400

    def __init__(self, message: str = "Invalid OAuth state. Please try connecting again."):
        super().__init__(message)


class NotFound(LinkhubError):
    """User or connection not found"""

    status_code = 404


class NotConnected(NotFound):
    """Provider has no connected Connection for this user"""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"{provider.capitalize()} not connected for this user")


class NoResourceFound(LinkhubError):
    """Provider account has no Page / phone number to bind"""

    status_code = 400


class UpstreamError(LinkhubError):
    """Error returned by a provider API (or the network in front of it)"""

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        error_subcode: Optional[int] = None,
        http_status: Optional[int] = None,
    ):
        self.error_code = error_code
        self.error_subcode = error_subcode
        self.http_status = http_status
        super().__init__(message, status_code=self._classify())

    def _classify(self) -> int:
        # Expired/invalid token is not something the caller can fix by changing the request
        if self.error_code == 190:
            return 502
        if self.http_status is not None and 400 <= self.http_status < 500:
            return 400
        return 502

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.error_code is not None:
            data["code"] = self.error_code
        if self.error_subcode is not None:
            data["subcode"] = self.error_subcode
        return data


class UpstreamAuthError(UpstreamError):
    """Provider rejected a token exchange / discovery call"""
    pass


class UpstreamSendError(UpstreamError):
    """Provider rejected a send-message call"""
    pass


class WebhookVerificationFailed(LinkhubError):
    """Webhook verify token did not match"""

    status_code = 403

    def __init__(self, message: str = "Verification failed"):
        super().__init__(message)


class CredentialError(LinkhubError):
    """Stored credential could not be decrypted"""
    pass


class StorageError(LinkhubError):
    """User store file could not be read or written"""
    pass


class ConfigError(LinkhubError):
    """Configuration error"""
    pass
