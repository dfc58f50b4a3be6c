"""
Error taxonomy for the Gemini request path.

Raised while requesting and parsing model output; SmartSearchService
catches every one of them and answers with mock data.
"""
from typing import Optional


class SmartSearchError(Exception):
    user_message = "Something went wrong. Please try again."


class InvalidConfigurationError(SmartSearchError):
    user_message = "AI features are not configured. Showing sample insights instead."


class ConnectivityUnavailableError(SmartSearchError):
    user_message = "No internet connection. Please check your network."


class RequestTimeoutError(SmartSearchError):
    user_message = "Request timed out. Please try again."


class EndpointHTTPError(SmartSearchError):
    user_message = "The AI service returned an error. Please try again."

    def __init__(self, endpoint: str, status_code: int, reason: str = ""):
        self.endpoint = endpoint
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Endpoint {endpoint}: {status_code} {reason}".rstrip())


class RateLimitedError(EndpointHTTPError):
    user_message = "The AI service is busy right now. Showing sample insights instead."


class AllEndpointsFailedError(SmartSearchError):
    user_message = "All AI endpoints are unavailable right now. Please try again later."

    def __init__(self, last_error: str, last_status: Optional[int] = None):
        self.last_error = last_error
        self.last_status = last_status
        super().__init__(f"All Gemini API endpoints failed. Last error: {last_error}")

    @property
    def rate_limited(self) -> bool:
        return self.last_status == 429


class MalformedEnvelopeError(SmartSearchError):
    user_message = "The AI service sent an unexpected response. Please try again."


class UnparsableModelOutputError(SmartSearchError):
    user_message = "Couldn't understand the AI response. Showing sample insights instead."


def user_friendly_error(error: BaseException) -> str:
    """Convert technical errors to user-friendly messages"""
    if isinstance(error, SmartSearchError):
        return error.user_message

    error_lower = str(error).lower()
    if "timeout" in error_lower or "timed out" in error_lower:
        return RequestTimeoutError.user_message
    elif "connection" in error_lower or "network" in error_lower:
        return "I'm having trouble connecting to the AI service. Please try again in a moment."
    else:
        return SmartSearchError.user_message
