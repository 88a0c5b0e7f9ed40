from typing import Any


class DashboardError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "errorCode": self.error_code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ConfigurationError(DashboardError):
    error_code = "CONFIGURATION_ERROR"


class InvalidParameterError(DashboardError):
    status_code = 400
    error_code = "INVALID_PARAMETER"


class YouTubeApiError(DashboardError):
    """Upstream call failed. status_code mirrors the upstream HTTP status."""

    error_code = "YOUTUBE_API_ERROR"

    def __init__(self, message: str, status_code: int = 500, details: Any = None, quota_exceeded: bool = False):
        super().__init__(message, details)
        self.status_code = status_code
        self.quota_exceeded = quota_exceeded
        if quota_exceeded:
            self.error_code = "QUOTA_EXCEEDED"


class RegionRejectedError(YouTubeApiError):
    error_code = "INVALID_REGION"

    def __init__(self, message: str, region: str, suggested_region: str):
        super().__init__(
            message,
            status_code=400,
            details={"regionCode": region, "suggestedRegion": suggested_region},
        )
        self.region = region
        self.suggested_region = suggested_region


class FetchError(Exception):
    """Any failed dashboard fetch. The view does not distinguish kinds."""
