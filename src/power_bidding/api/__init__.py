"""Remote analytics service client."""

from power_bidding.api.client import (
    ApiClient,
    ApiError,
    ApiErrorKind,
    ApiResult,
    UploadFile,
    optimization_request_body,
    prediction_request_body,
)

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiErrorKind",
    "ApiResult",
    "UploadFile",
    "optimization_request_body",
    "prediction_request_body",
]
