"""HTTP client for the remote analytics service.

Every operation returns an :class:`ApiResult`; failures are classified into
an :class:`ApiError` value and never raised across the client boundary.
The client performs no retries.
"""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from power_bidding.api.schemas import (
    HistoricalResponse,
    OptimizeResponse,
    PredictResponse,
    StatusResponse,
    UploadResponse,
)
from power_bidding.config import (
    DEFAULT_BASE_URL,
    HistoricalQuery,
    OptimizationConfig,
    PredictionConfig,
    ServiceConfig,
)
from power_bidding.errors import PowerBiddingError
from power_bidding.models import (
    DatasetSummary,
    HistoricalSeries,
    OptimizationResult,
    PredictionPoint,
    PredictionResult,
    ServiceStatus,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
W = TypeVar("W", bound=BaseModel)


class ApiErrorKind(str, enum.Enum):
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"


class ApiError(PowerBiddingError):
    """Classified failure of a remote call."""

    def __init__(self, kind: ApiErrorKind, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.kind is ApiErrorKind.HTTP_STATUS:
            return f"{self.kind.value}({self.status_code}): {self.message}"
        return f"{self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """Either a validated payload or a classified error."""

    value: T | None = None
    error: ApiError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> ApiResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ApiError) -> ApiResult[T]:
        return cls(error=error)


@dataclass(frozen=True)
class UploadFile:
    """Dataset file contents handed to the upload endpoint."""

    name: str
    content: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> UploadFile:
        file_path = Path(path)
        return cls(name=file_path.name, content=file_path.read_bytes())

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @property
    def size_kb(self) -> float:
        return len(self.content) / 1024.0


def prediction_request_body(config: PredictionConfig, dataset: DatasetSummary | None = None) -> dict[str, Any]:
    """Build the predict request body from a config snapshot."""
    wire_config: dict[str, Any] = {
        "prediction_hours": config.horizon_points,
        "models": list(config.models),
        "confidence_level": config.confidence_level,
    }
    if config.prediction_date is not None:
        wire_config["prediction_date"] = config.prediction_date.isoformat()
    body: dict[str, Any] = {"config": wire_config}
    if dataset is not None:
        body["data"] = dataset.to_payload()
    return body


def optimization_request_body(
    predictions: Sequence[PredictionPoint],
    config: OptimizationConfig,
) -> dict[str, Any]:
    """Build the optimize request body from cached predictions and cost parameters."""
    return {
        "predictions": [point.to_payload() for point in predictions],
        "config": {
            "cost_params": {
                "cost_g": config.cost_generation,
                "cost_up": config.cost_upward,
                "cost_dn": config.cost_downward,
            }
        },
    }


class ApiClient:
    """Sole network boundary to the analytics service."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
        user_agent: str = "power-bidding-client/0.1",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or self._create_session(user_agent)

    @classmethod
    def from_config(cls, config: ServiceConfig) -> ApiClient:
        return cls(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            user_agent=config.user_agent,
        )

    @staticmethod
    def _create_session(user_agent: str) -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        return session

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -----------------------------
    # Operations
    # -----------------------------
    def upload_dataset(self, upload: UploadFile) -> ApiResult[DatasetSummary]:
        files = {"file": (upload.name, upload.content)}
        return self._call("POST", "/api/upload", UploadResponse, files=files)

    def predict(
        self,
        config: PredictionConfig,
        dataset: DatasetSummary | None = None,
    ) -> ApiResult[PredictionResult]:
        body = prediction_request_body(config, dataset)
        return self._call("POST", "/api/predict", PredictResponse, json=body)

    def optimize(
        self,
        predictions: Sequence[PredictionPoint],
        config: OptimizationConfig,
    ) -> ApiResult[OptimizationResult]:
        body = optimization_request_body(predictions, config)
        return self._call("POST", "/api/optimize", OptimizeResponse, json=body)

    def get_status(self) -> ApiResult[ServiceStatus]:
        return self._call("GET", "/api/database/status", StatusResponse)

    def get_historical_prices(self, query: HistoricalQuery | None = None) -> ApiResult[HistoricalSeries]:
        query = query or HistoricalQuery()
        params = {
            "timeRange": query.time_range,
            "includePredictions": "true" if query.include_predictions else "false",
        }
        return self._call("GET", "/api/historical-prices", HistoricalResponse, params=params)

    # -----------------------------
    # Transport
    # -----------------------------
    def _call(self, method: str, path: str, schema: type[W], **kwargs: Any) -> ApiResult[Any]:
        url = f"{self.base_url}{path}"
        LOGGER.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            return self._fail(path, ApiError(ApiErrorKind.TIMEOUT, f"no response within {self.timeout}s: {exc}"))
        except requests.RequestException as exc:
            return self._fail(path, ApiError(ApiErrorKind.NETWORK, str(exc) or type(exc).__name__))

        if not 200 <= response.status_code < 300:
            return self._fail(
                path,
                ApiError(
                    ApiErrorKind.HTTP_STATUS,
                    _error_message(response),
                    status_code=response.status_code,
                ),
            )

        try:
            parsed = schema.model_validate_json(response.text)
        except ValidationError as exc:
            return self._fail(path, ApiError(ApiErrorKind.MALFORMED, _describe_validation(exc)))
        try:
            value = parsed.to_domain()  # type: ignore[attr-defined]
        except (TypeError, ValueError) as exc:
            # e.g. a mix of offset-aware and naive timestamps cannot be ordered
            return self._fail(path, ApiError(ApiErrorKind.MALFORMED, f"inconsistent payload: {exc}"))
        return ApiResult.success(value)

    @staticmethod
    def _fail(path: str, error: ApiError) -> ApiResult[Any]:
        LOGGER.warning("Request to %s failed: %s", path, error)
        return ApiResult.failure(error)


def _error_message(response: requests.Response) -> str:
    """Prefer the service's ``{"error": ...}`` body over the bare reason phrase."""
    try:
        body = json.loads(response.text)
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return response.reason or f"HTTP {response.status_code}"


def _describe_validation(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    if not location:
        return first["msg"]
    return f"{location}: {first['msg']}"
