from typing import Any, Dict


class RecommendationError(Exception):
    def __init__(
        self,
        detail: str,
        error_code: str = None,
        metadata: Dict[str, Any] = None
    ):
        super().__init__(detail)
        self.detail = detail
        self.error_code = error_code or "UNKNOWN_ERROR"
        self.metadata = metadata or {}


class ModelUntrainedError(RecommendationError):
    def __init__(self, model: str):
        super().__init__(
            detail=f"{model} model has not been trained",
            error_code="MODEL_UNTRAINED",
            metadata={"model": model}
        )


class InsufficientDataError(RecommendationError):
    def __init__(self, detail: str = "Not enough data to train", metadata: Dict[str, Any] = None):
        super().__init__(detail=detail, error_code="INSUFFICIENT_DATA", metadata=metadata)


class ComputationFailureError(RecommendationError):
    def __init__(self, detail: str = "Model computation failed"):
        super().__init__(detail=detail, error_code="COMPUTATION_FAILURE")


class CacheUnavailableError(RecommendationError):
    def __init__(self, operation: str, key: str = None):
        super().__init__(
            detail=f"Cache unavailable during {operation}",
            error_code="CACHE_UNAVAILABLE",
            metadata={"operation": operation, "key": key}
        )
