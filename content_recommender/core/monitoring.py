import logging
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


class MetricsLogger:
    def __init__(self):
        self.logger = logging.getLogger("content_recommender.metrics")

    def log_error(self, error_type: str, error_message: str, context: dict = None):
        """Log an error with context"""
        if context is None:
            context = {}
        self.logger.error(f"{error_type}: {error_message}", extra={"context": context})

    def log_info(self, message: str, context: dict = None):
        """Log info with context"""
        if context is None:
            context = {}
        self.logger.info(message, extra={"context": context})


metrics_logger = MetricsLogger()

# Metrics
RECOMMENDATION_REQUESTS = Counter(
    'recommendation_requests_total',
    'Recommendation requests by the source that answered them',
    ['source']
)

CACHE_ERRORS = Counter(
    'recommendation_cache_errors_total',
    'Cache operations that failed and were bypassed',
    ['operation']
)

MODEL_TRAINING_SECONDS = Histogram(
    'recommendation_model_training_seconds',
    'Wall time of full model training runs',
    ['model']
)

MODEL_NUDGES = Counter(
    'recommendation_model_nudges_total',
    'Background model nudges by outcome',
    ['outcome']
)


@contextmanager
def track_training(model: str):
    """Record training duration for a model, including failed runs."""
    start_time = time.time()
    try:
        yield
    finally:
        duration = time.time() - start_time
        MODEL_TRAINING_SECONDS.labels(model=model).observe(duration)
        metrics_logger.log_info(f"Training run for {model} took {duration:.3f}s")
