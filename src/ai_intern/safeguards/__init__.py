from .retry_handler import BackoffConfig, RetryOutcome, retry

__all__ = ["BackoffConfig", "RetryOutcome", "retry"]
