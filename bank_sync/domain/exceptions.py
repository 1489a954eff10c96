"""Domain-specific exceptions"""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class AggregatorError(DomainException):
    """Aggregator API returned an error or is unavailable"""

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class AggregatorTimeoutError(AggregatorError):
    """Aggregator call exceeded its timeout"""

    pass


class CacheStoreError(DomainException):
    """Cache persistence failed"""

    pass
