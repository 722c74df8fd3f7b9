# referral_engine/services/base.py
"""
Service base class for the referral engine.

Every service owns its transactions through ``transaction()`` and reports
timings through ``@BaseService.measure_operation``. Timings land in two
places: a per-class in-process table (``get_metrics``) and the Prometheus
registry.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


@dataclass
class OperationStats:
    count: int = 0
    success_count: int = 0
    total_time: float = 0.0
    min_time: float = float("inf")
    max_time: float = 0.0

    def observe(self, elapsed: float, success: bool) -> None:
        self.count += 1
        self.success_count += int(success)
        self.total_time += elapsed
        self.min_time = min(self.min_time, elapsed)
        self.max_time = max(self.max_time, elapsed)

    def as_dict(self) -> Dict[str, Any]:
        failures = self.count - self.success_count
        return {
            "count": self.count,
            "avg_time": self.total_time / self.count,
            "min_time": self.min_time,
            "max_time": self.max_time,
            "total_time": self.total_time,
            "success_rate": self.success_count / self.count,
            "success_count": self.success_count,
            "failure_count": failures,
        }


class BaseService:
    """Session holder with transaction and measurement helpers."""

    # service class name -> operation name -> stats
    _class_metrics: Dict[str, Dict[str, OperationStats]] = {}

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on clean exit, roll back on any error.

        SQLAlchemy errors are re-raised as ``ServiceException``; domain
        exceptions pass through untouched so callers can map them.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception as e:
            self.logger.debug(f"Rolling back after {type(e).__name__}: {str(e)}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and record the outcome.

        Usage:
            @BaseService.measure_operation("rewards.credit")
            def credit_reward(self, reward_id):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    self._record_metric(operation_name, elapsed, error_type is None)
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if error_type is None else "error",
                        error_type=error_type,
                    )

            wrapper._operation_name = operation_name  # type: ignore[attr-defined]
            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        table = BaseService._class_metrics.setdefault(self.__class__.__name__, {})
        table.setdefault(operation, OperationStats()).observe(elapsed, success)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation counts, timings and success rate for this service class."""
        table = BaseService._class_metrics.get(self.__class__.__name__, {})
        return {name: stats.as_dict() for name, stats in table.items() if stats.count}

    def reset_metrics(self) -> None:
        BaseService._class_metrics.pop(self.__class__.__name__, None)
        self.logger.debug(f"Metrics reset for {self.__class__.__name__}")
