"""
Ordered-candidate fallback runner.
Tries a list of candidates (procedure names, data sources) in order and
returns the first success. Only errors the config marks as recoverable move
on to the next candidate; anything else is raised immediately.
"""
from typing import Any, Callable, Optional, Sequence

from reports_backend.modules.logger import debug, info, warning


class FallbackConfig:
    """Configuration for fallback behavior"""
    def __init__(self, is_recoverable: Optional[Callable[[Exception], bool]] = None):
        """
        Args:
            is_recoverable: Predicate telling whether an error should advance
                to the next candidate (default: never)
        """
        self.is_recoverable = is_recoverable or (lambda exc: False)


class FallbackRunner:
    """Runs an operation against ordered candidates, short-circuiting on success"""

    def __init__(self, config: Optional[FallbackConfig] = None):
        self.config = config or FallbackConfig()

    def should_advance(self, error: Exception) -> bool:
        try:
            return bool(self.config.is_recoverable(error))
        except Exception as exc:
            warning(f"Fallback predicate failed for {type(error).__name__}: {exc}")
            return False

    def run(
        self,
        candidates: Sequence[Any],
        func: Callable[[Any], Any],
        label: str = "operation",
    ) -> Any:
        """
        Call func(candidate) for each candidate until one succeeds.

        Returns:
            Result of the first successful call

        Raises:
            ValueError: If no candidates are given
            The first non-recoverable error, or the last recoverable error
            when every candidate was skipped
        """
        if not candidates:
            raise ValueError(f"{label}: no candidates to try")

        last_exception: Optional[Exception] = None
        for position, candidate in enumerate(candidates, start=1):
            try:
                result = func(candidate)
                if position > 1:
                    info(f"{label}: candidate '{candidate}' succeeded after {position - 1} fallback(s)")
                return result
            except Exception as e:
                if not self.should_advance(e):
                    debug(f"{label}: candidate '{candidate}' failed with non-recoverable {type(e).__name__}")
                    raise
                last_exception = e
                warning(f"{label}: candidate '{candidate}' unavailable ({e}); trying next")

        raise last_exception
