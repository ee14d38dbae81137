import time
from typing import Any, Optional

from .preferences import CamelModel


class SelectedProvider(CamelModel):
    """Nanny candidate picked in the wizard; transient, recoverable for a day."""

    id: str
    profiles: Optional[Any] = None
    services: Optional[Any] = None
    # Epoch seconds of the selection; required for cache recovery
    timestamp: Optional[float] = None

    def stamped(self) -> "SelectedProvider":
        return self.model_copy(update={"timestamp": time.time()})

    def is_fresh(self, max_age_seconds: float, now: Optional[float] = None) -> bool:
        if self.timestamp is None:
            return False
        current = time.time() if now is None else now
        return (current - self.timestamp) < max_age_seconds
