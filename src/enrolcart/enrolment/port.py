"""Enrolment ports (abstract interfaces).

The cart never writes enrolments itself: ``EnrolmentGrantor`` performs the
grant during delivery and ``EnrolmentDirectory`` answers whether a user
already has access, so the learning platform can be swapped in behind them.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class EnrolmentGrantor(ABC):
    @abstractmethod
    def grant(
        self,
        offering_instance_id: str,
        user_id: str,
        role_id: str | None,
        time_start: datetime | None,
        time_end: datetime | None,
    ) -> None:
        """Enrol ``user_id`` through the instance. Raises on failure."""
        ...


class EnrolmentDirectory(ABC):
    @abstractmethod
    def is_enrolled(self, offering_instance_id: str, user_id: str, any_instance: bool = True) -> bool:
        """True if the user is enrolled through this instance, or (``any_instance``) in its course at all."""
        ...
