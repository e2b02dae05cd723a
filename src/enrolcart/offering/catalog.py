"""Request-scoped lookup of offering instances.

A catalog lives exactly as long as the ``CartContext`` that owns it, so the
memoized instances never outlive one request or scheduler run.
"""

from collections.abc import Callable
from datetime import datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from enrolcart.offering.instance import OfferingInstance, OfferingStatus

logger = structlog.get_logger(__name__)


class OfferingCatalog:
    def __init__(self, clock: Callable[[], datetime]) -> None:
        self._clock = clock
        self._available: dict[str, OfferingInstance] = {}

    def find(self, instance_id) -> OfferingInstance | None:
        """Load an instance regardless of its status or enrolment window."""
        try:
            return current_domain.repository_for(OfferingInstance).get(instance_id)
        except ObjectNotFoundError:
            return None

    def get(self, instance_id) -> OfferingInstance | None:
        """Return the instance if it is enabled and open for enrolment right now."""
        key = str(instance_id)
        if key in self._available:
            return self._available[key]

        instance = self.find(instance_id)
        if instance is None or not instance.is_available_at(self._clock()):
            logger.debug("Offering instance unavailable", instance_id=key)
            return None

        self._available[key] = instance
        return instance

    def has(self, instance_id) -> bool:
        return self.get(instance_id) is not None

    def first_for_course(self, course_id) -> str | None:
        """Id of the first instance of a course open for enrolment, by sort order."""
        repo = current_domain.repository_for(OfferingInstance)
        instances = (
            repo._dao.query.filter(course_id=str(course_id), status=OfferingStatus.ENABLED.value).all().items
        )
        now = self._clock()
        for instance in sorted(instances, key=lambda instance: instance.sort_order or 0):
            if instance.is_available_at(now):
                return str(instance.id)
        return None
