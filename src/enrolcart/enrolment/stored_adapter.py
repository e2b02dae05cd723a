"""Enrolment adapter backed by the domain's own repository.

Grants are written through the ``Enrolment`` repository, so they commit or
roll back together with whatever unit of work the delivery runs in.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from enrolcart.enrolment.enrolment import Enrolment
from enrolcart.enrolment.port import EnrolmentDirectory, EnrolmentGrantor
from enrolcart.offering.instance import OfferingInstance

logger = structlog.get_logger(__name__)


class StoredEnrolments(EnrolmentGrantor, EnrolmentDirectory):
    def grant(self, offering_instance_id, user_id, role_id, time_start, time_end) -> None:
        instance = current_domain.repository_for(OfferingInstance).get(offering_instance_id)
        enrolment = Enrolment(
            user_id=str(user_id),
            offering_instance_id=str(offering_instance_id),
            course_id=str(instance.course_id),
            role_id=role_id,
            time_start=time_start,
            time_end=time_end,
            created_at=datetime.now(UTC),
        )
        current_domain.repository_for(Enrolment).add(enrolment)
        logger.info(
            "Enrolment granted",
            user_id=str(user_id),
            instance_id=str(offering_instance_id),
            course_id=str(instance.course_id),
        )

    def is_enrolled(self, offering_instance_id, user_id, any_instance=True) -> bool:
        repo = current_domain.repository_for(Enrolment)
        if any_instance:
            try:
                instance = current_domain.repository_for(OfferingInstance).get(offering_instance_id)
            except ObjectNotFoundError:
                instance = None
            if instance is not None:
                return bool(repo._dao.query.filter(user_id=str(user_id), course_id=str(instance.course_id)).all().items)
        return bool(
            repo._dao.query.filter(user_id=str(user_id), offering_instance_id=str(offering_instance_id)).all().items
        )

    def enrolments_for(self, user_id) -> list[Enrolment]:
        return current_domain.repository_for(Enrolment)._dao.query.filter(user_id=str(user_id)).all().items
