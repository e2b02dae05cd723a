"""Enrolment aggregate: access granted to a user through an offering instance."""

from protean.fields import DateTime, Identifier, String

from enrolcart.domain import enrolcart


@enrolcart.aggregate
class Enrolment:
    user_id = Identifier(required=True)
    offering_instance_id = Identifier(required=True)
    course_id = Identifier(required=True)
    role_id = String(max_length=50)
    time_start = DateTime()  # None = no lower bound
    time_end = DateTime()  # None = never expires
    created_at = DateTime()
