"""PaymentRecord aggregate: what the payment subsystem recorded for a cart."""

from protean.fields import DateTime, Float, Identifier, String

from enrolcart.domain import enrolcart

CART_AREA = "cart"


@enrolcart.aggregate
class PaymentRecord:
    payment_id = String(required=True, max_length=255)
    area = String(max_length=50, default=CART_AREA)
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3)
    gateway = String(max_length=50)
    created_at = DateTime()


@enrolcart.repository(part_of=PaymentRecord)
class PaymentRecordRepository:
    def find_by_payment_id(self, payment_id) -> PaymentRecord | None:
        records = self._dao.query.filter(payment_id=str(payment_id)).all().items
        return records[0] if records else None

    def exists_for_cart(self, cart_id, area: str = CART_AREA) -> bool:
        return bool(self._dao.query.filter(cart_id=str(cart_id), area=area).all().items)
