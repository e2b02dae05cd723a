"""The capability set shared by persisted and guest carts."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class CartLike(Protocol):
    @property
    def items(self) -> Sequence: ...

    def has_item(self, offering_instance_id) -> bool: ...

    def add_item(self, offering_instance_id) -> bool: ...

    def remove_item(self, offering_instance_id) -> bool: ...

    def checkout(self) -> bool: ...

    def cancel(self) -> bool: ...

    def deliver(self) -> bool: ...
