"""Exact resource amounts as reported by the cluster API.

Values are kept as `decimal.Decimal` parsed by `kubernetes.utils.parse_quantity`,
so summing many container requests or usage samples never accumulates binary
floating point error. Readers project the amount onto whole units:

* `milli_value()` for CPU (1000 = one core)
* `value()` for memory bytes

Both projections round up to the next whole unit, matching the API server's
own quantity type. Every comparison made by the verdict engine works on these
integer projections with truncating integer division, so very small requests
may never be flagged. Conversion to MiB (// 1048576) happens only when a
value is rendered.
"""
import math
from decimal import Decimal
from typing import Union

from kubernetes.utils import parse_quantity

MEBIBYTE = 1024 * 1024

QuantityLike = Union["Quantity", str, int, Decimal, None]


class Quantity:
    """Non-negative, additive resource amount."""

    __slots__ = ("_amount",)

    def __init__(self, amount: Decimal = Decimal(0)):
        self._amount = Decimal(amount)

    @classmethod
    def zero(cls) -> "Quantity":
        return cls(Decimal(0))

    @classmethod
    def parse(cls, value: QuantityLike) -> "Quantity":
        """Parse a quantity string such as `250m`, `1.5`, `512Mi` or `123456n`.

        A missing value (None or empty string) is the zero quantity: an
        undeclared request contributes nothing to the sum.
        """
        if value is None or value == "":
            return cls.zero()
        if isinstance(value, Quantity):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(Decimal(value))
        return cls(parse_quantity(value))

    def __add__(self, other: "Quantity") -> "Quantity":
        if not isinstance(other, Quantity):
            return NotImplemented
        return Quantity(self._amount + other._amount)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self._amount == other._amount

    def __hash__(self) -> int:
        return hash(self._amount)

    def __repr__(self) -> str:
        return f"Quantity({self._amount})"

    @property
    def amount(self) -> Decimal:
        return self._amount

    def is_zero(self) -> bool:
        return self._amount == 0

    def milli_value(self) -> int:
        return math.ceil(self._amount * 1000)

    def value(self) -> int:
        return math.ceil(self._amount)

    def mebibytes(self) -> int:
        """Whole MiB, truncated."""
        return self.value() // MEBIBYTE
