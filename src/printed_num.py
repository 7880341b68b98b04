#!/usr/bin/env python3
"""
Printed numbers

On-chain values are uint256. They are kept as the decimal digit string produced
from the decoded integer and written to the metrics output as-is, so they never
pass through a float on the way out.
"""


class PrintedNum:
    """Decimal string that formats verbatim and refuses arithmetic"""

    __slots__ = ("_digits",)

    def __init__(self, digits: str):
        if not isinstance(digits, str) or not (digits.isascii() and digits.isdigit()):
            raise ValueError(f"PrintedNum expects a decimal digit string, got {digits!r}")
        self._digits = digits

    def __str__(self) -> str:
        return self._digits

    def __repr__(self) -> str:
        return f"PrintedNum({self._digits!r})"

    def __format__(self, spec: str) -> str:
        if spec:
            raise TypeError("PrintedNum cannot be reformatted")
        return self._digits

    def __eq__(self, other) -> bool:
        if isinstance(other, PrintedNum):
            return self._digits == other._digits
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._digits)

    def _no_arithmetic(self, *_args):
        raise TypeError("arithmetic is not defined for PrintedNum")

    __add__ = __radd__ = _no_arithmetic
    __sub__ = __rsub__ = _no_arithmetic
    __mul__ = __rmul__ = _no_arithmetic
    __truediv__ = __rtruediv__ = _no_arithmetic
    __floordiv__ = __rfloordiv__ = _no_arithmetic
    __mod__ = __rmod__ = _no_arithmetic
    __pow__ = __rpow__ = _no_arithmetic
    __neg__ = __pos__ = __abs__ = _no_arithmetic
    __int__ = __float__ = _no_arithmetic

    def __lt__(self, other):
        self._no_arithmetic()

    __le__ = __gt__ = __ge__ = __lt__
