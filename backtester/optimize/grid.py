"""Inclusive numeric parameter ranges and their Cartesian product."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Union

_EPSILON = 1e-9

Number = Union[int, float]


@dataclass(frozen=True)
class ParameterRange:
    """Inclusive ``min..max`` range walked in ``step`` increments."""

    min: Number
    max: Number
    step: Number

    def __post_init__(self) -> None:
        if self.step <= 0:
            raise ValueError(f"step must be positive, got {self.step}")
        if self.max < self.min:
            raise ValueError(
                f"max ({self.max}) must be >= min ({self.min})"
            )

    @classmethod
    def coerce(cls, value: Union["ParameterRange", Mapping[str, Number]]) -> "ParameterRange":
        """Accept a ``ParameterRange`` or a ``{"min", "max", "step"}`` mapping."""
        if isinstance(value, cls):
            return value
        try:
            return cls(min=value["min"], max=value["max"], step=value["step"])
        except (KeyError, TypeError):
            raise ValueError(
                f"Parameter range needs 'min', 'max' and 'step', got {value!r}"
            ) from None

    def __len__(self) -> int:
        return int(math.floor((self.max - self.min) / self.step + _EPSILON)) + 1

    def values(self) -> list[Number]:
        """All values from ``min`` to ``max`` inclusive.

        Integer ranges yield ints; float ranges are rounded to suppress
        accumulation drift.
        """
        integral = all(isinstance(v, int) for v in (self.min, self.max, self.step))
        out: list[Number] = []
        for k in range(len(self)):
            v = self.min + k * self.step
            out.append(v if integral else round(v, 10))
        return out


def generate_parameter_combinations(
    ranges: Mapping[str, Union[ParameterRange, Mapping[str, Number]]],
) -> Iterator[dict[str, Any]]:
    """Yield every combination of *ranges* as a ``{name: value}`` dict.

    Enumeration follows key insertion order with the last key varying
    fastest.  An empty mapping yields a single empty combination.
    """
    keys = list(ranges.keys())
    value_lists = [ParameterRange.coerce(ranges[k]).values() for k in keys]
    for combo in itertools.product(*value_lists):
        yield dict(zip(keys, combo))


def count_combinations(
    ranges: Mapping[str, Union[ParameterRange, Mapping[str, Number]]],
) -> int:
    """Number of combinations ``generate_parameter_combinations`` yields."""
    return math.prod(len(ParameterRange.coerce(r)) for r in ranges.values())
