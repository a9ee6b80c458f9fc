"""
Generic numeric buffer passed to and returned from the inference engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class Tensor:
    """
    Fixed-shape numeric buffer: a dimensions tuple plus a flat payload.

    Attributes:
        shape: Dimensions, outermost first.
        data: Flat 1-D numeric payload with ``prod(shape)`` elements.
    """
    shape: Tuple[int, ...]
    data: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        expected = int(np.prod(self.shape)) if self.shape else 1
        if self.data.ndim != 1:
            raise ValueError(f"Tensor data must be flat, got ndim={self.data.ndim}")
        if self.data.size != expected:
            raise ValueError(
                f"Tensor payload has {self.data.size} values, shape {self.shape} needs {expected}"
            )

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Tensor":
        """Wrap an n-d array; the payload is a flat view where possible."""
        arr = np.asarray(arr)
        return cls(shape=tuple(int(d) for d in arr.shape), data=arr.reshape(-1))

    @property
    def size(self) -> int:
        return int(self.data.size)

    def as_array(self) -> np.ndarray:
        """Return the payload reshaped to ``shape``."""
        return self.data.reshape(self.shape)


RawOutput = Union[Tensor, Sequence[Tensor]]


def as_output_list(output: RawOutput) -> List[Tensor]:
    """Normalize a single tensor or a sequence of tensors to a list."""
    if isinstance(output, Tensor):
        return [output]
    return list(output)
