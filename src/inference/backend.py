"""
Inference engine interface.

An engine is an opaque synchronous function from a prepared input tensor to
the model's raw output tensors, with bounded-but-variable latency. Engines may
offload work to an accelerator internally; callers only see the blocking
``execute()`` call.
"""

from __future__ import annotations

from typing import List, Protocol, Tuple, runtime_checkable

from models.tensor import Tensor


@runtime_checkable
class InferenceEngine(Protocol):
    def execute(self, input_tensor: Tensor) -> List[Tensor]:
        """
        Run the model on one input tensor.

        Raises:
            EngineExecutionError: If the runtime fails.
        """
        ...

    def close(self) -> None:
        """Release runtime resources. Safe to call multiple times."""
        ...


def describe_outputs(outputs: List[Tensor]) -> List[Tuple[int, ...]]:
    """Shapes of a list of output tensors, for logging and validation."""
    return [t.shape for t in outputs]
