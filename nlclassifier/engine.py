"""
Inference engine over a TorchScript (or plain `nn.Module`) graph.

The engine owns one buffer per declared input and output tensor. Inputs are passed
positionally to the graph in declaration order; callers locate them by name through
the model metadata, never by assuming an order.
"""

import io
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import torch
from loguru import logger

from .errors import ConfigurationError, ResourceError, StatusCode
from .metadata import ModelPackage

TORCH_DTYPES = {
    "int32": torch.int32,
    "int64": torch.int64,
    "float32": torch.float32,
    "float64": torch.float64,
    "uint8": torch.uint8,
    "int8": torch.int8,
}


@dataclass
class TensorSpec:
    """Declared tensor of the compiled graph.

    Attributes:
        name: Graph-level tensor name
        dtype: One of TORCH_DTYPES keys
        shape: Concrete shape the tensor is allocated with
        shape_signature: Declared shape, -1 marks a dynamic dimension (None = shape)
        quantization: (scale, zero_point) for quantized integer tensors
    """

    name: str
    dtype: str
    shape: List[int]
    shape_signature: Optional[List[int]] = None
    quantization: Optional[Tuple[float, int]] = None

    def __post_init__(self):
        if self.dtype not in TORCH_DTYPES:
            raise ValueError(f"Unsupported tensor dtype '{self.dtype}' for {self.name}")
        self.shape = [int(d) for d in self.shape]
        if self.shape_signature is None:
            self.shape_signature = list(self.shape)
        self.shape_signature = [int(d) for d in self.shape_signature]
        if len(self.shape_signature) != len(self.shape):
            raise ValueError(
                f"Tensor {self.name} has shape {self.shape} but signature "
                f"{self.shape_signature}"
            )
        if self.quantization is not None:
            scale, zero_point = self.quantization
            self.quantization = (float(scale), int(zero_point))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TensorSpec":
        return cls(
            name=data["name"],
            dtype=data["dtype"],
            shape=data["shape"],
            shape_signature=data.get("shape_signature"),
            quantization=data.get("quantization"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "dtype": self.dtype,
            "shape": self.shape,
            "shape_signature": self.shape_signature,
        }
        if self.quantization is not None:
            data["quantization"] = list(self.quantization)
        return data


class EngineTensor:
    """A named tensor buffer owned by the engine."""

    def __init__(self, spec: TensorSpec):
        self.name = spec.name
        self.dtype = spec.dtype
        self.shape = list(spec.shape)
        self.shape_signature = list(spec.shape_signature)
        self.quantization = spec.quantization
        self.data = torch.zeros(self.shape, dtype=self.torch_dtype)

    @property
    def torch_dtype(self) -> torch.dtype:
        return TORCH_DTYPES[self.dtype]

    @property
    def rank(self) -> int:
        return len(self.shape)

    def allocate(self):
        self.data = torch.zeros(self.shape, dtype=self.torch_dtype)

    def populate(self, values: Sequence) -> None:
        """Copy `values` into the buffer, keeping the current shape."""
        array = np.asarray(values)
        if array.size != self.data.numel():
            raise ResourceError(
                StatusCode.ALLOCATION_ERROR,
                f"Cannot populate tensor {self.name} of shape {self.shape} "
                f"with {array.size} values",
            )
        self.data = torch.from_numpy(array.reshape(self.shape).copy()).to(
            self.torch_dtype
        )

    def set_result(self, value: torch.Tensor):
        self.data = value.detach().cpu()
        self.shape = list(self.data.shape)

    def __repr__(self) -> str:
        return (
            f"EngineTensor(name={self.name!r}, dtype={self.dtype}, shape={self.shape}, "
            f"shape_signature={self.shape_signature})"
        )


class InferenceEngine:
    """Runs a graph over engine-owned input/output buffers."""

    def __init__(
        self,
        module: Callable[..., Any],
        inputs: List[TensorSpec],
        outputs: List[TensorSpec],
    ):
        self.module = module
        self.input_tensors = [EngineTensor(spec) for spec in inputs]
        self.output_tensors = [EngineTensor(spec) for spec in outputs]
        self._allocated = True

    @classmethod
    def from_package(cls, package: ModelPackage) -> "InferenceEngine":
        """Load the TorchScript graph and tensor specs of a model package."""
        try:
            inputs = [TensorSpec.from_dict(t) for t in package.graph["inputs"]]
            outputs = [TensorSpec.from_dict(t) for t in package.graph["outputs"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(
                StatusCode.INVALID_MODEL_PACKAGE, f"Malformed graph description: {e}"
            ) from e

        try:
            module = torch.jit.load(io.BytesIO(package.model_bytes), map_location="cpu")
        except (RuntimeError, ValueError) as e:
            raise ConfigurationError(
                StatusCode.INVALID_MODEL_PACKAGE, f"Unable to load model graph: {e}"
            ) from e
        module.eval()

        logger.debug(
            f"Loaded graph with {len(inputs)} inputs and {len(outputs)} outputs"
        )
        return cls(module, inputs, outputs)

    def resize_input_tensor(self, index: int, shape: Sequence[int], strict: bool = True):
        """Change the shape of an input tensor; takes effect after `allocate_tensors`.

        With `strict`, only dimensions declared as -1 in the shape signature may change.
        """
        tensor = self.input_tensors[index]
        shape = [int(d) for d in shape]
        if len(shape) != tensor.rank:
            raise ResourceError(
                StatusCode.ALLOCATION_ERROR,
                f"Cannot resize tensor {tensor.name} of rank {tensor.rank} to {shape}",
            )
        if any(d < 0 for d in shape):
            raise ResourceError(
                StatusCode.ALLOCATION_ERROR,
                f"Cannot resize tensor {tensor.name} to negative shape {shape}",
            )
        if strict:
            for current, declared, requested in zip(
                tensor.shape, tensor.shape_signature, shape
            ):
                if declared != -1 and requested != current:
                    raise ResourceError(
                        StatusCode.ALLOCATION_ERROR,
                        f"Attempting to resize dimension of tensor {tensor.name} with "
                        f"signature {tensor.shape_signature} to {shape}",
                    )
        if shape != tensor.shape:
            tensor.shape = shape
            self._allocated = False

    def allocate_tensors(self):
        for tensor in self.input_tensors:
            tensor.allocate()
        self._allocated = True

    def invoke(self) -> List[EngineTensor]:
        if not self._allocated:
            raise ResourceError(
                StatusCode.ALLOCATION_ERROR,
                "Input tensors were resized but not allocated before invoke",
            )

        args = [tensor.data for tensor in self.input_tensors]
        try:
            with torch.inference_mode():
                result = self.module(*args)
        except (RuntimeError, ValueError, TypeError, IndexError) as e:
            raise ResourceError(
                StatusCode.EXECUTION_ERROR, f"Graph execution failed: {e}"
            ) from e

        if isinstance(result, torch.Tensor):
            values = [result]
        elif isinstance(result, dict):
            values = list(result.values())
        else:
            values = list(result)

        if len(values) != len(self.output_tensors):
            raise ResourceError(
                StatusCode.EXECUTION_ERROR,
                f"Graph produced {len(values)} outputs, "
                f"{len(self.output_tensors)} were declared",
            )
        for tensor, value in zip(self.output_tensors, values):
            tensor.set_result(value)

        return self.output_tensors
