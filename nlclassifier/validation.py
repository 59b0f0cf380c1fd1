"""Construction-time checks on the three BERT input tensors."""

from typing import List, Optional, Sequence

from .engine import EngineTensor
from .errors import ConfigurationError, StatusCode
from .metadata import TensorMetadata
from .sequence import ShapeMode

DYNAMIC_DIM = -1


def find_tensor_index(tensor_metadata: Sequence[TensorMetadata], name: str) -> Optional[int]:
    """Index of the tensor the metadata names `name`, None when absent."""
    for index, metadata in enumerate(tensor_metadata):
        if metadata.name == name:
            return index
    return None


def find_tensor_by_name(
    tensors: Sequence[EngineTensor],
    tensor_metadata: Sequence[TensorMetadata],
    name: str,
) -> Optional[EngineTensor]:
    # Metadata entries describe the graph tensors in order
    if len(tensors) != len(tensor_metadata):
        return None
    index = find_tensor_index(tensor_metadata, name)
    return tensors[index] if index is not None else None


def _describe(names: List[str], values: List[int]) -> str:
    return ", ".join(f"{name} ({value})" for name, value in zip(names, values))


def validate_input_tensors(
    tensors: Sequence[EngineTensor], names: Sequence[str]
) -> ShapeMode:
    """Check rank, batch and length agreement, then pick the shape mode.

    Args:
        tensors: ids, mask and segment ids tensors, in that order
        names: Names used in error messages

    Returns:
        DYNAMIC when every sequence dimension is declared -1, STATIC when none is
    """
    names = list(names)

    ranks = [tensor.rank for tensor in tensors]
    if any(rank != 2 for rank in ranks):
        raise ConfigurationError(
            StatusCode.INVALID_INPUT_TENSOR_DIMENSIONS,
            "The three input tensors in Bert models are expected to have dim 2, "
            f"but got {_describe(names, ranks)}.",
        )

    batches = [tensor.shape[0] for tensor in tensors]
    if any(batch != 1 for batch in batches):
        raise ConfigurationError(
            StatusCode.INVALID_INPUT_TENSOR_SIZE,
            "The three input tensors in Bert models are expected to have same "
            f"batch size 1, but got {_describe(names, batches)}.",
        )

    lengths = [tensor.shape[1] for tensor in tensors]
    if len(set(lengths)) != 1:
        raise ConfigurationError(
            StatusCode.INVALID_INPUT_TENSOR_SIZE,
            "The three input tensors in Bert models are expected to have same "
            f"length, but got {_describe(names, lengths)}.",
        )

    dynamic = [tensor.shape_signature[1] == DYNAMIC_DIM for tensor in tensors]
    if all(dynamic):
        return ShapeMode.DYNAMIC
    if any(dynamic):
        raise ConfigurationError(
            StatusCode.MIXED_STATIC_DYNAMIC_TENSORS,
            "Input tensors contain a mix of static and dynamic tensors: "
            + ", ".join(
                f"{name} ({'dynamic' if is_dynamic else 'static'})"
                for name, is_dynamic in zip(names, dynamic)
            ),
        )
    return ShapeMode.STATIC
