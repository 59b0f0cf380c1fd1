from dataclasses import dataclass
from typing import List, Optional, Sequence

import torch

from .engine import EngineTensor
from .errors import InputValidationError, StatusCode
from .metadata import TensorMetadata
from .validation import find_tensor_by_name

_QUANTIZED_DTYPES = (torch.uint8, torch.int8)


@dataclass
class Category:
    """A class name paired with its raw score."""

    class_name: str
    score: float


def select_score_tensor(
    output_tensors: Sequence[EngineTensor],
    output_metadata: Sequence[TensorMetadata],
    score_tensor_name: str,
) -> EngineTensor:
    """Pick the single score tensor, by name when the metadata names it."""
    if len(output_tensors) != 1:
        raise InputValidationError(
            StatusCode.INVALID_NUM_OUTPUT_TENSORS,
            "BertNLClassifier models are expected to have only 1 output, "
            f"found {len(output_tensors)}",
        )
    scores = find_tensor_by_name(output_tensors, output_metadata, score_tensor_name)
    return scores if scores is not None else output_tensors[0]


def tensor_scores(tensor: EngineTensor) -> List[float]:
    """Flatten a score tensor, dequantizing integer scores."""
    data = tensor.data.reshape(-1)
    if data.dtype in (torch.float32, torch.float64, torch.float16):
        return data.tolist()
    if data.dtype in _QUANTIZED_DTYPES and tensor.quantization is not None:
        scale, zero_point = tensor.quantization
        return [scale * (q - zero_point) for q in data.tolist()]
    raise InputValidationError(
        StatusCode.INVALID_OUTPUT_TENSOR_TYPE,
        f"Type mismatch for score tensor {tensor.name}: {data.dtype} is not supported",
    )


def build_categories(
    scores: EngineTensor, labels: Optional[Sequence[str]] = None
) -> List[Category]:
    """One category per score, in tensor order, named from `labels` when available."""
    labels = labels or []
    categories = []
    for index, score in enumerate(tensor_scores(scores)):
        name = labels[index] if index < len(labels) and labels[index] else str(index)
        categories.append(Category(class_name=name, score=score))
    return categories
