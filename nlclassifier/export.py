"""
Model package export.

Turns an `nn.Module` with the (ids, mask, segment_ids) -> scores signature into a
model package (see `nlclassifier.metadata`), or wraps a HuggingFace sequence
classification model so it exposes that signature first.
"""

import io
from typing import List, Optional, Sequence, Union

import torch
import torch.nn as nn
from loguru import logger
from transformers import PreTrainedModel

from .config import (
    DEFAULT_DELIM_PATTERN,
    DEFAULT_MAX_SEQ_LEN,
    AssociatedFileType,
    TensorName,
)
from .engine import TORCH_DTYPES, TensorSpec
from .metadata import (
    AssociatedFile,
    ModelMetadata,
    ModelPackage,
    ProcessUnit,
    TensorMetadata,
)
from .tokenizer import TokenizerKind
from .vocab import Vocabulary

VOCAB_FILE = "vocab.txt"
LABELS_FILE = "labels.txt"

_DTYPE_NAMES = {dtype: name for name, dtype in TORCH_DTYPES.items()}


class SequenceClassificationWrapper(nn.Module):
    """Exposes a HuggingFace classifier as (ids, mask, segment_ids) -> probabilities."""

    def __init__(self, model: PreTrainedModel):
        super().__init__()
        self.model = model

    def forward(self, ids: torch.Tensor, mask: torch.Tensor, segment_ids: torch.Tensor):
        outputs = self.model(
            input_ids=ids.long(),
            attention_mask=mask.long(),
            token_type_ids=segment_ids.long(),
            return_dict=False,
        )
        return torch.softmax(outputs[0], dim=-1)


def _vocab_lines(vocab: Union[Sequence[str], Vocabulary]) -> List[str]:
    if not isinstance(vocab, Vocabulary):
        return list(vocab)
    entries = list(vocab.items())
    if not entries:
        return []
    lines = [""] * (max(index for _, index in entries) + 1)
    for token, index in entries:
        lines[index] = token
    return lines


def export_model_package(
    module: nn.Module,
    vocab: Union[Sequence[str], Vocabulary],
    path: Optional[str] = None,
    labels: Optional[Sequence[str]] = None,
    seq_len: int = DEFAULT_MAX_SEQ_LEN,
    dynamic: bool = False,
    delim_regex_pattern: str = DEFAULT_DELIM_PATTERN,
    name: str = "bert_nl_classifier",
    trace: bool = False,
    input_dtype: str = "int32",
) -> ModelPackage:
    """Compile `module` to TorchScript and bundle it as a model package.

    Args:
        module: Graph taking ids, mask and segment ids of shape [1, seq_len]
        vocab: Tokens in id order, or a Vocabulary
        path: Where to save the package (not saved if None)
        labels: Class names in score order (no label file if None)
        seq_len: Static sequence length, also the length used to probe the output
        dynamic: Declare the sequence dimension as dynamic (-1)
        delim_regex_pattern: Tokenizer delimiter pattern stored in the metadata
        name: Model name stored in the metadata
        trace: Use torch.jit.trace instead of torch.jit.script
        input_dtype: dtype of the three input tensors

    Returns:
        The exported ModelPackage
    """
    module.eval()
    torch_dtype = TORCH_DTYPES[input_dtype]
    example_inputs = (
        torch.zeros((1, seq_len), dtype=torch_dtype),
        torch.ones((1, seq_len), dtype=torch_dtype),
        torch.zeros((1, seq_len), dtype=torch_dtype),
    )

    with torch.no_grad():
        if trace:
            compiled = torch.jit.trace(module, example_inputs, check_trace=False, strict=False)
        else:
            compiled = torch.jit.script(module)
        example_output = compiled(*example_inputs)

    buffer = io.BytesIO()
    torch.jit.save(compiled, buffer)

    input_shape = [1, 1] if dynamic else [1, seq_len]
    input_signature = [1, -1] if dynamic else [1, seq_len]
    graph = {
        "inputs": [
            TensorSpec(
                name=f"serving_default_{tensor_name}:0",
                dtype=input_dtype,
                shape=input_shape,
                shape_signature=input_signature,
            ).to_dict()
            for tensor_name in (TensorName.ids, TensorName.mask, TensorName.segment_ids)
        ],
        "outputs": [
            TensorSpec(
                name="StatefulPartitionedCall:0",
                dtype=_DTYPE_NAMES.get(example_output.dtype, "float32"),
                shape=list(example_output.shape),
            ).to_dict()
        ],
    }

    associated_files = {VOCAB_FILE: "\n".join(_vocab_lines(vocab)).encode("utf-8") + b"\n"}
    score_metadata = TensorMetadata(name=TensorName.score, description="Class scores")
    if labels is not None:
        associated_files[LABELS_FILE] = ("\n".join(labels) + "\n").encode("utf-8")
        score_metadata.associated_files.append(
            AssociatedFile(
                name=LABELS_FILE,
                type=AssociatedFileType.tensor_axis_labels,
                description="Labels for the score tensor",
            )
        )

    metadata = ModelMetadata(
        name=name,
        version="1",
        description="BERT-style text classifier",
        input_tensor_metadata=[
            TensorMetadata(name=TensorName.ids, description="Token ids"),
            TensorMetadata(name=TensorName.mask, description="Attention mask"),
            TensorMetadata(name=TensorName.segment_ids, description="Segment ids"),
        ],
        output_tensor_metadata=[score_metadata],
        input_process_units=[
            ProcessUnit(
                options_type=TokenizerKind.REGEX.value,
                options={
                    "delim_regex_pattern": delim_regex_pattern,
                    "vocab_file": [
                        AssociatedFile(
                            name=VOCAB_FILE, type=AssociatedFileType.vocabulary
                        ).to_dict()
                    ],
                },
            )
        ],
    )

    package = ModelPackage(metadata, graph, buffer.getvalue(), associated_files)
    logger.info(
        f"Exported '{name}' ({'dynamic' if dynamic else f'static {seq_len}'} inputs, "
        f"output shape {list(example_output.shape)})"
    )
    if path is not None:
        package.save(path)
    return package


def export_transformers_classifier(
    model: PreTrainedModel,
    vocab: Union[Sequence[str], Vocabulary],
    path: Optional[str] = None,
    seq_len: int = DEFAULT_MAX_SEQ_LEN,
    delim_regex_pattern: str = DEFAULT_DELIM_PATTERN,
) -> ModelPackage:
    """Export a HuggingFace sequence classification model with static inputs.

    Labels are taken from `model.config.id2label`.
    """
    model.eval()
    config = model.config
    labels = [config.id2label[i] for i in range(config.num_labels)]
    return export_model_package(
        SequenceClassificationWrapper(model),
        vocab,
        path=path,
        labels=labels,
        seq_len=seq_len,
        delim_regex_pattern=delim_regex_pattern,
        name=config.model_type,
        trace=True,
    )
