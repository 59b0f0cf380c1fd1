"""Configuration utilities for BERT-style NL classifiers."""

from dataclasses import dataclass
from typing import Optional


class TensorName:
    """Tensor names declared in the model metadata."""

    ids = "ids"
    mask = "mask"
    segment_ids = "segment_ids"
    score = "probability"


class SpecialToken:
    """Marker and reserved vocabulary entries."""

    classification = "[CLS]"
    separator = "[SEP]"
    start = "<START>"
    pad = "<PAD>"
    unknown = "<UNKNOWN>"


class AssociatedFileType:
    """Associated file types understood by the metadata loader."""

    vocabulary = "VOCABULARY"
    tensor_axis_labels = "TENSOR_AXIS_LABELS"


DEFAULT_DELIM_PATTERN = r"[^\w\']+"
DEFAULT_MAX_SEQ_LEN = 128


@dataclass
class ClassifierOptions:
    """Options for `BertNLClassifier`.

    Attributes:
        ids_tensor_name: Metadata name of the token ids input tensor
        mask_tensor_name: Metadata name of the attention mask input tensor
        segment_ids_tensor_name: Metadata name of the segment ids input tensor
        score_tensor_name: Metadata name of the output score tensor
        classification_token: Marker placed before the text
        separator_token: Marker placed after the text
        max_seq_len: Expected static sequence length (None = take it from the model)
        pad_id: Value left in unused and unknown-token positions
        tokenizer_process_unit_index: Input process unit holding the tokenizer
        output_tensor_index: Output tensor whose metadata carries the labels
    """

    ids_tensor_name: str = TensorName.ids
    mask_tensor_name: str = TensorName.mask
    segment_ids_tensor_name: str = TensorName.segment_ids
    score_tensor_name: str = TensorName.score
    classification_token: str = SpecialToken.classification
    separator_token: str = SpecialToken.separator
    max_seq_len: Optional[int] = None
    pad_id: int = 0
    tokenizer_process_unit_index: int = 0
    output_tensor_index: int = 0

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.max_seq_len is not None and self.max_seq_len < 2:
            raise ValueError(
                f"max_seq_len must leave room for two markers, got {self.max_seq_len}"
            )

        if self.tokenizer_process_unit_index < 0:
            raise ValueError(
                "tokenizer_process_unit_index must be non-negative, "
                f"got {self.tokenizer_process_unit_index}"
            )

        if self.output_tensor_index < 0:
            raise ValueError(
                f"output_tensor_index must be non-negative, got {self.output_tensor_index}"
            )

        names = [self.ids_tensor_name, self.mask_tensor_name, self.segment_ids_tensor_name]
        if len(set(names)) != len(names):
            raise ValueError(f"input tensor names must be distinct, got {names}")
