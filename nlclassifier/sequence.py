"""
Sequence assembly for BERT-style classifiers.

A text becomes three index-aligned arrays:

                       |<--------- tensor length --------->|
    ids                [CLS] s1  s2 ... sn [SEP]  0  0 ...  0
    mask                 1    1   1 ...  1    1   0  0 ...  0
    segment_ids          0    0   0 ...  0    0   0  0 ...  0

In static mode the tensor length is the model's fixed length and trailing subwords
are dropped to fit; in dynamic mode the tensor length is exactly the token count.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import numpy as np
from loguru import logger

from .config import SpecialToken
from .tokenizer import RegexTokenizer

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


class ShapeMode(Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


@dataclass
class InputSequence:
    """Index-aligned ids, mask and segment ids of one text."""

    ids: np.ndarray
    mask: np.ndarray
    segment_ids: np.ndarray

    def __post_init__(self):
        self.ids = np.asarray(self.ids, dtype=np.int32)
        self.mask = np.asarray(self.mask, dtype=np.int32)
        self.segment_ids = np.asarray(self.segment_ids, dtype=np.int32)
        lengths = (len(self.ids), len(self.mask), len(self.segment_ids))
        if len(set(lengths)) != 1:
            raise ValueError(
                "ids, mask and segment_ids must share one length, got "
                f"ids ({lengths[0]}), mask ({lengths[1]}), segment_ids ({lengths[2]})"
            )

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def num_tokens(self) -> int:
        """Number of populated positions, markers included."""
        return int(self.mask.sum())


def ascii_lower(text: str) -> str:
    """Lower-case A-Z only; every other character is left untouched."""
    return text.translate(_ASCII_LOWER)


def token_budget(num_subwords: int, shape_mode: ShapeMode, max_seq_len: Optional[int]) -> int:
    """Number of tokens to encode, markers included."""
    budget = num_subwords + 2
    if shape_mode is ShapeMode.STATIC:
        budget = min(max_seq_len, budget)
    return budget


def build_input_sequence(
    text: str,
    tokenizer: RegexTokenizer,
    shape_mode: ShapeMode,
    max_seq_len: Optional[int] = None,
    classification_token: str = SpecialToken.classification,
    separator_token: str = SpecialToken.separator,
    pad_id: int = 0,
) -> InputSequence:
    """Build the [CLS] text [SEP] sequence for `text`.

    Args:
        text: Raw input text
        tokenizer: Tokenizer providing subwords and id lookups
        shape_mode: STATIC pads/truncates to `max_seq_len`, DYNAMIC fits the text
        max_seq_len: Fixed tensor length, required in STATIC mode
        classification_token: Marker placed at position 0
        separator_token: Marker placed after the last kept subword
        pad_id: Value of padding positions and of tokens missing from the vocabulary

    Returns:
        InputSequence whose length is `max_seq_len` (STATIC) or subwords + 2 (DYNAMIC)
    """
    if shape_mode is ShapeMode.STATIC and (max_seq_len is None or max_seq_len < 2):
        raise ValueError(f"Static sequences need max_seq_len >= 2, got {max_seq_len}")

    subwords = tokenizer.tokenize(ascii_lower(text)).subwords

    budget = token_budget(len(subwords), shape_mode, max_seq_len)
    tensor_length = max_seq_len if shape_mode is ShapeMode.STATIC else budget
    if budget - 2 < len(subwords):
        logger.debug(
            f"Truncating {len(subwords)} subwords to {budget - 2} to fit {tensor_length}"
        )

    tokens: List[str] = [classification_token]
    tokens.extend(subwords[: budget - 2])
    tokens.append(separator_token)

    ids = np.full(tensor_length, pad_id, dtype=np.int32)
    mask = np.zeros(tensor_length, dtype=np.int32)
    for i, token in enumerate(tokens):
        token_id = tokenizer.lookup_id(token)
        if token_id is not None:
            ids[i] = token_id
        mask[i] = 1

    return InputSequence(
        ids=ids,
        mask=mask,
        segment_ids=np.zeros(tensor_length, dtype=np.int32),
    )
