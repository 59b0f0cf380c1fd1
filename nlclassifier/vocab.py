"""
Vocabulary loading utilities.

The vocabulary maps tokens to integer ids. Files are newline-delimited UTF-8 text,
one token per line, and the 0-indexed line number is the token's id:

    <PAD>       # ID: 0
    <START>     # ID: 1
    <UNKNOWN>   # ID: 2
    the         # ID: 3
    ...

The whole line is the token. Two-column files ("<PAD> 0") are not parsed as
token/id pairs: "good 52" is loaded as the single token "good 52".

Files and in-memory buffers go through the same byte-level parser, so identical
bytes always produce identical tables.
"""

import collections
from typing import Dict, Iterator, Optional, Tuple, Union

from loguru import logger

BufferLike = Union[bytes, bytearray, memoryview]


def _parse_vocab(data: BufferLike) -> Dict[str, int]:
    vocab = collections.OrderedDict()
    text = bytes(data).decode("utf-8")
    lines = text.split("\n")
    # A final newline does not open a new entry
    if lines and lines[-1] == "":
        lines.pop()

    with_whitespace = 0
    for index, token in enumerate(lines):
        token = token.rstrip("\r")
        if not token:
            # Blank lines keep their id slot but hold no entry
            continue
        if len(token.split()) > 1:
            with_whitespace += 1
        vocab[token] = index

    if with_whitespace:
        logger.debug(
            f"{with_whitespace} vocabulary lines contain whitespace and are kept as "
            "whole tokens; ids come from line numbers, not from a second column"
        )
    return vocab


def load_vocab(vocab_file: str) -> Dict[str, int]:
    """Loads a vocabulary file into an ordered token -> id dictionary.

    Example:
        >>> vocab = load_vocab("vocab.txt")
        >>> vocab["<PAD>"]
        0
    """
    with open(vocab_file, "rb") as reader:
        return _parse_vocab(reader.read())


class Vocabulary:
    """Immutable bidirectional token <-> id table."""

    def __init__(self, token_to_id: Dict[str, int]):
        self._token_to_id = collections.OrderedDict(token_to_id)
        # Built from the forward table, so a repeated token only keeps its last id
        self._id_to_token = {index: token for token, index in self._token_to_id.items()}

    @classmethod
    def from_file(cls, vocab_file: str) -> "Vocabulary":
        return cls(load_vocab(vocab_file))

    @classmethod
    def from_buffer(cls, data: BufferLike) -> "Vocabulary":
        return cls(_parse_vocab(data))

    def lookup_id(self, token: str) -> Optional[int]:
        """Exact-match lookup, None when the token is absent."""
        return self._token_to_id.get(token)

    def lookup_word(self, index: int) -> Optional[str]:
        """Exact-match reverse lookup, None when the id is absent."""
        return self._id_to_token.get(index)

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(self._token_to_id.items())

    def __contains__(self, token: str) -> bool:
        return token in self._token_to_id

    def __len__(self) -> int:
        return len(self._token_to_id)


__all__ = ["Vocabulary", "load_vocab"]
