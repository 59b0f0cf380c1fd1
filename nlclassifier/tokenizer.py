import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from loguru import logger

from .config import DEFAULT_DELIM_PATTERN, AssociatedFileType, SpecialToken
from .errors import ConfigurationError, StatusCode
from .metadata import ModelPackage, ProcessUnit
from .vocab import BufferLike, Vocabulary


@dataclass
class TokenizerResult:
    """Subwords produced by a single `tokenize` call, in input order."""

    subwords: List[str] = field(default_factory=list)

    def __iter__(self) -> Iterator[str]:
        return iter(self.subwords)

    def __len__(self) -> int:
        return len(self.subwords)


class RegexTokenizer:
    """Vocabulary-backed tokenizer splitting text on a delimiter pattern.

    Delimiters are dropped, the text between them becomes subwords:

        "good    morning, i'm your teacher.\\n" -> good | morning | i'm | your | teacher
    """

    def __init__(self, delim_regex_pattern: str, vocab: Vocabulary):
        """Initialize the tokenizer.

        Args:
            delim_regex_pattern: Pattern matching the delimiters between subwords
            vocab: Token <-> id table used for lookups
        """
        self.delim_regex_pattern = delim_regex_pattern
        self._delim_re = re.compile(f"({delim_regex_pattern})")
        self.vocab = vocab

    @classmethod
    def from_file(
        cls, vocab_file: str, delim_regex_pattern: str = DEFAULT_DELIM_PATTERN
    ) -> "RegexTokenizer":
        """Load tokenizer from a vocabulary file."""
        return cls(delim_regex_pattern, Vocabulary.from_file(vocab_file))

    @classmethod
    def from_buffer(
        cls, vocab_buffer: BufferLike, delim_regex_pattern: str = DEFAULT_DELIM_PATTERN
    ) -> "RegexTokenizer":
        """Load tokenizer from an in-memory vocabulary."""
        return cls(delim_regex_pattern, Vocabulary.from_buffer(vocab_buffer))

    def tokenize(self, text: str) -> TokenizerResult:
        result = TokenizerResult()

        start = 0
        for match in self._delim_re.finditer(text):
            # Zero-width matches cannot split anything
            if match.end() == match.start():
                continue
            if match.start() > start:
                result.subwords.append(text[start : match.start()])
            start = match.end()

        if start < len(text):
            result.subwords.append(text[start:])

        return result

    def lookup_id(self, token: str) -> Optional[int]:
        return self.vocab.lookup_id(token)

    def lookup_word(self, vocab_id: int) -> Optional[str]:
        return self.vocab.lookup_word(vocab_id)

    def get_start_token(self) -> Optional[int]:
        return self.lookup_id(SpecialToken.start)

    def get_pad_token(self) -> Optional[int]:
        return self.lookup_id(SpecialToken.pad)

    def get_unknown_token(self) -> Optional[int]:
        return self.lookup_id(SpecialToken.unknown)

    @property
    def vocab_size(self) -> int:
        """Get vocabulary size."""
        return len(self.vocab)

    def __len__(self) -> int:
        """Get vocabulary size."""
        return len(self.vocab)


class TokenizerKind(str, Enum):
    """Tokenizer families, keyed by their metadata options type."""

    REGEX = "RegexTokenizerOptions"


@dataclass
class TokenizerSpec:
    """Tokenizer descriptor resolved from an input process unit."""

    kind: TokenizerKind
    delim_regex_pattern: str
    vocab_file: str

    @classmethod
    def from_process_unit(cls, process_unit: ProcessUnit) -> "TokenizerSpec":
        try:
            kind = TokenizerKind(process_unit.options_type)
        except ValueError:
            raise ConfigurationError(
                StatusCode.METADATA_INVALID_TOKENIZER,
                f"Unsupported tokenizer type '{process_unit.options_type}'",
            ) from None

        if kind is TokenizerKind.REGEX:
            options = process_unit.options
            pattern = options.get("delim_regex_pattern")
            if not pattern:
                raise ConfigurationError(
                    StatusCode.METADATA_INVALID_TOKENIZER,
                    "RegexTokenizerOptions is missing 'delim_regex_pattern'",
                )
            vocab_files = options.get("vocab_file") or []
            if not isinstance(vocab_files, list) or not all(
                isinstance(f, dict) and isinstance(f.get("name"), str) for f in vocab_files
            ):
                raise ConfigurationError(
                    StatusCode.METADATA_INVALID_TOKENIZER,
                    "RegexTokenizerOptions 'vocab_file' must be a list of associated "
                    f"files with a name, got {vocab_files!r}",
                )
            vocab_names = [
                f["name"]
                for f in vocab_files
                if f.get("type", AssociatedFileType.vocabulary)
                == AssociatedFileType.vocabulary
            ]
            if not vocab_names:
                raise ConfigurationError(
                    StatusCode.METADATA_INVALID_TOKENIZER,
                    "RegexTokenizerOptions does not reference a vocabulary file",
                )
            return cls(kind=kind, delim_regex_pattern=pattern, vocab_file=vocab_names[0])

        raise ConfigurationError(
            StatusCode.METADATA_INVALID_TOKENIZER, f"Unhandled tokenizer kind {kind}"
        )


def create_tokenizer(spec: TokenizerSpec, package: ModelPackage) -> RegexTokenizer:
    """Build the tokenizer described by `spec` with files taken from `package`."""
    vocab_buffer = package.get_associated_file(spec.vocab_file)
    if vocab_buffer is None:
        raise ConfigurationError(
            StatusCode.METADATA_INVALID_TOKENIZER,
            f"Vocabulary file '{spec.vocab_file}' not found in model package",
        )

    if spec.kind is TokenizerKind.REGEX:
        try:
            tokenizer = RegexTokenizer.from_buffer(vocab_buffer, spec.delim_regex_pattern)
        except re.error as e:
            raise ConfigurationError(
                StatusCode.METADATA_INVALID_TOKENIZER,
                f"Invalid delimiter pattern '{spec.delim_regex_pattern}': {e}",
            ) from e
        except UnicodeDecodeError as e:
            raise ConfigurationError(
                StatusCode.METADATA_INVALID_TOKENIZER,
                f"Vocabulary file '{spec.vocab_file}' is not valid UTF-8: {e}",
            ) from e
        logger.debug(
            f"Created regex tokenizer with {tokenizer.vocab_size} tokens "
            f"and pattern {spec.delim_regex_pattern!r}"
        )
        return tokenizer

    raise ConfigurationError(
        StatusCode.METADATA_INVALID_TOKENIZER, f"Unhandled tokenizer kind {spec.kind}"
    )


def create_tokenizer_from_process_unit(
    process_unit: ProcessUnit, package: ModelPackage
) -> RegexTokenizer:
    return create_tokenizer(TokenizerSpec.from_process_unit(process_unit), package)
