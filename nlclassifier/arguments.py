from dataclasses import dataclass, field
from typing import Literal, Optional


@dataclass
class InferenceArgs:
    # Model
    model_path: str = field(
        metadata={"help": "Path to the model package (.nlc zip archive)"},
    )
    max_seq_len: Optional[int] = field(
        default=None,
        metadata={"help": "Expected static sequence length (None = read from model)"},
    )

    # Inputs
    text: Optional[str] = field(default=None, metadata={"help": "Text to classify"})
    input_file: Optional[str] = field(
        default=None,
        metadata={"help": "JSON list of texts, or a text file with one text per line"},
    )
    output_file: Optional[str] = field(
        default=None, metadata={"help": "Write results as JSON to this file"}
    )
    interactive: bool = field(
        default=False, metadata={"help": "Read texts from stdin until 'quit'"}
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = field(
        default="INFO", metadata={"help": "Minimum loguru level written to stderr"}
    )
