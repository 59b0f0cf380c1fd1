"""Error taxonomy for the NL classifier.

Every error carries a stable `StatusCode` so callers can branch on `error.code`
instead of parsing messages.
"""

from enum import Enum


class StatusCode(str, Enum):
    FILE_NOT_FOUND = "file_not_found"
    INVALID_MODEL_PACKAGE = "invalid_model_package"
    METADATA_INVALID_TOKENIZER = "metadata_invalid_tokenizer"
    INPUT_TENSOR_NOT_FOUND = "input_tensor_not_found"
    INVALID_INPUT_TENSOR_DIMENSIONS = "invalid_input_tensor_dimensions"
    INVALID_INPUT_TENSOR_SIZE = "invalid_input_tensor_size"
    MIXED_STATIC_DYNAMIC_TENSORS = "mixed_static_dynamic_tensors"
    INVALID_NUM_OUTPUT_TENSORS = "invalid_num_output_tensors"
    INVALID_OUTPUT_TENSOR_TYPE = "invalid_output_tensor_type"
    ALLOCATION_ERROR = "allocation_error"
    EXECUTION_ERROR = "execution_error"


class ClassifierError(Exception):
    """Base error with a categorical code."""

    def __init__(self, code: StatusCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class ConfigurationError(ClassifierError, ValueError):
    """Fatal at construction: the model package cannot back a classifier."""


class InputValidationError(ClassifierError, ValueError):
    """Aborts a single call; the classifier stays usable."""


class ResourceError(ClassifierError, RuntimeError):
    """Allocation, resize or execution failure raised by the inference engine."""
