"""
nlclassifier: on-device BERT-style text classification.

Prepares raw text for a packaged classification model and turns its score tensor
into named categories.

Pipeline:
    - Regex tokenizer backed by the vocabulary bundled with the model
    - [CLS] text [SEP] encoding into ids, mask and segment_ids tensors
    - Static (fixed length, truncating) or dynamic (resized per call) inputs,
      decided once from the declared tensor shape signatures
    - One Category per score, named from the bundled label file

Key Features:
    - Construction fails with a categorical ConfigurationError instead of
      producing malformed tensors
    - Tensors are bound by metadata name, not by position
    - Model packages exported from any nn.Module or HuggingFace classifier
"""

from .classifier import BertNLClassifier
from .config import ClassifierOptions, SpecialToken, TensorName
from .engine import InferenceEngine, TensorSpec
from .errors import (
    ClassifierError,
    ConfigurationError,
    InputValidationError,
    ResourceError,
    StatusCode,
)
from .export import export_model_package, export_transformers_classifier
from .metadata import ModelMetadata, ModelPackage
from .postprocess import Category
from .sequence import InputSequence, ShapeMode, build_input_sequence
from .tokenizer import RegexTokenizer, TokenizerKind, TokenizerResult, TokenizerSpec
from .vocab import Vocabulary, load_vocab

__all__ = [
    "BertNLClassifier",
    "ClassifierOptions",
    "SpecialToken",
    "TensorName",
    "InferenceEngine",
    "TensorSpec",
    "ClassifierError",
    "ConfigurationError",
    "InputValidationError",
    "ResourceError",
    "StatusCode",
    "export_model_package",
    "export_transformers_classifier",
    "ModelMetadata",
    "ModelPackage",
    "Category",
    "InputSequence",
    "ShapeMode",
    "build_input_sequence",
    "RegexTokenizer",
    "TokenizerKind",
    "TokenizerResult",
    "TokenizerSpec",
    "Vocabulary",
    "load_vocab",
]
