from typing import BinaryIO, List, Optional

from loguru import logger

from .config import AssociatedFileType, ClassifierOptions
from .engine import EngineTensor, InferenceEngine
from .errors import ConfigurationError, StatusCode
from .metadata import ModelPackage, read_label_file
from .postprocess import Category, build_categories, select_score_tensor
from .sequence import ShapeMode, build_input_sequence
from .tokenizer import RegexTokenizer, create_tokenizer_from_process_unit
from .validation import find_tensor_index, validate_input_tensors


class BertNLClassifier:
    """Text classifier for packaged BERT-style models.

    The model takes three int tensors (ids, mask, segment_ids) of shape [1, seq_len]
    and returns a single score tensor. Tokenizer and labels come from the package
    metadata.

    Example:
        >>> from nlclassifier import BertNLClassifier
        >>>
        >>> classifier = BertNLClassifier.from_file("sentiment.nlc")
        >>> for category in classifier.classify("it's a charming and often affecting journey"):
        ...     print(f"{category.class_name} => {category.score:.3f}")

    An instance owns mutable tensor buffers: serialize calls made on the same
    instance from several threads.
    """

    def __init__(
        self,
        package: ModelPackage,
        engine: Optional[InferenceEngine] = None,
        options: Optional[ClassifierOptions] = None,
    ):
        """Initialize the classifier and validate the model against its metadata.

        Args:
            package: Packaged model providing metadata and associated files
            engine: Engine running the graph (loaded from the package if None)
            options: Tensor names, markers and length overrides

        Raises:
            ConfigurationError: when the package cannot back a classifier
        """
        self.package = package
        self.options = options or ClassifierOptions()
        self.engine = engine if engine is not None else InferenceEngine.from_package(package)

        self._tokenizer: Optional[RegexTokenizer] = None
        self._labels: Optional[List[str]] = None
        self._shape_mode = ShapeMode.STATIC
        self._max_seq_len: Optional[int] = None
        self._input_indices: List[int] = []

        self._initialize_from_metadata()
        logger.info(
            f"Loaded classifier '{package.metadata.name}' "
            f"({self._shape_mode.value} inputs, max_seq_len={self._max_seq_len}, "
            f"labels={self._labels})"
        )

    @classmethod
    def from_file(
        cls, path: str, options: Optional[ClassifierOptions] = None
    ) -> "BertNLClassifier":
        """Load a classifier from a model package on disk."""
        logger.info(f"Loading model package from {path}")
        return cls(ModelPackage.from_file(path), options=options)

    @classmethod
    def from_buffer(
        cls, data: bytes, options: Optional[ClassifierOptions] = None
    ) -> "BertNLClassifier":
        """Load a classifier from the raw bytes of a model package."""
        return cls(ModelPackage.from_buffer(data), options=options)

    @classmethod
    def from_file_object(
        cls, fileobj: BinaryIO, options: Optional[ClassifierOptions] = None
    ) -> "BertNLClassifier":
        """Load a classifier from an open binary file."""
        return cls(ModelPackage.from_file_object(fileobj), options=options)

    @property
    def tokenizer(self) -> RegexTokenizer:
        return self._tokenizer

    @property
    def labels(self) -> Optional[List[str]]:
        return self._labels

    @property
    def shape_mode(self) -> ShapeMode:
        return self._shape_mode

    @property
    def max_seq_len(self) -> Optional[int]:
        """Fixed sequence length in STATIC mode, None in DYNAMIC mode."""
        return self._max_seq_len

    def _initialize_from_metadata(self):
        metadata = self.package.metadata
        options = self.options

        # Mandatory tokenizer
        process_unit = metadata.get_input_process_unit(options.tokenizer_process_unit_index)
        if process_unit is None:
            raise ConfigurationError(
                StatusCode.METADATA_INVALID_TOKENIZER,
                "No input process unit found from metadata.",
            )
        self._tokenizer = create_tokenizer_from_process_unit(process_unit, self.package)

        # Optional labels
        self._labels = self._load_labels()

        names = [
            options.ids_tensor_name,
            options.mask_tensor_name,
            options.segment_ids_tensor_name,
        ]
        input_metadata = metadata.input_tensor_metadata
        if len(input_metadata) != len(self.engine.input_tensors):
            raise ConfigurationError(
                StatusCode.INPUT_TENSOR_NOT_FOUND,
                f"Metadata describes {len(input_metadata)} input tensors but the "
                f"model has {len(self.engine.input_tensors)}",
            )
        indices = []
        for name in names:
            index = find_tensor_index(input_metadata, name)
            if index is None:
                raise ConfigurationError(
                    StatusCode.INPUT_TENSOR_NOT_FOUND,
                    f"Input tensor '{name}' not found in model metadata",
                )
            indices.append(index)
        self._input_indices = indices

        self._shape_mode = validate_input_tensors(self._input_tensors(), names)

        if self._shape_mode is ShapeMode.STATIC:
            seq_len = self.engine.input_tensors[indices[0]].shape[1]
            if options.max_seq_len is not None and options.max_seq_len != seq_len:
                raise ConfigurationError(
                    StatusCode.INVALID_INPUT_TENSOR_SIZE,
                    f"Requested max_seq_len {options.max_seq_len} does not match the "
                    f"model's input length {seq_len}",
                )
            if seq_len < 2:
                raise ConfigurationError(
                    StatusCode.INVALID_INPUT_TENSOR_SIZE,
                    f"Input length {seq_len} leaves no room for "
                    f"{options.classification_token} and {options.separator_token}",
                )
            self._max_seq_len = seq_len

    def _load_labels(self) -> Optional[List[str]]:
        tensor_metadata = self.package.metadata.get_output_tensor_metadata(
            self.options.output_tensor_index
        )
        if tensor_metadata is None:
            return None
        label_file = tensor_metadata.find_associated_file(
            AssociatedFileType.tensor_axis_labels
        )
        if label_file is None:
            return None
        content = self.package.get_associated_file(label_file.name)
        if content is None:
            logger.warning(
                f"Label file '{label_file.name}' is declared but missing from the package"
            )
            return None
        try:
            return read_label_file(content)
        except UnicodeDecodeError as e:
            logger.warning(f"Ignoring label file '{label_file.name}': not valid UTF-8 ({e})")
            return None

    def _input_tensors(self) -> List[EngineTensor]:
        return [self.engine.input_tensors[index] for index in self._input_indices]

    def _preprocess(self, text: str):
        options = self.options
        sequence = build_input_sequence(
            text,
            self._tokenizer,
            self._shape_mode,
            max_seq_len=self._max_seq_len,
            classification_token=options.classification_token,
            separator_token=options.separator_token,
            pad_id=options.pad_id,
        )

        if self._shape_mode is ShapeMode.DYNAMIC:
            for index in self._input_indices:
                self.engine.resize_input_tensor(index, [1, len(sequence)], strict=True)
            self.engine.allocate_tensors()

        ids_tensor, mask_tensor, segment_ids_tensor = self._input_tensors()
        ids_tensor.populate(sequence.ids)
        mask_tensor.populate(sequence.mask)
        segment_ids_tensor.populate(sequence.segment_ids)
        logger.debug(f"Encoded {sequence.num_tokens} tokens into length {len(sequence)}")

    def _postprocess(self, output_tensors: List[EngineTensor]) -> List[Category]:
        scores = select_score_tensor(
            output_tensors,
            self.package.metadata.output_tensor_metadata,
            self.options.score_tensor_name,
        )
        return build_categories(scores, self._labels)

    def classify(self, text: str) -> List[Category]:
        """Classify `text`.

        Returns:
            One Category per score, in the model's output order, with raw scores

        Raises:
            InputValidationError: when the model does not produce exactly one output
            ResourceError: when the engine fails to resize, allocate or run
        """
        self._preprocess(text)
        output_tensors = self.engine.invoke()
        return self._postprocess(output_tensors)

    def __call__(self, text: str) -> List[Category]:
        return self.classify(text)
