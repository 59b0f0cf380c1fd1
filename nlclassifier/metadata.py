"""
Packaged model format and metadata loader.

A model package is a zip archive bundling everything a classifier needs:

    metadata.json   tensor metadata, input process units (tokenizer descriptor)
    graph.json      input/output tensor specs of the compiled graph
    model.pt        TorchScript graph
    vocab.txt       associated files (vocabulary, labels, ...) referenced by name
    labels.txt

`metadata.json` layout:

    {
      "name": "...", "version": "...", "description": "...",
      "subgraph": {
        "input_tensor_metadata": [{"name": "ids"}, {"name": "mask"}, {"name": "segment_ids"}],
        "output_tensor_metadata": [
          {"name": "probability",
           "associated_files": [{"name": "labels.txt", "type": "TENSOR_AXIS_LABELS"}]}
        ],
        "input_process_units": [
          {"options_type": "RegexTokenizerOptions",
           "options": {"delim_regex_pattern": "[^\\\\w\\\\']+",
                       "vocab_file": [{"name": "vocab.txt", "type": "VOCABULARY"}]}}
        ]
      }
    }
"""

import io
import json
import os
import zipfile
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Union

from loguru import logger

from .errors import ConfigurationError, StatusCode

METADATA_FILE = "metadata.json"
GRAPH_FILE = "graph.json"
MODEL_FILE = "model.pt"

BufferLike = Union[bytes, bytearray, memoryview]


@dataclass
class AssociatedFile:
    name: str
    type: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssociatedFile":
        return cls(
            name=data["name"],
            type=data.get("type", ""),
            description=data.get("description", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "description": self.description}


@dataclass
class TensorMetadata:
    name: str
    description: str = ""
    associated_files: List[AssociatedFile] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TensorMetadata":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            associated_files=[
                AssociatedFile.from_dict(f) for f in data.get("associated_files", [])
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "associated_files": [f.to_dict() for f in self.associated_files],
        }

    def find_associated_file(self, file_type: str) -> Optional[AssociatedFile]:
        for associated_file in self.associated_files:
            if associated_file.type == file_type:
                return associated_file
        return None


@dataclass
class ProcessUnit:
    """Input-side processing unit, e.g. a tokenizer descriptor."""

    options_type: str
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessUnit":
        return cls(options_type=data["options_type"], options=dict(data.get("options", {})))

    def to_dict(self) -> Dict[str, Any]:
        return {"options_type": self.options_type, "options": self.options}


@dataclass
class ModelMetadata:
    name: str = ""
    version: str = ""
    description: str = ""
    input_tensor_metadata: List[TensorMetadata] = field(default_factory=list)
    output_tensor_metadata: List[TensorMetadata] = field(default_factory=list)
    input_process_units: List[ProcessUnit] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelMetadata":
        subgraph = data.get("subgraph", {})
        return cls(
            name=data.get("name", ""),
            version=data.get("version", ""),
            description=data.get("description", ""),
            input_tensor_metadata=[
                TensorMetadata.from_dict(t)
                for t in subgraph.get("input_tensor_metadata", [])
            ],
            output_tensor_metadata=[
                TensorMetadata.from_dict(t)
                for t in subgraph.get("output_tensor_metadata", [])
            ],
            input_process_units=[
                ProcessUnit.from_dict(p) for p in subgraph.get("input_process_units", [])
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "subgraph": {
                "input_tensor_metadata": [t.to_dict() for t in self.input_tensor_metadata],
                "output_tensor_metadata": [
                    t.to_dict() for t in self.output_tensor_metadata
                ],
                "input_process_units": [p.to_dict() for p in self.input_process_units],
            },
        }

    def get_input_process_unit(self, index: int) -> Optional[ProcessUnit]:
        if 0 <= index < len(self.input_process_units):
            return self.input_process_units[index]
        return None

    def get_output_tensor_metadata(self, index: int) -> Optional[TensorMetadata]:
        if 0 <= index < len(self.output_tensor_metadata):
            return self.output_tensor_metadata[index]
        return None


def read_label_file(data: BufferLike) -> List[str]:
    """Split a label file into one label per line, keeping line order."""
    lines = bytes(data).decode("utf-8").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line.rstrip("\r") for line in lines]


class ModelPackage:
    """In-memory view of a packaged model."""

    def __init__(
        self,
        metadata: ModelMetadata,
        graph: Dict[str, Any],
        model_bytes: bytes,
        associated_files: Optional[Dict[str, bytes]] = None,
    ):
        self.metadata = metadata
        self.graph = graph
        self.model_bytes = model_bytes
        self.associated_files = dict(associated_files or {})

    @classmethod
    def from_buffer(cls, data: BufferLike) -> "ModelPackage":
        """Read a package from the raw bytes of its zip archive."""
        try:
            archive = zipfile.ZipFile(io.BytesIO(bytes(data)))
        except zipfile.BadZipFile as e:
            raise ConfigurationError(
                StatusCode.INVALID_MODEL_PACKAGE,
                f"Model package is not a valid zip archive: {e}",
            ) from e

        with archive:
            names = set(archive.namelist())
            for required in (METADATA_FILE, GRAPH_FILE, MODEL_FILE):
                if required not in names:
                    raise ConfigurationError(
                        StatusCode.INVALID_MODEL_PACKAGE,
                        f"Model package is missing '{required}'",
                    )

            try:
                metadata = ModelMetadata.from_dict(json.loads(archive.read(METADATA_FILE)))
                graph = json.loads(archive.read(GRAPH_FILE))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                raise ConfigurationError(
                    StatusCode.INVALID_MODEL_PACKAGE,
                    f"Malformed model package metadata: {e}",
                ) from e

            model_bytes = archive.read(MODEL_FILE)
            associated_files = {
                name: archive.read(name)
                for name in names
                if name not in (METADATA_FILE, GRAPH_FILE, MODEL_FILE)
            }

        logger.debug(
            f"Read model package '{metadata.name}' with associated files "
            f"{sorted(associated_files)}"
        )
        return cls(metadata, graph, model_bytes, associated_files)

    @classmethod
    def from_file(cls, path: str) -> "ModelPackage":
        if not os.path.isfile(path):
            raise ConfigurationError(
                StatusCode.FILE_NOT_FOUND, f"Unable to open file at {path}"
            )
        with open(path, "rb") as f:
            return cls.from_buffer(f.read())

    @classmethod
    def from_file_object(cls, fileobj: BinaryIO) -> "ModelPackage":
        return cls.from_buffer(fileobj.read())

    def get_associated_file(self, name: str) -> Optional[bytes]:
        return self.associated_files.get(name)

    def to_buffer(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(METADATA_FILE, json.dumps(self.metadata.to_dict(), indent=2))
            archive.writestr(GRAPH_FILE, json.dumps(self.graph, indent=2))
            archive.writestr(MODEL_FILE, self.model_bytes)
            for name, content in self.associated_files.items():
                archive.writestr(name, content)
        return buffer.getvalue()

    def save(self, path: str):
        """Write the package as a zip archive."""
        with open(path, "wb") as f:
            f.write(self.to_buffer())
        logger.info(f"Model package saved to {path}")
