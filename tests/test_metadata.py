import io
import json
import os
import tempfile
import unittest
import zipfile

from model_fixtures import LABELS, build_package

from nlclassifier.config import AssociatedFileType, TensorName
from nlclassifier.errors import ConfigurationError, StatusCode
from nlclassifier.metadata import (
    GRAPH_FILE,
    METADATA_FILE,
    MODEL_FILE,
    ModelMetadata,
    ModelPackage,
    read_label_file,
)


class TestModelMetadata(unittest.TestCase):
    def test_dict_round_trip(self):
        metadata = build_package(seq_len=8).metadata
        restored = ModelMetadata.from_dict(json.loads(json.dumps(metadata.to_dict())))
        self.assertEqual(restored, metadata)

    def test_out_of_range_lookups(self):
        metadata = ModelMetadata()
        self.assertIsNone(metadata.get_input_process_unit(0))
        self.assertIsNone(metadata.get_output_tensor_metadata(0))
        self.assertIsNone(metadata.get_input_process_unit(-1))

    def test_find_associated_file(self):
        score = build_package(seq_len=8).metadata.output_tensor_metadata[0]
        self.assertEqual(score.name, TensorName.score)
        labels = score.find_associated_file(AssociatedFileType.tensor_axis_labels)
        self.assertEqual(labels.name, "labels.txt")
        self.assertIsNone(score.find_associated_file(AssociatedFileType.vocabulary))


class TestReadLabelFile(unittest.TestCase):
    def test_lines(self):
        self.assertEqual(read_label_file(b"negative\npositive\n"), ["negative", "positive"])

    def test_crlf_and_missing_trailing_newline(self):
        self.assertEqual(read_label_file(b"negative\r\npositive"), ["negative", "positive"])

    def test_blank_line_kept_in_position(self):
        self.assertEqual(read_label_file(b"a\n\nc\n"), ["a", "", "c"])


class TestModelPackage(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.package = build_package(seq_len=8)

    def test_buffer_round_trip(self):
        restored = ModelPackage.from_buffer(self.package.to_buffer())
        self.assertEqual(restored.metadata, self.package.metadata)
        self.assertEqual(restored.graph, self.package.graph)
        self.assertEqual(restored.model_bytes, self.package.model_bytes)
        self.assertEqual(restored.associated_files, self.package.associated_files)
        self.assertEqual(read_label_file(restored.get_associated_file("labels.txt")), LABELS)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "polarity.nlc")
            self.package.save(path)
            from_file = ModelPackage.from_file(path)
            with open(path, "rb") as f:
                from_file_object = ModelPackage.from_file_object(f)
        for restored in (from_file, from_file_object):
            self.assertEqual(restored.metadata.name, "polarity")
            self.assertIn("vocab.txt", restored.associated_files)

    def test_missing_file(self):
        with self.assertRaises(ConfigurationError) as ctx:
            ModelPackage.from_file("i/do/not/exist.nlc")
        self.assertEqual(ctx.exception.code, StatusCode.FILE_NOT_FOUND)
        self.assertEqual(str(ctx.exception), "[file_not_found] Unable to open file at i/do/not/exist.nlc")

    def test_not_a_zip(self):
        with self.assertRaises(ConfigurationError) as ctx:
            ModelPackage.from_buffer(b"\x00" * 64)
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_MODEL_PACKAGE)

    def _zip(self, files):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for name, content in files.items():
                archive.writestr(name, content)
        return buffer.getvalue()

    def test_missing_required_entry(self):
        data = self._zip({METADATA_FILE: "{}", MODEL_FILE: b""})
        with self.assertRaises(ConfigurationError) as ctx:
            ModelPackage.from_buffer(data)
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_MODEL_PACKAGE)
        self.assertIn(GRAPH_FILE, ctx.exception.message)

    def test_malformed_metadata(self):
        data = self._zip({METADATA_FILE: "{not json", GRAPH_FILE: "{}", MODEL_FILE: b""})
        with self.assertRaises(ConfigurationError) as ctx:
            ModelPackage.from_buffer(data)
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_MODEL_PACKAGE)


if __name__ == "__main__":
    unittest.main()
