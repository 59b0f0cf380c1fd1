import unittest

from nlclassifier.engine import EngineTensor, TensorSpec
from nlclassifier.errors import ConfigurationError, StatusCode
from nlclassifier.metadata import TensorMetadata
from nlclassifier.sequence import ShapeMode
from nlclassifier.validation import (
    find_tensor_by_name,
    find_tensor_index,
    validate_input_tensors,
)

NAMES = ["ids", "mask", "segment_ids"]


def make_tensors(shapes, signatures=None):
    signatures = signatures or [None] * len(shapes)
    return [
        EngineTensor(TensorSpec(name=f"t{i}", dtype="int32", shape=shape, shape_signature=sig))
        for i, (shape, sig) in enumerate(zip(shapes, signatures))
    ]


class TestFindTensor(unittest.TestCase):
    def test_find_by_metadata_name(self):
        tensors = make_tensors([[1, 4]] * 3)
        metadata = [TensorMetadata(name) for name in ["segment_ids", "ids", "mask"]]
        self.assertEqual(find_tensor_index(metadata, "ids"), 1)
        self.assertIs(find_tensor_by_name(tensors, metadata, "mask"), tensors[2])
        self.assertIsNone(find_tensor_by_name(tensors, metadata, "probability"))

    def test_metadata_count_mismatch(self):
        tensors = make_tensors([[1, 4]] * 3)
        metadata = [TensorMetadata("ids")]
        self.assertIsNone(find_tensor_by_name(tensors, metadata, "ids"))


class TestValidateInputTensors(unittest.TestCase):
    def test_static(self):
        tensors = make_tensors([[1, 128]] * 3)
        self.assertIs(validate_input_tensors(tensors, NAMES), ShapeMode.STATIC)

    def test_dynamic(self):
        tensors = make_tensors([[1, 1]] * 3, [[1, -1]] * 3)
        self.assertIs(validate_input_tensors(tensors, NAMES), ShapeMode.DYNAMIC)

    def test_mixed_static_dynamic(self):
        tensors = make_tensors([[1, 128]] * 3, [[1, -1], [1, 128], [1, 128]])
        with self.assertRaises(ConfigurationError) as ctx:
            validate_input_tensors(tensors, NAMES)
        self.assertEqual(ctx.exception.code, StatusCode.MIXED_STATIC_DYNAMIC_TENSORS)
        self.assertIn("ids (dynamic)", ctx.exception.message)

    def test_wrong_rank(self):
        tensors = make_tensors([[1, 128], [1, 128, 1], [128]])
        with self.assertRaises(ConfigurationError) as ctx:
            validate_input_tensors(tensors, NAMES)
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_INPUT_TENSOR_DIMENSIONS)
        self.assertIn("ids (2), mask (3), segment_ids (1)", ctx.exception.message)

    def test_wrong_batch(self):
        tensors = make_tensors([[2, 128], [1, 128], [1, 128]])
        with self.assertRaises(ConfigurationError) as ctx:
            validate_input_tensors(tensors, NAMES)
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_INPUT_TENSOR_SIZE)
        self.assertIn("batch size 1", ctx.exception.message)
        self.assertIn("ids (2)", ctx.exception.message)

    def test_length_mismatch(self):
        tensors = make_tensors([[1, 128], [1, 64], [1, 128]])
        with self.assertRaises(ConfigurationError) as ctx:
            validate_input_tensors(tensors, NAMES)
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_INPUT_TENSOR_SIZE)
        self.assertIn("ids (128), mask (64), segment_ids (128)", ctx.exception.message)


if __name__ == "__main__":
    unittest.main()
