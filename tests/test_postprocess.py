import unittest

import torch

from nlclassifier.engine import EngineTensor, TensorSpec
from nlclassifier.errors import InputValidationError, StatusCode
from nlclassifier.metadata import TensorMetadata
from nlclassifier.postprocess import build_categories, select_score_tensor, tensor_scores


def score_tensor(values, dtype="float32", quantization=None, name="scores"):
    tensor = EngineTensor(
        TensorSpec(name=name, dtype=dtype, shape=[1, len(values)], quantization=quantization)
    )
    tensor.set_result(torch.tensor([values], dtype=tensor.torch_dtype))
    return tensor


class TestBuildCategories(unittest.TestCase):
    def test_labels_in_output_order(self):
        categories = build_categories(score_tensor([0.1, 0.9]), ["negative", "positive"])
        self.assertEqual([c.class_name for c in categories], ["negative", "positive"])
        self.assertAlmostEqual(categories[0].score, 0.1, places=6)
        self.assertAlmostEqual(categories[1].score, 0.9, places=6)

    def test_index_names_without_labels(self):
        categories = build_categories(score_tensor([0.2, 0.3, 0.5]))
        self.assertEqual([c.class_name for c in categories], ["0", "1", "2"])

    def test_short_or_empty_labels_fall_back_to_index(self):
        categories = build_categories(score_tensor([0.2, 0.3, 0.5]), ["low", ""])
        self.assertEqual([c.class_name for c in categories], ["low", "1", "2"])

    def test_scores_not_filtered(self):
        categories = build_categories(score_tensor([0.0, -1.5, 7.0]))
        self.assertEqual([c.score for c in categories], [0.0, -1.5, 7.0])


class TestTensorScores(unittest.TestCase):
    def test_quantized_uint8(self):
        tensor = score_tensor([10, 210], dtype="uint8", quantization=(0.5, 10))
        self.assertEqual(tensor_scores(tensor), [0.0, 100.0])

    def test_quantized_int8(self):
        tensor = score_tensor([-128, 127], dtype="int8", quantization=(1 / 255, -128))
        scores = tensor_scores(tensor)
        self.assertAlmostEqual(scores[0], 0.0)
        self.assertAlmostEqual(scores[1], 1.0)

    def test_unsupported_dtype(self):
        with self.assertRaises(InputValidationError) as ctx:
            tensor_scores(score_tensor([1, 2], dtype="int32"))
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_OUTPUT_TENSOR_TYPE)

    def test_integer_without_quantization(self):
        with self.assertRaises(InputValidationError) as ctx:
            tensor_scores(score_tensor([1, 2], dtype="uint8"))
        self.assertEqual(ctx.exception.code, StatusCode.INVALID_OUTPUT_TENSOR_TYPE)


class TestSelectScoreTensor(unittest.TestCase):
    def test_single_output(self):
        tensor = score_tensor([0.5, 0.5])
        metadata = [TensorMetadata("probability")]
        self.assertIs(select_score_tensor([tensor], metadata, "probability"), tensor)

    def test_unnamed_single_output(self):
        tensor = score_tensor([0.5, 0.5])
        self.assertIs(select_score_tensor([tensor], [], "probability"), tensor)

    def test_wrong_output_count(self):
        for count in (0, 2):
            with self.subTest(count=count):
                tensors = [score_tensor([0.5, 0.5], name=f"out_{i}") for i in range(count)]
                with self.assertRaises(InputValidationError) as ctx:
                    select_score_tensor(tensors, [], "probability")
                self.assertEqual(ctx.exception.code, StatusCode.INVALID_NUM_OUTPUT_TENSORS)
                self.assertIn(
                    f"expected to have only 1 output, found {count}", ctx.exception.message
                )


if __name__ == "__main__":
    unittest.main()
