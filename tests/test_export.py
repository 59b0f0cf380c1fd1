import os
import tempfile
import unittest

import torch
from model_fixtures import VOCAB_FILE, read_vocab_lines
from transformers import BertConfig, BertForSequenceClassification

from nlclassifier import BertNLClassifier, export_model_package, export_transformers_classifier
from nlclassifier.export import VOCAB_FILE as PACKAGED_VOCAB_FILE
from nlclassifier.tokenizer import RegexTokenizer
from nlclassifier.vocab import Vocabulary


class ConstantModel(torch.nn.Module):
    def forward(self, ids: torch.Tensor, mask: torch.Tensor, segment_ids: torch.Tensor):
        return torch.tensor([[0.25, 0.75]])


class TestExportModelPackage(unittest.TestCase):
    def test_vocabulary_is_packaged_in_id_order(self):
        vocab = Vocabulary.from_file(VOCAB_FILE)
        package = export_model_package(ConstantModel(), vocab, seq_len=4)
        tokenizer = RegexTokenizer.from_buffer(package.get_associated_file(PACKAGED_VOCAB_FILE))
        self.assertEqual(list(tokenizer.vocab.items()), list(vocab.items()))

    def test_static_and_dynamic_signatures(self):
        static = export_model_package(ConstantModel(), read_vocab_lines(), seq_len=4)
        dynamic = export_model_package(ConstantModel(), read_vocab_lines(), dynamic=True)
        for spec in static.graph["inputs"]:
            self.assertEqual(spec["shape_signature"], [1, 4])
        for spec in dynamic.graph["inputs"]:
            self.assertEqual(spec["shape"], [1, 1])
            self.assertEqual(spec["shape_signature"], [1, -1])
        self.assertEqual(static.graph["outputs"][0]["shape"], [1, 2])

    def test_saved_package_loads(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "constant.nlc")
            export_model_package(
                ConstantModel(), read_vocab_lines(), path=path, labels=["a", "b"], seq_len=4
            )
            classifier = BertNLClassifier.from_file(path)
        categories = classifier.classify("good morning")
        self.assertEqual([c.class_name for c in categories], ["a", "b"])
        self.assertAlmostEqual(categories[1].score, 0.75)


class TestExportTransformersClassifier(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        torch.manual_seed(0)
        config = BertConfig(
            vocab_size=27,
            hidden_size=32,
            num_hidden_layers=1,
            num_attention_heads=2,
            intermediate_size=37,
            max_position_embeddings=64,
            id2label={0: "negative", 1: "positive"},
            label2id={"negative": 0, "positive": 1},
        )
        cls.model = BertForSequenceClassification(config)
        cls.package = export_transformers_classifier(cls.model, read_vocab_lines(), seq_len=16)

    def test_labels_from_config(self):
        classifier = BertNLClassifier(self.package)
        self.assertEqual(classifier.labels, ["negative", "positive"])
        self.assertEqual(classifier.max_seq_len, 16)

    def test_classify(self):
        classifier = BertNLClassifier(self.package)
        categories = classifier.classify("it's a charming and often affecting journey")
        self.assertEqual([c.class_name for c in categories], ["negative", "positive"])
        self.assertAlmostEqual(sum(c.score for c in categories), 1.0, places=5)

    def test_matches_eager_model(self):
        classifier = BertNLClassifier(self.package)
        categories = classifier.classify("good morning")
        ids, mask, segment_ids = [t.data.long() for t in classifier.engine.input_tensors]
        with torch.no_grad():
            logits = self.model(
                input_ids=ids, attention_mask=mask, token_type_ids=segment_ids
            ).logits
        expected = torch.softmax(logits, dim=-1)[0].tolist()
        for category, score in zip(categories, expected):
            self.assertAlmostEqual(category.score, score, places=4)


if __name__ == "__main__":
    unittest.main()
