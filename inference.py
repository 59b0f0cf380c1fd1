#!/usr/bin/env python3
"""
Classify text with a packaged BERT-style model.

    python inference.py --model_path sentiment.nlc --text "a charming journey"
    python inference.py --model_path sentiment.nlc --input_file reviews.txt --output_file out.json
"""

import json
import sys
from pathlib import Path
from typing import Dict, List

from loguru import logger
from tqdm import tqdm
from transformers import HfArgumentParser

from nlclassifier import BertNLClassifier, ClassifierError, ClassifierOptions
from nlclassifier.arguments import InferenceArgs
from nlclassifier.postprocess import Category


def format_categories(categories: List[Category]) -> str:
    return "\n".join(
        f"category[{i}]: '{category.class_name}' : '{category.score:.5f}'"
        for i, category in enumerate(categories)
    )


def to_dict(text: str, categories: List[Category]) -> Dict:
    return {
        "text": text,
        "categories": [
            {"label": category.class_name, "score": category.score}
            for category in categories
        ],
    }


def read_texts(input_file: str) -> List[str]:
    """Texts from a JSON list of strings, or from the non-empty lines of a text file.

    Raises:
        ValueError: when a JSON file is not a list of strings
    """
    content = Path(input_file).read_text(encoding="utf-8")
    if input_file.endswith(".json"):
        texts = json.loads(content)
        if not isinstance(texts, list) or not all(isinstance(t, str) for t in texts):
            raise ValueError(f"{input_file} must contain a JSON list of strings")
        return texts
    return [line for line in content.splitlines() if line.strip()]


def interactive_mode(classifier: BertNLClassifier):
    print("\n" + "=" * 60)
    print("NL Classifier Interactive Mode")
    print("=" * 60)
    print("Type 'quit' to exit")

    while True:
        print("\n" + "-" * 40)
        text = input("Enter text to classify: ").strip()
        if text.lower() == "quit":
            break
        if not text:
            print("Please enter some text.")
            continue

        try:
            print(format_categories(classifier.classify(text)))
        except ClassifierError as e:
            print(f"Error during classification: {e}")


def main():
    parser = HfArgumentParser(InferenceArgs)
    (args,) = parser.parse_args_into_dataclasses()

    logger.remove()
    logger.add(sys.stderr, level=args.log_level)

    if not Path(args.model_path).exists():
        logger.error(f"Model file not found: {args.model_path}")
        return 1

    try:
        classifier = BertNLClassifier.from_file(
            args.model_path, options=ClassifierOptions(max_seq_len=args.max_seq_len)
        )
    except ClassifierError as e:
        logger.error(f"Failed to load model: {e}")
        return 1

    if args.interactive:
        interactive_mode(classifier)
        return 0

    if args.input_file:
        if not Path(args.input_file).exists():
            logger.error(f"Input file not found: {args.input_file}")
            return 1

        try:
            texts = read_texts(args.input_file)
        except ValueError as e:
            logger.error(f"Failed to read input file: {e}")
            return 1

        logger.info(f"Classifying {len(texts)} texts from {args.input_file}")
        try:
            results = [
                to_dict(text, classifier.classify(text))
                for text in tqdm(texts, desc="Classifying")
            ]
        except ClassifierError as e:
            logger.error(f"Error during classification: {e}")
            return 1

        if args.output_file:
            with open(args.output_file, "w") as f:
                json.dump(results, f, indent=2)
            logger.info(f"Results saved to {args.output_file}")
        else:
            print(json.dumps(results, indent=2))
        return 0

    if args.text:
        try:
            categories = classifier.classify(args.text)
        except ClassifierError as e:
            logger.error(f"Error during classification: {e}")
            return 1
        if args.output_file:
            with open(args.output_file, "w") as f:
                json.dump(to_dict(args.text, categories), f, indent=2)
            logger.info(f"Results saved to {args.output_file}")
        else:
            print(format_categories(categories))
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
