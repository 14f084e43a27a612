"""Small offline models and data shared by the tests."""

import json
import os

import numpy as np
from transformers import BertConfig, BertModel, BertTokenizer

from morphopredictor.preprocess import WordPieceTokenizer

VOCAB = [
    "[PAD]",
    "[UNK]",
    "[CLS]",
    "[SEP]",
    "[MASK]",
    "the",
    "a",
    "dog",
    "cat",
    "run",
    "walk",
    "##s",
    "##ning",
    "##ed",
    ".",
]


def build_tiny_bert(directory, max_length=64):
    """A randomly initialized BERT and its tokenizer, saved into `directory`."""
    with open(os.path.join(directory, "vocab.txt"), "w", encoding="utf-8") as f:
        f.write("\n".join(VOCAB) + "\n")

    tokenizer = BertTokenizer.from_pretrained(directory, do_lower_case=True, model_max_length=max_length)
    config = BertConfig(
        vocab_size=len(VOCAB),
        hidden_size=16,
        num_hidden_layers=1,
        num_attention_heads=2,
        intermediate_size=32,
        max_position_embeddings=max_length,
        hidden_dropout_prob=0.0,
        attention_probs_dropout_prob=0.0,
    )
    model = BertModel(config)

    tokenizer.save_pretrained(directory)
    model.save_pretrained(directory)

    return model, WordPieceTokenizer(tokenizer)


class FakeFastText:
    """Deterministic word vectors with the interface of a FastText model."""

    def __init__(self, dim=8):
        self.dim = dim

    def get_dimension(self):
        return self.dim

    def get_word_vector(self, word):
        rng = np.random.default_rng(sum(ord(c) for c in word))
        return rng.standard_normal(self.dim).astype(np.float32)


def token(form, properties=None, lemma=None, morphologies=None):
    if morphologies is None:
        morphologies = [
            {"components": [{"lemma": lemma or form, "properties": properties or {}}]}
        ]
    return {"form": form, "morphologies": morphologies}


RUN_LINE = {
    "tokens": [
        {
            "form": "run",
            "morphologies": [{"components": [{"lemma": "run", "properties": {"tense": "present"}}]}],
        }
    ]
}

SENTENCES = [
    {
        "tokens": [
            token("the"),
            token("dogs", {"number": "plural", "gender": "masculine"}, lemma="dog"),
            token("run", {"tense": "present", "mood": "indicative", "person": "third", "number": "plural"}),
        ]
    },
    {
        "tokens": [
            token("a"),
            token("cat", {"number": "singular", "gender": "feminine"}),
            token("walked", {"tense": "past", "mood": "indicative"}, lemma="walk"),
            token("."),
        ]
    },
]


def write_jsonl(path, lines):
    with open(path, "w", encoding="utf-8") as f:
        for line in lines:
            if isinstance(line, str):
                f.write(line + "\n")
            else:
                f.write(json.dumps(line) + "\n")
    return path
