"""Tests for the text predictor: tokens encoder and context encoder together."""

import tempfile
import unittest
from unittest import mock

import torch
from helpers import SENTENCES, FakeFastText, build_tiny_bert

from morphopredictor.analysis import LexiconAnalyzer
from morphopredictor.dataset import sentence_from_json
from morphopredictor.features import collect_features
from morphopredictor.models.embedders.bert import TransformerEmbedder
from morphopredictor.models.embedders.fasttext import FastTextEmbedder
from morphopredictor.models.predictor.model import MorphoPredictorModel
from morphopredictor.models.predictor.text_predictor import TextMorphoPredictor, TextMorphoPredictorModel
from morphopredictor.models.predictor.tokens_encoder import TokensEncoder, build_embedder
from morphopredictor.properties import PropertyRegistry

LEXICON = {
    "dogs": [{"lemma": "dog", "number": "plural"}],
    "run": [{"lemma": "run", "tense": "present"}, {"lemma": "run", "number": "singular"}],
    "walked": [{"lemma": "walk", "tense": "past"}],
}


def recurrent_model(registry, trainable=True, encoding_size=6):
    analyzer = LexiconAnalyzer(LEXICON)
    sentences = [sentence_from_json(obj, analyzer) for obj in SENTENCES]
    tokens_encoder = TokensEncoder(
        FastTextEmbedder(fasttext_model=FakeFastText(dim=8)),
        collect_features(s.morpho_analysis for s in sentences),
        encoding_size=encoding_size,
        morpho_size=3,
        trainable=trainable,
    )
    predictor = MorphoPredictorModel.with_birnn(
        registry, token_encoding_size=6, rnn_hidden_size=4, dropout=0.0, hidden_size=5
    )
    return TextMorphoPredictorModel(predictor, tokens_encoder), sentences


class TestTokensEncoder(unittest.TestCase):

    def test_encodings(self):
        torch.manual_seed(0)
        model, sentences = recurrent_model(PropertyRegistry.default())

        encodings = model.tokens_encoder(sentences[0])

        self.assertEqual(encodings.shape, (3, 6))
        self.assertTrue(bool((encodings.abs() <= 1).all()))

    def test_without_analysis_features(self):
        encoder = TokensEncoder(FastTextEmbedder(fasttext_model=FakeFastText(dim=4)), {}, encoding_size=5, morpho_size=2)
        sentence = sentence_from_json(SENTENCES[1], LexiconAnalyzer({}))

        self.assertEqual(encoder(sentence).shape, (4, 5))

    def test_config_dict(self):
        torch.manual_seed(0)
        model, sentences = recurrent_model(PropertyRegistry.default())
        encoder = model.tokens_encoder
        embedder = FastTextEmbedder(fasttext_model=FakeFastText(dim=8))

        rebuilt = TokensEncoder.from_config(encoder.config_dict, embedder=embedder)
        rebuilt.load_state_dict(encoder.state_dict())

        self.assertTrue(torch.equal(rebuilt(sentences[0]), encoder(sentences[0])))

    def test_fasttext_model_loaded_from_path(self):
        with mock.patch("fasttext.load_model", return_value=FakeFastText(dim=5)) as load_model:
            embedder = build_embedder("fasttext", "vectors.bin")

        load_model.assert_called_once_with("vectors.bin")
        self.assertEqual(embedder.dimension, 5)
        self.assertEqual(embedder.config_dict, {"kind": "fasttext", "path": "vectors.bin"})
        self.assertEqual(embedder(["the", ""]).shape, (2, 5))
        self.assertTrue(torch.equal(embedder([""])[0], torch.zeros(5)))

    def test_unknown_embedder(self):
        with self.assertRaises(ValueError):
            build_embedder("glove", "vectors.txt")
        with self.assertRaises(ValueError):
            build_embedder("fasttext", None)

    def test_transformer_embedder(self):
        with tempfile.TemporaryDirectory() as tmp:
            model, tokenizer = build_tiny_bert(tmp)
            embedder = TransformerEmbedder(model_name=tmp, model=model, tokenizer=tokenizer)
            embeddings = embedder(["the", "running", "dogs"])

        self.assertEqual(embedder.dimension, 16)
        self.assertEqual(embeddings.shape, (3, 16))
        self.assertFalse(embeddings.requires_grad)
        self.assertEqual(embedder.config_dict, {"kind": "transformer", "path": tmp})


class TestTextMorphoPredictorModel(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.tmp = tempfile.TemporaryDirectory()
        build_tiny_bert(cls.tmp.name)

    @classmethod
    def tearDownClass(cls):
        cls.tmp.cleanup()

    def test_size_mismatch(self):
        with self.assertRaises(ValueError):
            recurrent_model(PropertyRegistry.default(), encoding_size=7)

    def test_recurrent_predictor_requires_tokens_encoder(self):
        predictor = MorphoPredictorModel.with_birnn(PropertyRegistry.default(), token_encoding_size=6, rnn_hidden_size=4)
        with self.assertRaises(ValueError):
            TextMorphoPredictorModel(predictor)

    def test_transformer_predictor_rejects_tokens_encoder(self):
        model, _ = recurrent_model(PropertyRegistry.default())
        predictor = MorphoPredictorModel.from_pretrained(PropertyRegistry.default(), self.tmp.name)
        with self.assertRaises(ValueError):
            TextMorphoPredictorModel(predictor, model.tokens_encoder)

    def test_transformer_text_predictor(self):
        registry = PropertyRegistry.default()
        predictor = MorphoPredictorModel.from_pretrained(registry, self.tmp.name)
        sentence = sentence_from_json(SENTENCES[1], LexiconAnalyzer({}))

        output = TextMorphoPredictor(TextMorphoPredictorModel(predictor)).predict(sentence)

        self.assertEqual(len(output), len(sentence))
        self.assertEqual(set(output[0]), set(registry))


class TestTextMorphoPredictor(unittest.TestCase):

    def setUp(self):
        torch.manual_seed(0)
        self.registry = PropertyRegistry.default()

    def test_prediction_count(self):
        model, sentences = recurrent_model(self.registry)
        predictor = TextMorphoPredictor(model)

        for sentence in sentences:
            output = predictor.predict(sentence)
            self.assertEqual(len(output), len(sentence))
            for predictions in output:
                for name, prediction in predictions.items():
                    self.assertTrue(prediction.value is None or prediction.value in self.registry[name].values)

    def test_backward_reaches_tokens_encoder(self):
        model, sentences = recurrent_model(self.registry)
        predictor = TextMorphoPredictor(model)

        output = predictor.forward(sentences[0])
        errors = {
            name: torch.stack([p[name].distribution for p in output]) for name in self.registry
        }
        predictor.backward(errors)

        self.assertIsNotNone(model.tokens_encoder.merge.weight.grad)
        self.assertIsNotNone(model.tokens_encoder.morpho_projection.weight.grad)
        self.assertIsNotNone(model.predictor.context_encoder.lstm.weight_ih_l0.grad)

    def test_frozen_tokens_encoder(self):
        model, sentences = recurrent_model(self.registry, trainable=False)
        predictor = TextMorphoPredictor(model)

        output = predictor.forward(sentences[0])
        predictor.backward({name: torch.stack([p[name].distribution for p in output]) for name in self.registry})

        self.assertIsNone(model.tokens_encoder.merge.weight.grad)
        self.assertIsNotNone(model.predictor.context_encoder.lstm.weight_ih_l0.grad)


if __name__ == "__main__":
    unittest.main()
