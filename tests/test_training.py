"""Tests for the training loop, the evaluation and the checkpoints."""

import os
import tempfile
import unittest

import torch
from helpers import RUN_LINE, SENTENCES, FakeFastText, build_tiny_bert

from morphopredictor.analysis import LexiconAnalyzer
from morphopredictor.dataset import Example, sentence_from_json
from morphopredictor.features import collect_features
from morphopredictor.metrics import MetricCounter, Statistics
from morphopredictor.models.embedders.fasttext import FastTextEmbedder
from morphopredictor.models.predictor.evaluate import evaluate
from morphopredictor.models.predictor.model import MorphoPredictorModel
from morphopredictor.models.predictor.text_predictor import TextMorphoPredictor, TextMorphoPredictorModel
from morphopredictor.models.predictor.tokens_encoder import TokensEncoder
from morphopredictor.models.predictor.trainer import build_optimizer, learn_from_example, train
from morphopredictor.properties import PropertyRegistry
from morphopredictor.utils import (
    compute_class_weights,
    lexicon_path,
    load_checkpoint,
    load_model,
    save_checkpoint,
    save_lexicon,
)

LEXICON = {
    "run": [{"lemma": "run", "pos": "VERB", "tense": "present"}],
    "dogs": [{"lemma": "dog", "pos": "NOUN", "number": "plural"}],
}


def embedder():
    return FastTextEmbedder(fasttext_model=FakeFastText(dim=8))


def examples(lines):
    analyzer = LexiconAnalyzer(LEXICON)
    return [Example(sentence_from_json(obj, analyzer)) for obj in lines]


def recurrent_model(registry, train_examples):
    tokens_encoder = TokensEncoder(
        embedder(),
        collect_features(e.sentence.morpho_analysis for e in train_examples),
        encoding_size=6,
        morpho_size=3,
    )
    predictor = MorphoPredictorModel.with_birnn(
        registry, token_encoding_size=6, rnn_hidden_size=8, dropout=0.0, hidden_size=8
    )
    return TextMorphoPredictorModel(predictor, tokens_encoder)


def snapshot(model):
    return {name: p.detach().clone() for name, p in model.named_parameters()}


def fixed_score(true_pos, false_pos):
    """An evaluation giving the same accuracy whatever the model: 2tp / (2tp + fp)."""

    def evaluate_fn(model, examples, verbose=True):
        stats = Statistics.for_properties(["tense"])
        stats.properties["tense"] = MetricCounter(true_pos=true_pos, false_pos=false_pos)
        return stats

    return evaluate_fn


class TestTraining(unittest.TestCase):

    def setUp(self):
        torch.manual_seed(0)
        self.registry = PropertyRegistry.default()
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def test_one_step_changes_parameters(self):
        train_examples = examples(SENTENCES)
        model = recurrent_model(self.registry, train_examples)
        optimizer = build_optimizer(model, lr=0.01)
        before = snapshot(model)

        optimizer.zero_grad()
        loss = learn_from_example(TextMorphoPredictor(model), train_examples[0], None)
        optimizer.step()

        self.assertGreater(loss, 0.0)
        changed = [name for name, p in model.named_parameters() if not torch.equal(p, before[name])]
        self.assertTrue(any(name.startswith("predictor.heads.") for name in changed))
        self.assertTrue(any(name.startswith("predictor.context_encoder.") for name in changed))
        self.assertTrue(any(name.startswith("tokens_encoder.") for name in changed))

    def test_learns_a_single_example(self):
        train_examples = examples([RUN_LINE])
        model = recurrent_model(self.registry, train_examples)
        optimizer = build_optimizer(model, lr=0.01)
        path = os.path.join(self.tmp.name, "model.pt")

        train(model, train_examples, optimizer, epochs=40, save_path=path, verbose=False)

        model.eval()
        [predictions] = TextMorphoPredictor(model).predict(train_examples[0].sentence)
        self.assertEqual(predictions["tense"].value, "present")
        for name in self.registry:
            if name != "tense":
                self.assertIsNone(predictions[name].value)
        self.assertEqual(evaluate(model, train_examples, verbose=False).accuracy, 1.0)

    def test_train_with_validation_saves_the_best_model(self):
        train_examples = examples(SENTENCES)
        model = recurrent_model(self.registry, train_examples)
        optimizer = build_optimizer(model)
        path = os.path.join(self.tmp.name, "checkpoints", "model.pt")

        best = train(
            model,
            train_examples,
            optimizer,
            epochs=2,
            val_examples=train_examples,
            save_path=path,
            class_weights=compute_class_weights(train_examples, self.registry),
            verbose=False,
        )

        self.assertTrue(os.path.exists(path))
        self.assertGreaterEqual(best, 0.0)
        self.assertLessEqual(best, 1.0)
        self.assertEqual(torch.load(path)["best_metric"], best)

    def test_evaluate(self):
        train_examples = examples(SENTENCES)
        model = recurrent_model(self.registry, train_examples)

        stats = evaluate(model, train_examples, verbose=False)

        self.assertIsInstance(stats, Statistics)
        self.assertEqual(set(stats.properties), set(self.registry))


class TestClassWeights(unittest.TestCase):

    def test_balanced_weights(self):
        registry = PropertyRegistry({"number": ["singular", "plural"], "tense": ["present", "past"]})
        weights = compute_class_weights(examples(SENTENCES), registry)

        # number: plural x2, singular x1, no value x4
        self.assertEqual(weights["number"].shape, (3,))
        self.assertAlmostEqual(weights["number"][0].item(), 7 / 3, places=5)
        self.assertAlmostEqual(weights["number"][1].item(), 7 / 6, places=5)
        self.assertAlmostEqual(weights["number"][2].item(), 7 / 12, places=5)
        # tense: present x1, past x1, no value x5
        self.assertEqual(weights["tense"].shape, (3,))
        self.assertAlmostEqual(weights["tense"][2].item(), 7 / 15, places=5)


class TestCheckpoints(unittest.TestCase):

    def setUp(self):
        torch.manual_seed(0)
        self.registry = PropertyRegistry.default()
        self.tmp = tempfile.TemporaryDirectory()
        self.examples = examples(SENTENCES)

    def tearDown(self):
        self.tmp.cleanup()

    def assertSamePredictions(self, model, loaded):
        model.eval()
        loaded.eval()
        for example in self.examples:
            expected = TextMorphoPredictor(model).predict(example.sentence)
            actual = TextMorphoPredictor(loaded).predict(example.sentence)
            for e, a in zip(expected, actual):
                for name in self.registry:
                    self.assertEqual(e[name].value, a[name].value)
                    self.assertTrue(torch.allclose(e[name].distribution, a[name].distribution, atol=1e-6))

    def test_recurrent_model(self):
        model = recurrent_model(self.registry, self.examples)
        path = os.path.join(self.tmp.name, "model.pt")

        save_checkpoint(path, model, epoch=3)
        loaded = load_model(path, embedder=embedder())

        self.assertEqual(loaded.tokens_encoder.feature2id, model.tokens_encoder.feature2id)
        self.assertSamePredictions(model, loaded)

    def test_predictor_only(self):
        model = recurrent_model(self.registry, self.examples)
        path = os.path.join(self.tmp.name, "predictor.pt")

        save_checkpoint(path, model, whole_model=False)
        self.assertNotIn("tokens_encoder", torch.load(path))

        loaded = load_model(path, tokens_encoder=model.tokens_encoder)
        self.assertSamePredictions(model, loaded)

    def test_transformer_model(self):
        model_dir = os.path.join(self.tmp.name, "bert")
        os.makedirs(model_dir)
        build_tiny_bert(model_dir)
        model = TextMorphoPredictorModel(MorphoPredictorModel.from_pretrained(self.registry, model_dir, hidden_size=8))
        path = os.path.join(self.tmp.name, "model.pt")

        save_checkpoint(path, model)
        loaded = load_model(path)

        self.assertIsNone(loaded.tokens_encoder)
        self.assertSamePredictions(model, loaded)

    def test_resume(self):
        model = recurrent_model(self.registry, self.examples)
        optimizer = build_optimizer(model)
        path = os.path.join(self.tmp.name, "model.pt")
        train(model, self.examples, optimizer, epochs=1, save_path=path, verbose=False)

        torch.manual_seed(1)
        resumed = recurrent_model(self.registry, self.examples)
        start_epoch, best_metric = load_checkpoint(path, resumed, build_optimizer(resumed), "cpu")

        self.assertEqual(start_epoch, 1)
        self.assertIsNone(best_metric)
        self.assertSamePredictions(model, resumed)

    def train_and_resume(self, first_score, second_score):
        path = os.path.join(self.tmp.name, "model.pt")
        model = recurrent_model(self.registry, self.examples)
        train(
            model,
            self.examples,
            build_optimizer(model),
            epochs=1,
            val_examples=self.examples,
            evaluate_fn=first_score,
            save_path=path,
            verbose=False,
        )

        resumed = recurrent_model(self.registry, self.examples)
        optimizer = build_optimizer(resumed)
        start_epoch, best_metric = load_checkpoint(path, resumed, optimizer, "cpu")
        best = train(
            resumed,
            self.examples,
            optimizer,
            epochs=1,
            val_examples=self.examples,
            evaluate_fn=second_score,
            save_path=path,
            start_epoch=start_epoch,
            best_metric=best_metric,
            verbose=False,
        )
        return best, torch.load(path)

    def test_resume_keeps_the_best_model(self):
        best, checkpoint = self.train_and_resume(fixed_score(9, 2), fixed_score(1, 9))

        self.assertAlmostEqual(best, 0.9)
        self.assertAlmostEqual(checkpoint["best_metric"], 0.9)
        self.assertEqual(checkpoint["epoch"], 0)

    def test_resume_saves_a_better_model(self):
        best, checkpoint = self.train_and_resume(fixed_score(1, 9), fixed_score(9, 2))

        self.assertAlmostEqual(best, 0.9)
        self.assertAlmostEqual(checkpoint["best_metric"], 0.9)
        self.assertEqual(checkpoint["epoch"], 1)

    def test_lexicon_saved_in_a_new_directory(self):
        model_path = os.path.join(self.tmp.name, "checkpoints", "model.pt")

        path = save_lexicon(LexiconAnalyzer(LEXICON), model_path)

        self.assertEqual(path, lexicon_path(model_path))
        self.assertEqual(os.path.dirname(path), os.path.dirname(model_path))
        self.assertEqual(len(LexiconAnalyzer.from_file(path)), len(LEXICON))


if __name__ == "__main__":
    unittest.main()
