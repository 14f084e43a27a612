from typing import Dict, Iterable, List

import torch
from tqdm import tqdm

from morphopredictor.dataset import Example, Sentence
from morphopredictor.metrics import Statistics
from morphopredictor.models.predictor.predictor import Prediction
from morphopredictor.models.predictor.text_predictor import TextMorphoPredictor, TextMorphoPredictorModel
from morphopredictor.properties import PropertyRegistry


def count_predictions(
    stats: Statistics,
    sentence: Sentence,
    output: List[Dict[str, Prediction]],
    registry: PropertyRegistry,
):
    for token, predictions in zip(sentence.tokens, output):
        for name, prediction in predictions.items():
            gold = registry[name].normalize(token.properties.get(name))
            stats.properties[name].count(prediction.value, gold)


def evaluate(model: TextMorphoPredictorModel, examples: Iterable[Example], verbose=True) -> Statistics:
    """
    Predict the properties of the tokens of each example and compare them with
    the gold values.
    """
    predictor = TextMorphoPredictor(model)
    registry = model.registry
    stats = Statistics.for_properties(registry)

    model.eval()
    with torch.no_grad():
        for example in tqdm(examples, disable=not verbose, desc="Evaluating"):
            output = predictor.forward(example.sentence)
            count_predictions(stats, example.sentence, output, registry)

    return stats
