import logging
import os
import random
import time
from typing import Dict, Iterable, Optional

import numpy as np
import torch
from sklearn.utils import compute_class_weight

from morphopredictor.analysis import LexiconAnalyzer
from morphopredictor.dataset import Example
from morphopredictor.models.predictor.model import MorphoPredictorModel
from morphopredictor.models.predictor.text_predictor import TextMorphoPredictorModel
from morphopredictor.models.predictor.tokens_encoder import TokensEncoder
from morphopredictor.properties import PropertyRegistry

logger = logging.getLogger(__name__)


def set_seed(seed: int):
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)


def get_device(device: str) -> torch.device:
    if device == "cuda" and not torch.cuda.is_available():
        return torch.device("cpu")
    return torch.device(device)


def compute_class_weights(
    examples: Iterable[Example], registry: PropertyRegistry
) -> Dict[str, torch.Tensor]:
    """
    Balanced weights of the classes of each property, from the gold values of
    the training examples. Classes never seen keep weight 1.
    """
    all_labels = {name: [] for name in registry}

    for example in examples:
        for token in example.sentence.tokens:
            for name, index in registry.gold_indices(token.properties).items():
                all_labels[name].append(index)

    weights = {}
    for name, labels in all_labels.items():
        full = np.ones(registry[name].output_size)
        if labels:
            classes = np.unique(labels)
            full[classes] = compute_class_weight(class_weight="balanced", classes=classes, y=labels)
        weights[name] = torch.tensor(full, dtype=torch.float)

    return weights


def make_parent_dir(path: str):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def lexicon_path(model_path: str) -> str:
    """The lexicon collected for a model is saved next to it."""
    return f"{model_path}.lexicon.json"


def save_lexicon(analyzer: LexiconAnalyzer, model_path: str) -> str:
    path = lexicon_path(model_path)
    make_parent_dir(path)
    analyzer.save(path)
    return path


def save_checkpoint(
    path: str,
    model: TextMorphoPredictorModel,
    optimizer: Optional[torch.optim.Optimizer] = None,
    epoch: Optional[int] = None,
    best_metric: Optional[float] = None,
    whole_model: bool = True,
):
    """
    Save the predictor parameters, and those of the tokens encoder if
    `whole_model` is set.
    """
    checkpoint = {
        "config": model.predictor.config_dict,
        "model_state": model.predictor.state_dict(),
        "epoch": epoch,
        "best_metric": best_metric,
    }

    if whole_model and model.tokens_encoder is not None:
        checkpoint["tokens_encoder"] = {
            "config": model.tokens_encoder.config_dict,
            "state": model.tokens_encoder.state_dict(),
        }

    if optimizer is not None:
        checkpoint["optimizer_state"] = optimizer.state_dict()

    make_parent_dir(path)
    torch.save(checkpoint, path)
    logger.info(f"Saved model to '{path}'")


def load_model(
    path: str,
    device="cpu",
    embedder=None,
    tokens_encoder: Optional[TokensEncoder] = None,
) -> TextMorphoPredictorModel:
    """
    Load a model saved with `save_checkpoint`.

    Args:
        embedder: the word embedder of the tokens encoder, if it cannot be
            loaded from the path recorded in the checkpoint
        tokens_encoder: the tokens encoder to use when the checkpoint holds the
            predictor only
    """
    ckpt = torch.load(path, map_location=torch.device(device))

    predictor = MorphoPredictorModel.from_config(ckpt["config"])
    predictor.load_state_dict(ckpt["model_state"])

    if "tokens_encoder" in ckpt:
        tokens_encoder = TokensEncoder.from_config(ckpt["tokens_encoder"]["config"], embedder=embedder)
        tokens_encoder.load_state_dict(ckpt["tokens_encoder"]["state"])

    model = TextMorphoPredictorModel(predictor, tokens_encoder)
    model.to(device)

    logger.info(f"Loaded model from '{path}'")
    return model


def load_checkpoint(checkpoint, model, optimizer, device):
    """
    Restore the parameters of a model and its optimizer to resume training.

    Returns:
        the epoch to start from and the best validation accuracy reached so far
        (None if unknown)
    """
    ckpt = torch.load(checkpoint, map_location=torch.device(device))

    model.predictor.load_state_dict(ckpt["model_state"])
    if model.tokens_encoder is not None and "tokens_encoder" in ckpt:
        model.tokens_encoder.load_state_dict(ckpt["tokens_encoder"]["state"])
    if "optimizer_state" in ckpt:
        optimizer.load_state_dict(ckpt["optimizer_state"])

    epoch = ckpt.get("epoch")
    start_epoch = 0 if epoch is None else epoch + 1
    best_metric = ckpt.get("best_metric")

    print(f"Loaded checkpoint from '{checkpoint}'")
    print(f"Resuming from epoch {start_epoch}")
    if best_metric is not None:
        print(f"Previous best metric: {best_metric:.4f}")

    return start_epoch, best_metric


class Timer:
    def __init__(self):
        self.start = time.perf_counter()

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.start

    def format_elapsed(self) -> str:
        minutes, seconds = divmod(self.elapsed, 60)
        hours, minutes = divmod(int(minutes), 60)
        return f"{hours}h {minutes:02d}m {seconds:04.1f}s"
