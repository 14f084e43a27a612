import logging
from typing import Callable, Dict, Optional, Sequence

import torch
import torch.nn.functional as F
from torch.utils.data import DataLoader
from tqdm import tqdm

from morphopredictor.dataset import Example, gold_indices
from morphopredictor.metrics import Statistics
from morphopredictor.models.predictor.evaluate import evaluate
from morphopredictor.models.predictor.heads import loss_gradients
from morphopredictor.models.predictor.text_predictor import TextMorphoPredictor, TextMorphoPredictorModel
from morphopredictor.utils import save_checkpoint

logger = logging.getLogger(__name__)


def build_optimizer(model: TextMorphoPredictorModel, lr=0.001, betas=(0.9, 0.999)):
    params = [p for p in model.parameters() if p.requires_grad]
    return torch.optim.RAdam(params, lr=lr, betas=betas)


def collate_example(batch):
    # one example at a time
    return batch[0]


def learn_from_example(
    predictor: TextMorphoPredictor,
    example: Example,
    class_weights: Optional[Dict[str, torch.Tensor]] = None,
) -> float:
    """
    Forward and backward of one example. The gradients are accumulated in the
    parameters, the optimizer step is left to the caller.

    Returns:
        the summed cross-entropy loss of all the tokens and properties
    """
    sentence = example.sentence
    registry = predictor.model.registry

    output = predictor.forward(sentence)
    golds = gold_indices(sentence, registry)
    logits = predictor.predictor.last_logits

    output_errors = {}
    total_loss = 0.0

    for name in registry:
        distributions = torch.stack([predictions[name].distribution for predictions in output])
        device = distributions.device
        gold = torch.tensor([g[name] for g in golds], dtype=torch.long, device=device)
        weights = class_weights[name].to(device) if class_weights is not None else None

        output_errors[name] = loss_gradients(distributions, gold, weights)
        total_loss += F.cross_entropy(logits[name].detach(), gold, weight=weights, reduction="sum").item()

    predictor.backward(output_errors)

    return total_loss


def train(
    model: TextMorphoPredictorModel,
    train_examples: Sequence[Example],
    optimizer: torch.optim.Optimizer,
    epochs: int,
    val_examples: Optional[Sequence[Example]] = None,
    evaluate_fn: Callable[..., Statistics] = evaluate,
    save_path="best_model.pt",
    class_weights: Optional[Dict[str, torch.Tensor]] = None,
    seed=42,
    start_epoch=0,
    best_metric: Optional[float] = None,
    whole_model=True,
    verbose=True,
):
    """
    Train example by example, reshuffling the examples at each epoch.

    After each epoch the model is evaluated on the validation examples and
    saved when its accuracy improves (saved at every epoch without validation).
    When resuming, `best_metric` is the best accuracy of the previous run: the
    model on disk is only replaced by a better one.

    Returns:
        the best validation accuracy, including the one given when resuming
        (None if no model was ever evaluated)
    """
    predictor = TextMorphoPredictor(model)
    generator = torch.Generator().manual_seed(seed + start_epoch)
    loader = DataLoader(
        list(train_examples),
        batch_size=1,
        shuffle=True,
        generator=generator,
        collate_fn=collate_example,
    )

    for epoch in range(start_epoch, start_epoch + epochs):

        model.train()
        total_loss = 0.0

        for example in tqdm(loader, disable=not verbose, desc=f"Epoch {epoch}"):
            optimizer.zero_grad()
            total_loss += learn_from_example(predictor, example, class_weights)
            optimizer.step()

        epoch_loss = total_loss / max(len(loader), 1)

        if val_examples is None:
            if verbose:
                print(f"Epoch {epoch}: train_loss={epoch_loss:.4f}")
            save_checkpoint(save_path, model, optimizer, epoch=epoch, whole_model=whole_model)
            continue

        stats = evaluate_fn(model, val_examples, verbose=verbose)

        if verbose:
            print(f"Epoch {epoch}: train_loss={epoch_loss:.4f}, accuracy={stats.accuracy:.4f}")
            print(stats)

        if best_metric is None or stats.accuracy > best_metric:
            best_metric = stats.accuracy
            save_checkpoint(
                save_path,
                model,
                optimizer,
                epoch=epoch,
                best_metric=best_metric,
                whole_model=whole_model,
            )
            if verbose:
                print(f">> Saved best model at epoch {epoch} with accuracy={best_metric:.4f}")

    if verbose and best_metric is not None:
        print(f"Training complete. Best accuracy: {best_metric:.4f}")

    return best_metric
