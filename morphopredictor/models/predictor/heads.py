from functools import reduce
from typing import Optional, Sequence

import torch
import torch.nn as nn


class PropertyHead(nn.Module):
    """
    Classifier of one grammatical property.

    Inputs:
        x: (Ts, E) contextual token encodings
    Outputs:
        logits: (Ts, num_values + 1), the last class being "no value"
    """

    def __init__(self, input_size, hidden_size, output_size):
        super().__init__()
        self.hidden = nn.Linear(input_size, hidden_size)
        self.output = nn.Linear(hidden_size, output_size)

    def forward(self, x):
        return self.output(torch.tanh(self.hidden(x)))


def merge_gradients(gradients: Sequence[torch.Tensor]) -> torch.Tensor:
    """Average the input gradients of the heads into the gradient of the shared encoding."""
    if not gradients:
        raise ValueError("No gradients to merge")

    return reduce(torch.add, gradients) / len(gradients)


def loss_gradients(
    distributions: torch.Tensor,
    gold: torch.Tensor,
    weights: Optional[torch.Tensor] = None,
) -> torch.Tensor:
    """
    Gradients of the softmax cross-entropy with respect to the logits.

    Inputs:
        distributions: (Ts, C) predicted probabilities
        gold: (Ts,) gold class indices
        weights: (C,) optional weights of the classes
    Outputs:
        (Ts, C): distribution - onehot(gold), scaled by the weight of the gold class
    """
    one_hot = torch.nn.functional.one_hot(gold, num_classes=distributions.size(-1))
    errors = distributions - one_hot.to(distributions.dtype)

    if weights is not None:
        errors = errors * weights[gold].unsqueeze(-1)

    return errors
