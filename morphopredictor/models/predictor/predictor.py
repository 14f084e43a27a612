from typing import Dict, List, Mapping, NamedTuple, Optional

import torch

from morphopredictor.models.predictor.heads import merge_gradients
from morphopredictor.models.predictor.model import MorphoPredictorModel


class Prediction(NamedTuple):
    """
    The prediction of a grammatical property of a token.

    property: the property name
    value: the best value, None if "no value" wins
    distribution: the probabilities of all the classes
    """

    property: str
    value: Optional[str]
    distribution: torch.Tensor


class MorphoPredictor:
    """
    Predict the grammatical properties of the tokens of a sentence.

    The input is what the context encoder of the model consumes: the token
    forms for a transformer, one encoding per token for a BiRNN.

    Args:
        model: the parameters
        propagate_to_input: whether `backward` returns the gradients of the input
            token encodings (BiRNN only)
    """

    def __init__(self, model: MorphoPredictorModel, propagate_to_input=False):
        self.model = model
        self.encoder = model.build_encoder(propagate_to_input=propagate_to_input)
        self._context = None
        self._logits: Dict[str, torch.Tensor] = {}

    def forward(self, inputs) -> List[Dict[str, Prediction]]:
        """
        Returns:
            one map of property names to predictions per token
        """
        context = self.encoder.forward(inputs)  # (Ts, E)
        if len(context) != len(inputs):
            raise ValueError(f"Encoded {len(context)} vectors for {len(inputs)} tokens")

        if torch.is_grad_enabled():
            context.requires_grad_()
        self._context = context

        outputs: List[Dict[str, Prediction]] = [{} for _ in range(len(context))]

        for name, head in self.model.heads.items():
            logits = head(context)  # (Ts, C)
            self._logits[name] = logits
            distributions = torch.softmax(logits, dim=-1).detach()
            prop = self.model.registry[name]

            for output, distribution in zip(outputs, distributions):
                best = int(distribution.argmax())
                output[name] = Prediction(name, prop.value_at(best), distribution)

        return outputs

    @property
    def last_logits(self) -> Mapping[str, torch.Tensor]:
        return self._logits

    def backward(self, output_errors: Mapping[str, torch.Tensor]) -> Optional[torch.Tensor]:
        """
        Propagate the errors of the last forward.

        The heads are back-propagated one by one, each accumulating the full
        gradients of its own parameters. Their input gradients are averaged into
        a single gradient for the shared context encoder.

        Args:
            output_errors: property name -> (Ts, C) gradients of the loss w.r.t. the logits

        Returns:
            the gradients of the input token encodings, if propagated
        """
        input_gradients = []

        for name, head in self.model.heads.items():
            params = list(head.parameters())
            grads = torch.autograd.grad(
                self._logits[name],
                [self._context] + params,
                grad_outputs=output_errors[name],
            )
            input_gradients.append(grads[0])

            for param, grad in zip(params, grads[1:]):
                param.grad = grad if param.grad is None else param.grad + grad

        self._logits = {}
        context_gradients = merge_gradients(input_gradients)

        return self.encoder.backward(context_gradients)
