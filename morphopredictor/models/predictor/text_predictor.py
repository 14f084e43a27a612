import logging
from typing import Dict, List, Mapping, Optional

import torch
import torch.nn as nn

from morphopredictor.constants import ENCODER_BERT, ENCODER_BIRNN
from morphopredictor.dataset import Sentence
from morphopredictor.models.predictor.model import MorphoPredictorModel
from morphopredictor.models.predictor.predictor import MorphoPredictor, Prediction
from morphopredictor.models.predictor.tokens_encoder import TokensEncoder

logger = logging.getLogger(__name__)


class TextMorphoPredictorModel(nn.Module):
    """
    A morphological predictor together with what encodes its input.

    A transformer predictor reads the token forms by itself and takes no tokens
    encoder. A recurrent predictor needs a tokens encoder whose encoding size
    matches its input size.

    Raises:
        ValueError: if the tokens encoder is missing, unexpected or of the wrong size
    """

    def __init__(self, predictor: MorphoPredictorModel, tokens_encoder: Optional[TokensEncoder] = None):
        super().__init__()

        if predictor.encoder_type == ENCODER_BERT and tokens_encoder is not None:
            raise ValueError("A transformer predictor encodes the tokens by itself: no tokens encoder expected")

        if predictor.encoder_type == ENCODER_BIRNN:
            if tokens_encoder is None:
                raise ValueError("A recurrent predictor requires a tokens encoder")
            if tokens_encoder.encoding_size != predictor.token_encoding_size:
                raise ValueError(
                    f"The tokens encoding size of the tokens encoder ({tokens_encoder.encoding_size}) "
                    f"must be compatible with the predictor ({predictor.token_encoding_size})"
                )

        self.predictor = predictor
        self.tokens_encoder = tokens_encoder

    @property
    def registry(self):
        return self.predictor.registry


class TextMorphoPredictor:
    """
    Predict the morphological properties of the tokens of a sentence.

    Args:
        model: the text morphological predictor model
    """

    def __init__(self, model: TextMorphoPredictorModel):
        self.model = model
        tokens_encoder = model.tokens_encoder
        self.predictor = MorphoPredictor(
            model.predictor,
            propagate_to_input=tokens_encoder is not None and tokens_encoder.trainable,
        )
        self._encodings = None

    def forward(self, sentence: Sentence) -> List[Dict[str, Prediction]]:
        """
        Returns:
            the predictions, one map of property names to predictions per token
        """
        if self.model.tokens_encoder is None:
            inputs = sentence.forms
        else:
            self._encodings = self.model.tokens_encoder(sentence)  # (Ts, E)
            inputs = self._encodings

        output = self.predictor.forward(inputs)
        if len(output) != len(sentence.tokens):
            raise ValueError(f"Predicted {len(output)} tokens of {len(sentence.tokens)}")

        return output

    def predict(self, sentence: Sentence) -> List[Dict[str, Prediction]]:
        with torch.no_grad():
            return self.forward(sentence)

    def backward(self, output_errors: Mapping[str, torch.Tensor]):
        """
        Args:
            output_errors: property name -> (Ts, C) gradients of the loss w.r.t. the logits
        """
        input_gradients = self.predictor.backward(output_errors)

        if input_gradients is not None and self._encodings is not None and self._encodings.requires_grad:
            self._encodings.backward(input_gradients.to(self._encodings.device))

        self._encodings = None
