import logging
from typing import Sequence

import torch
from transformers import AutoModel

from morphopredictor.preprocess import WordPieceTokenizer, aggregate_pieces

logger = logging.getLogger(__name__)


def load_transformer(name_or_path: str):
    """Load a pretrained transformer encoder and its tokenizer."""
    model = AutoModel.from_pretrained(name_or_path)
    tokenizer = WordPieceTokenizer.from_pretrained(name_or_path)
    logger.info(f"Loaded transformer model: {name_or_path}")
    return model, tokenizer


class TransformerEmbedder:
    """
    TransformerEmbedder: frozen contextual embeddings of a pretrained transformer

    Input: forms: list of the token forms of a sentence (Ts,)
    Output: embeddings: FloatTensor of shape (Ts, hidden_size), the average of
            the word-pieces of each token
    """

    kind = "transformer"

    def __init__(self, model_name="bert-base-multilingual-cased", device="cpu", model=None, tokenizer=None):
        self.model_name = model_name
        self.device = device
        if model is None or tokenizer is None:
            model, tokenizer = load_transformer(model_name)
        self.model = model
        self.tokenizer = tokenizer
        self.model.to(device)
        self.model.eval()

    @property
    def dimension(self) -> int:
        return self.model.config.hidden_size

    @property
    def config_dict(self):
        return {"kind": self.kind, "path": self.model_name}

    def __call__(self, forms: Sequence[str]) -> torch.Tensor:
        pieces, ranges = self.tokenizer.tokenize(forms)
        input_ids, positions = self.tokenizer.encode(pieces)

        with torch.no_grad():
            outputs = self.model(input_ids=input_ids.to(self.device))
            last_hidden = outputs.last_hidden_state[0, positions.to(self.device)]  # (N_pieces, H)

        result = aggregate_pieces(last_hidden, ranges)  # (Ts, H)

        if torch.isnan(result).any() or torch.isinf(result).any():
            logger.warning(f"NaN/Inf in embeddings for words: {list(forms)}")
            result = torch.nan_to_num(result, nan=0.0, posinf=0.0, neginf=0.0)

        return result.cpu()
