import logging
from typing import Optional, Sequence

import fasttext
import numpy as np
import torch

logger = logging.getLogger(__name__)


class FastTextEmbedder:
    """
    FastTextEmbedder: static word vectors of a FastText model

    Input: forms: list of the token forms of a sentence (Ts,)
    Output: embeddings: FloatTensor of shape (Ts, E)
    """

    kind = "fasttext"

    def __init__(self, fasttext_model=None, fasttext_path: Optional[str] = None):
        if fasttext_model is not None:
            self.model = fasttext_model
        elif fasttext_path is not None:
            self.model = fasttext.load_model(fasttext_path)
            logger.info(f"Loaded FastText model from '{fasttext_path}'")
        else:
            raise ValueError("Provide either fasttext_model or fasttext_path")

        self.path = fasttext_path

    @property
    def dimension(self) -> int:
        return self.model.get_dimension()

    @property
    def config_dict(self):
        return {"kind": self.kind, "path": self.path}

    def __call__(self, forms: Sequence[str]) -> torch.Tensor:
        vecs = []
        for w in forms:
            if w == "" or w is None:
                vec = np.zeros(self.dimension, dtype=np.float32)
            else:
                vec = self.model.get_word_vector(w)
            vecs.append(vec)

        if not vecs:
            return torch.zeros((0, self.dimension))

        result = torch.from_numpy(np.vstack(vecs)).float()  # (Ts, E)

        if torch.isnan(result).any() or torch.isinf(result).any():
            logger.warning(f"NaN/Inf in embeddings for words: {list(forms)}")
            result = torch.nan_to_num(result, nan=0.0, posinf=0.0, neginf=0.0)

        return result
