from typing import Dict

import torch
import torch.nn as nn

from morphopredictor.dataset import Sentence
from morphopredictor.features import extract_feature_matrix
from morphopredictor.models.embedders.bert import TransformerEmbedder
from morphopredictor.models.embedders.fasttext import FastTextEmbedder


class TokensEncoder(nn.Module):
    """
    Encode each token of a sentence on its own, as input of a recurrent predictor.

    The encoding merges a frozen word embedding of the form with a projection
    of the morphological analysis (multi-hot candidate features):

        tanh(W [embedding ; relu(P features)])

    Args:
        embedder: produces the word embeddings (FastText or a frozen transformer)
        feature2id: the features of the analysis readings and their ids
        encoding_size: the size of the output encodings
        morpho_size: the size of the projected analysis features
        trainable: whether the parameters of this encoder are optimized
    """

    def __init__(
        self,
        embedder,
        feature2id: Dict[str, int],
        encoding_size=100,
        morpho_size=50,
        trainable=True,
    ):
        super().__init__()

        self.embedder = embedder
        self.feature2id = dict(feature2id)
        self.encoding_size = encoding_size
        self.trainable = trainable

        self.morpho_projection = nn.Linear(len(self.feature2id), morpho_size)
        self.merge = nn.Linear(embedder.dimension + morpho_size, encoding_size)

        if not trainable:
            for param in self.parameters():
                param.requires_grad_(False)

    def forward(self, sentence: Sentence) -> torch.Tensor:
        """
        Returns:
            (Ts, encoding_size)
        """
        device = self.merge.weight.device

        embeddings = self.embedder(sentence.forms).to(device)  # (Ts, E)
        features = torch.from_numpy(
            extract_feature_matrix(sentence.morpho_analysis, self.feature2id)
        ).to(device)  # (Ts, F)

        morpho = torch.relu(self.morpho_projection(features))  # (Ts, M)

        return torch.tanh(self.merge(torch.cat([embeddings, morpho], dim=-1)))

    @property
    def config_dict(self):
        return {
            "embedder": self.embedder.config_dict,
            "feature2id": self.feature2id,
            "encoding_size": self.encoding_size,
            "morpho_size": self.morpho_projection.out_features,
            "trainable": self.trainable,
        }

    @classmethod
    def from_config(cls, config: dict, embedder=None) -> "TokensEncoder":
        """
        Build a tokens encoder with untrained parameters from a `config_dict`.
        The embedder is loaded from its recorded path unless given.
        """
        if embedder is None:
            embedder = build_embedder(config["embedder"]["kind"], config["embedder"]["path"])

        return cls(
            embedder,
            config["feature2id"],
            encoding_size=config["encoding_size"],
            morpho_size=config["morpho_size"],
            trainable=config["trainable"],
        )


def build_embedder(kind: str, path: str):
    if path is None:
        raise ValueError(f"No path recorded for the {kind} embedder: it must be given explicitly")
    if kind == FastTextEmbedder.kind:
        return FastTextEmbedder(fasttext_path=path)
    if kind == TransformerEmbedder.kind:
        return TransformerEmbedder(model_name=path)

    raise ValueError(f"Unknown embedder '{kind}'")
