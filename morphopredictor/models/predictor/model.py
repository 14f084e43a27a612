import logging
from typing import Optional

import torch.nn as nn
from transformers import AutoConfig, AutoModel

from morphopredictor.constants import ENCODER_BERT, ENCODER_BIRNN, ENCODER_TYPES
from morphopredictor.models.embedders.bert import load_transformer
from morphopredictor.models.predictor.encoders import (
    BiRNN,
    BiRNNEncoder,
    ContextEncoder,
    PieceAggregator,
    WordPieceEncoder,
)
from morphopredictor.models.predictor.heads import PropertyHead
from morphopredictor.preprocess import WordPieceTokenizer
from morphopredictor.properties import PropertyRegistry

logger = logging.getLogger(__name__)


class MorphoPredictorModel(nn.Module):
    """
    The parameters of a morphological predictor: a context encoder shared by
    one output network per grammatical property.

    Two kinds of context encoder are supported:
    - "bert": a transformer over the word-pieces of the token forms
    - "birnn": a bidirectional LSTM over token encodings produced elsewhere

    Args:
        registry: the grammatical properties to predict
        encoder_type: "bert" or "birnn"
        context_encoder: the transformer or the BiRNN
        tokenizer: the word-piece tokenizer (required by "bert")
        hidden_size: the hidden size of the output networks (default: the encoding size)
        fine_tuning: whether the transformer is trained together with the heads
        model_name: the name or path of the pretrained transformer
    """

    def __init__(
        self,
        registry: PropertyRegistry,
        encoder_type: str,
        context_encoder: nn.Module,
        tokenizer: Optional[WordPieceTokenizer] = None,
        hidden_size: Optional[int] = None,
        fine_tuning: bool = True,
        model_name: Optional[str] = None,
    ):
        super().__init__()

        if encoder_type not in ENCODER_TYPES:
            raise ValueError(f"Unknown encoder type '{encoder_type}', expected one of {ENCODER_TYPES}")
        if encoder_type == ENCODER_BERT and tokenizer is None:
            raise ValueError("A word-piece tokenizer is required by a transformer encoder")

        self.registry = registry
        self.encoder_type = encoder_type
        self.context_encoder = context_encoder
        self.tokenizer = tokenizer
        self.fine_tuning = fine_tuning
        self.model_name = model_name

        if encoder_type == ENCODER_BERT and not fine_tuning:
            for param in context_encoder.parameters():
                param.requires_grad_(False)

        self.hidden_size = hidden_size or self.encoding_size
        self.heads = nn.ModuleDict(
            {
                name: PropertyHead(self.encoding_size, self.hidden_size, prop.output_size)
                for name, prop in registry.items()
            }
        )

    @classmethod
    def from_pretrained(
        cls,
        registry: PropertyRegistry,
        model_name: str,
        hidden_size: Optional[int] = None,
        fine_tuning: bool = True,
    ) -> "MorphoPredictorModel":
        transformer, tokenizer = load_transformer(model_name)
        return cls(
            registry,
            ENCODER_BERT,
            transformer,
            tokenizer=tokenizer,
            hidden_size=hidden_size,
            fine_tuning=fine_tuning,
            model_name=model_name,
        )

    @classmethod
    def with_birnn(
        cls,
        registry: PropertyRegistry,
        token_encoding_size: int,
        rnn_hidden_size: int = 200,
        num_layers: int = 1,
        dropout: float = 0.2,
        hidden_size: Optional[int] = 200,
    ) -> "MorphoPredictorModel":
        birnn = BiRNN(
            input_size=token_encoding_size,
            hidden_size=rnn_hidden_size,
            num_layers=num_layers,
            dropout=dropout,
        )
        return cls(registry, ENCODER_BIRNN, birnn, hidden_size=hidden_size)

    @property
    def encoding_size(self) -> int:
        """The size of the contextual encodings given to the heads."""
        if self.encoder_type == ENCODER_BERT:
            return self.context_encoder.config.hidden_size
        return self.context_encoder.output_size

    @property
    def token_encoding_size(self) -> Optional[int]:
        """The size of the token encodings expected in input (None for a transformer)."""
        if self.encoder_type == ENCODER_BIRNN:
            return self.context_encoder.input_size
        return None

    def build_encoder(self, propagate_to_input=False) -> ContextEncoder:
        """A context encoder processor working at the granularity of the tokens."""
        if self.encoder_type == ENCODER_BERT:
            encoder = WordPieceEncoder(self.context_encoder, self.tokenizer, fine_tuning=self.fine_tuning)
            return PieceAggregator(encoder, self.tokenizer)

        return BiRNNEncoder(self.context_encoder, propagate_to_input=propagate_to_input)

    @property
    def config_dict(self):
        config = {
            "registry": self.registry.to_dict(),
            "encoder_type": self.encoder_type,
            "hidden_size": self.hidden_size,
        }
        if self.encoder_type == ENCODER_BERT:
            config.update(
                {
                    "model_name": self.model_name,
                    "fine_tuning": self.fine_tuning,
                    "transformer_config": self.context_encoder.config.to_dict(),
                }
            )
        else:
            lstm = self.context_encoder.lstm
            config.update(
                {
                    "token_encoding_size": self.context_encoder.input_size,
                    "rnn_hidden_size": self.context_encoder.hidden_size,
                    "num_layers": lstm.num_layers,
                    "dropout": self.context_encoder.dropout.p,
                }
            )
        return config

    @classmethod
    def from_config(cls, config: dict) -> "MorphoPredictorModel":
        """Build a model with untrained parameters from a `config_dict`."""
        registry = PropertyRegistry.from_dict(config["registry"])

        if config["encoder_type"] == ENCODER_BIRNN:
            return cls.with_birnn(
                registry,
                token_encoding_size=config["token_encoding_size"],
                rnn_hidden_size=config["rnn_hidden_size"],
                num_layers=config["num_layers"],
                dropout=config["dropout"],
                hidden_size=config["hidden_size"],
            )

        transformer = AutoModel.from_config(AutoConfig.for_model(**config["transformer_config"]))
        tokenizer = WordPieceTokenizer.from_pretrained(config["model_name"])
        return cls(
            registry,
            ENCODER_BERT,
            transformer,
            tokenizer=tokenizer,
            hidden_size=config["hidden_size"],
            fine_tuning=config["fine_tuning"],
            model_name=config["model_name"],
        )
