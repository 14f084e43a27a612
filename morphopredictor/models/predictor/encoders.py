import abc
from typing import List, Optional, Sequence

import torch
import torch.nn as nn

from morphopredictor.preprocess import WordPieceTokenizer, aggregate_pieces, split_gradients


class BiRNN(nn.Module):
    """
    Bidirectional LSTM over the encodings of the tokens of a sentence.

    Inputs:
        x: (Ts, E) token encodings
    Outputs:
        (Ts, 2*H) contextual encodings
    """

    def __init__(self, input_size, hidden_size=200, num_layers=1, dropout=0.2):
        super().__init__()

        self.input_size = input_size
        self.hidden_size = hidden_size

        self.lstm = nn.LSTM(
            input_size=input_size,
            hidden_size=hidden_size,
            num_layers=num_layers,
            bidirectional=True,
            batch_first=True,
            dropout=dropout if num_layers > 1 else 0,
        )
        self.dropout = nn.Dropout(dropout)

    @property
    def output_size(self):
        return 2 * self.hidden_size

    def forward(self, x):
        lstm_out, _ = self.lstm(x.unsqueeze(0))  # (1, Ts, 2*H)
        return self.dropout(lstm_out.squeeze(0))


class ContextEncoder(abc.ABC):
    """
    Encode the tokens of a sentence in their context.

    `forward` returns detached vectors: the graph of the computation stays in
    the encoder, and `backward` receives the gradients of its output to
    complete the propagation.
    """

    @abc.abstractmethod
    def forward(self, inputs) -> torch.Tensor:
        pass

    @abc.abstractmethod
    def backward(self, gradients: torch.Tensor) -> Optional[torch.Tensor]:
        """Returns the gradients of the inputs, if they are propagated."""
        pass


class WordPieceEncoder(ContextEncoder):
    """
    Transformer encoder over a sequence of word-pieces: one vector per piece
    (the special tokens of the model are left out).
    """

    def __init__(self, transformer: nn.Module, tokenizer: WordPieceTokenizer, fine_tuning=True):
        self.transformer = transformer
        self.tokenizer = tokenizer
        self.fine_tuning = fine_tuning
        self._output = None

    def forward(self, pieces: Sequence[str]) -> torch.Tensor:
        input_ids, positions = self.tokenizer.encode(pieces)
        device = next(self.transformer.parameters()).device

        with torch.set_grad_enabled(self.fine_tuning and torch.is_grad_enabled()):
            outputs = self.transformer(input_ids=input_ids.to(device))
            self._output = outputs.last_hidden_state[0, positions.to(device)]  # (N_pieces, H)

        return self._output.detach()

    def backward(self, gradients: torch.Tensor) -> None:
        if self.fine_tuning and self._output.requires_grad:
            self._output.backward(gradients)
        self._output = None


class BiRNNEncoder(ContextEncoder):
    """
    Recurrent encoder over one externally produced vector per token.

    Args:
        birnn: the parameters of the encoder
        propagate_to_input: whether `backward` returns the input gradients
    """

    def __init__(self, birnn: BiRNN, propagate_to_input=False):
        self.birnn = birnn
        self.propagate_to_input = propagate_to_input
        self._input = None
        self._output = None

    def forward(self, encodings: torch.Tensor) -> torch.Tensor:
        device = next(self.birnn.parameters()).device

        self._input = encodings.detach().to(device)
        if self.propagate_to_input and torch.is_grad_enabled():
            self._input.requires_grad_()

        self._output = self.birnn(self._input)  # (Ts, 2*H)

        return self._output.detach()

    def backward(self, gradients: torch.Tensor) -> Optional[torch.Tensor]:
        self._output.backward(gradients)
        input_gradients = self._input.grad if self.propagate_to_input else None
        self._input = None
        self._output = None
        return input_gradients


class PieceAggregator(ContextEncoder):
    """
    Make a word-piece encoder work at the granularity of the tokens.

    Forward: the forms are split into pieces and the piece vectors of each token
    are averaged. Backward: the gradient of each token is split into equal
    shares among its pieces.
    """

    def __init__(self, encoder: ContextEncoder, tokenizer: WordPieceTokenizer):
        self.encoder = encoder
        self.tokenizer = tokenizer
        self.last_ranges: List[range] = []

    def forward(self, forms: Sequence[str]) -> torch.Tensor:
        pieces, self.last_ranges = self.tokenizer.tokenize(forms)
        piece_vectors = self.encoder.forward(pieces)

        token_vectors = aggregate_pieces(piece_vectors, self.last_ranges)
        if len(token_vectors) != len(forms):
            raise ValueError(f"Encoded {len(token_vectors)} vectors for {len(forms)} tokens")

        return token_vectors

    def backward(self, gradients: torch.Tensor) -> None:
        self.encoder.backward(split_gradients(gradients, self.last_ranges))
