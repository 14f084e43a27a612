import logging
from typing import List, Sequence, Tuple

import torch
from transformers import AutoTokenizer, PreTrainedTokenizerBase

logger = logging.getLogger(__name__)


class WordPieceTokenizer:
    """
    Split token forms into the sub-word pieces of a pretrained tokenizer,
    keeping track of the pieces that belong to each token.
    """

    def __init__(self, tokenizer: PreTrainedTokenizerBase):
        self.tokenizer = tokenizer

    @classmethod
    def from_pretrained(cls, name_or_path: str) -> "WordPieceTokenizer":
        tokenizer = AutoTokenizer.from_pretrained(name_or_path)
        logger.info(f"Loaded tokenizer: {name_or_path}")
        return cls(tokenizer)

    def save_pretrained(self, path: str):
        self.tokenizer.save_pretrained(path)

    def tokenize(self, forms: Sequence[str]) -> Tuple[List[str], List[range]]:
        """
        Inputs:
        - forms: the forms of the tokens of a sentence

        Outputs:
        - pieces: the word-pieces of all the tokens, in order
        - ranges: for each token, the range of the indices of its pieces

        A form that yields no piece (e.g. only spaces) is given the unknown
        piece, so every range holds at least one piece.
        """
        pieces = []
        ranges = []

        for form in forms:
            token_pieces = self.tokenizer.tokenize(form) or [self.tokenizer.unk_token]
            start = len(pieces)
            pieces.extend(token_pieces)
            ranges.append(range(start, len(pieces)))

        return pieces, ranges

    def encode(self, pieces: Sequence[str]) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Outputs:
        - input_ids: (1, N) the ids of the pieces with the special tokens of the model
        - positions: (len(pieces),) the indices of the given pieces within input_ids
        """
        ids = self.tokenizer.convert_tokens_to_ids(list(pieces))
        prefix = [i for i in (self._start_id(),) if i is not None]
        suffix = [i for i in (self._end_id(),) if i is not None]
        input_ids = prefix + ids + suffix

        max_length = self.tokenizer.model_max_length
        if len(input_ids) > max_length:
            raise ValueError(
                f"Sentence of {len(pieces)} word-pieces exceeds the maximum length of the model ({max_length})"
            )

        return (
            torch.tensor([input_ids], dtype=torch.long),
            torch.arange(len(prefix), len(prefix) + len(ids), dtype=torch.long),
        )

    def _start_id(self):
        if self.tokenizer.cls_token_id is not None:
            return self.tokenizer.cls_token_id
        return self.tokenizer.bos_token_id

    def _end_id(self):
        if self.tokenizer.sep_token_id is not None:
            return self.tokenizer.sep_token_id
        return self.tokenizer.eos_token_id


def aggregate_pieces(vectors: torch.Tensor, ranges: Sequence[range]) -> torch.Tensor:
    """
    Merge the encodings of the word-pieces into one encoding per token.

    Inputs:
    - vectors: (N_pieces, E) encodings of the pieces
    - ranges: the range of pieces of each token

    Output:
    - (N_tokens, E): the vector of a single-piece token as it is, the mean of
      its pieces otherwise
    """
    merged = [
        vectors[r.start] if len(r) == 1 else vectors[r.start : r.stop].mean(dim=0)
        for r in ranges
    ]

    if len(merged) != len(ranges):
        raise ValueError(f"Aggregated {len(merged)} vectors for {len(ranges)} tokens")

    return torch.stack(merged)


def split_gradients(gradients: torch.Tensor, ranges: Sequence[range]) -> torch.Tensor:
    """
    Distribute the gradients of the tokens among their pieces, the inverse of
    `aggregate_pieces` for the backward: each piece gets an equal share.

    Inputs:
    - gradients: (N_tokens, E)
    - ranges: the range of pieces of each token

    Output:
    - (N_pieces, E)
    """
    if len(gradients) != len(ranges):
        raise ValueError(f"Got {len(gradients)} gradients for {len(ranges)} tokens")

    shares = []
    for grad, r in zip(gradients, ranges):
        if len(r) == 1:
            shares.append(grad.unsqueeze(0))
        else:
            shares.append((grad / len(r)).unsqueeze(0).expand(len(r), -1))

    return torch.cat(shares)
