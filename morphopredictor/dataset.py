import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from morphopredictor.analysis import MorphologicalAnalysis, MorphologicalAnalyzer

logger = logging.getLogger(__name__)


class InvalidExample(Exception):
    """
    Raised when a line of a dataset file cannot be read as an example.

    Args:
        index: the index of the line (from 0)
        path: the file containing the line
    """

    def __init__(self, index: int, path: Optional[str] = None, reason: str = ""):
        self.index = index
        self.path = path
        self.reason = reason
        message = f"Example #{index}"
        if path is not None:
            message += f" of '{path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


@dataclass(frozen=True)
class Position:
    index: int
    start: int
    end: int  # inclusive


@dataclass(frozen=True)
class Token:
    """
    A token of a sentence.

    form: the surface form
    position: the position of the token in the sentence text
    lemma: the gold lemma
    properties: the gold grammatical values, associated by property name
    """

    form: str
    position: Position
    lemma: Optional[str] = None
    properties: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Sentence:
    tokens: Tuple[Token, ...]
    position: Position
    morpho_analysis: MorphologicalAnalysis

    @property
    def forms(self) -> List[str]:
        return [token.form for token in self.tokens]

    def __len__(self):
        return len(self.tokens)


@dataclass(frozen=True)
class Example:
    sentence: Sentence


def _best_morphology(token: dict) -> dict:
    morphologies = token["morphologies"]
    if len(morphologies) == 1:
        return morphologies[0]

    for morphology in morphologies:
        if "best" in morphology:
            return morphology

    raise ValueError(f"No best morphology for token '{token.get('form')}'")


def tokens_from_json(obj: dict, index: int, start_char: int, separator: str = " ") -> List[Token]:
    """
    Build the tokens of one JSON token object.

    A token whose best morphology has several components (e.g. a contraction)
    is split into one token per component, whose form is the component lemma.
    The components are assumed to be separated by `separator` in the text.

    Args:
        obj: the JSON object of the token
        index: the index of the token within the sentence
        start_char: the position of the first char of the token in the text
        separator: the text placed between consecutive forms

    Returns:
        the list of tokens built
    """
    components = _best_morphology(obj)["components"]
    if not components:
        raise ValueError(f"Token #{index} has no components")

    tokens = []
    start = start_char

    for component in components:
        form = obj["form"] if len(components) == 1 else component["lemma"]
        end = start + len(form) - 1

        tokens.append(
            Token(
                form=form,
                position=Position(index=index, start=start, end=end),
                lemma=component["lemma"],
                properties={
                    name: str(value) for name, value in component.get("properties", {}).items()
                },
            )
        )
        start = end + 1 + len(separator)

    return tokens


def sentence_from_json(
    obj: dict, analyzer: MorphologicalAnalyzer, separator: str = " "
) -> Sentence:
    start_char = 0
    tokens: List[Token] = []

    for i, token_obj in enumerate(obj["tokens"]):
        built = tokens_from_json(token_obj, index=i, start_char=start_char, separator=separator)
        tokens.extend(built)
        start_char = built[-1].position.end + 1 + len(separator)

    if not tokens:
        raise ValueError("The sentence has no tokens")

    forms = [token.form for token in tokens]
    analysis = analyzer.analyze(forms)
    if len(analysis) != len(tokens):
        raise ValueError(
            f"The analyzer returned {len(analysis)} analyses for {len(tokens)} tokens"
        )

    return Sentence(
        tokens=tuple(tokens),
        position=Position(index=0, start=0, end=tokens[-1].position.end),
        morpho_analysis=analysis,
    )


TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")


def sentence_from_text(text: str, analyzer: MorphologicalAnalyzer) -> Sentence:
    """Split a raw text into word and punctuation tokens and analyze them."""
    tokens = tuple(
        Token(form=m.group(), position=Position(index=i, start=m.start(), end=m.end() - 1))
        for i, m in enumerate(TOKEN_PATTERN.finditer(text))
    )
    if not tokens:
        raise ValueError("The text has no tokens")

    return Sentence(
        tokens=tokens,
        position=Position(index=0, start=0, end=tokens[-1].position.end),
        morpho_analysis=analyzer.analyze([token.form for token in tokens]),
    )


@dataclass(frozen=True)
class Dataset:
    """A dataset of examples read from a JSONL file."""

    examples: Tuple[Example, ...]

    def __len__(self):
        return len(self.examples)

    def __iter__(self):
        return iter(self.examples)

    @classmethod
    def from_file(
        cls, path: str, analyzer: MorphologicalAnalyzer, separator: str = " "
    ) -> "Dataset":
        """
        Load a dataset from a JSONL file whose lines have the form:

            {
              "text": "...",
              "tokens": [
                {
                  "form": "...",
                  "morphologies": [
                    {
                      "best": true,            # required if more than one morphology
                      "components": [
                        {
                          "lemma": "...",
                          "pos": "...",
                          "properties": {"tense": "...", ...}   # each one optional
                        }
                      ]
                    }
                  ]
                }
              ]
            }

        Empty lines are skipped but counted in the example index.

        Raises:
            InvalidExample: at the first line that is not a valid example
        """
        examples = []

        with open(path, "r", encoding="utf-8") as f:
            for index, line in enumerate(f):
                if not line.strip():
                    continue
                try:
                    sentence = sentence_from_json(json.loads(line), analyzer, separator)
                except (ValueError, KeyError, TypeError, IndexError, AttributeError) as e:
                    raise InvalidExample(index, path, str(e)) from e

                examples.append(Example(sentence))

        logger.info(f"Loaded {len(examples)} examples from '{path}'")
        return cls(tuple(examples))


def gold_indices(sentence: Sentence, registry) -> List[Dict[str, int]]:
    """The gold class of each property, one map per token."""
    return [registry.gold_indices(token.properties) for token in sentence.tokens]
