import json
import logging
from typing import Dict, Iterable, List, Protocol, Sequence

logger = logging.getLogger(__name__)

# A candidate reading of a token, e.g. {"lemma": "run", "pos": "VERB", "tense": "present"}
Reading = Dict[str, str]

# The candidate readings of each token of a sentence
MorphologicalAnalysis = List[List[Reading]]


class MorphologicalAnalyzer(Protocol):
    """Anything able to list the admissible readings of the tokens of a sentence."""

    def analyze(self, forms: Sequence[str]) -> MorphologicalAnalysis: ...


class NullAnalyzer:
    """An analyzer that knows nothing: every token gets no candidate."""

    def analyze(self, forms: Sequence[str]) -> MorphologicalAnalysis:
        return [[] for _ in forms]


class LexiconAnalyzer:
    """
    Look up the readings of each token form in a lexicon.
    Forms are matched case-insensitively.
    """

    def __init__(self, lexicon: Dict[str, List[Reading]]):
        self.lexicon = {form.lower(): readings for form, readings in lexicon.items()}

    def __len__(self):
        return len(self.lexicon)

    def analyze(self, forms: Sequence[str]) -> MorphologicalAnalysis:
        return [list(self.lexicon.get(form.lower(), [])) for form in forms]

    @classmethod
    def from_file(cls, path: str) -> "LexiconAnalyzer":
        """Load a JSON object mapping forms to lists of readings."""
        with open(path, "r", encoding="utf-8") as f:
            lexicon = json.load(f)

        logger.info(f"Loaded lexicon of {len(lexicon)} forms from '{path}'")
        return cls(lexicon)

    @classmethod
    def collect(cls, paths: Iterable[str]) -> "LexiconAnalyzer":
        """
        Build a lexicon from the candidate morphologies of JSONL datasets.
        Every component of every candidate becomes a reading of the token form.
        """
        lexicon: Dict[str, List[Reading]] = {}

        for path in paths:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    for token in json.loads(line).get("tokens", []):
                        readings = lexicon.setdefault(token["form"].lower(), [])
                        for reading in _token_readings(token):
                            if reading not in readings:
                                readings.append(reading)

        logger.info(f"Collected lexicon of {len(lexicon)} forms")
        return cls(lexicon)

    def save(self, path: str):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.lexicon, f, ensure_ascii=False, indent=1)


def _token_readings(token: dict) -> List[Reading]:
    readings = []
    for morphology in token.get("morphologies", []):
        for component in morphology.get("components", []):
            reading = {k: str(v) for k, v in component.get("properties", {}).items()}
            for key in ("lemma", "pos"):
                if key in component:
                    reading[key] = str(component[key])
            readings.append(reading)
    return readings
