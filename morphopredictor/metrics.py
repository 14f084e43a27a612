from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional


@dataclass
class MetricCounter:
    """
    Binary confusion counts of one grammatical property.
    Scores are 1.0 when there is nothing that could lower them.
    """

    true_pos: int = 0
    false_pos: int = 0
    false_neg: int = 0

    def count(self, predicted: Optional[str], gold: Optional[str]):
        """
        Count a prediction against the gold value:
        - right specific value          -> true positive
        - specific value, gold differs  -> false positive
        - gold present, not predicted   -> false negative
        Both values missing counts nothing.
        """
        if predicted is not None and predicted == gold:
            self.true_pos += 1
            return

        if predicted is not None:
            self.false_pos += 1
        if gold is not None:
            self.false_neg += 1

    @property
    def precision(self) -> float:
        predicted = self.true_pos + self.false_pos
        return self.true_pos / predicted if predicted else 1.0

    @property
    def recall(self) -> float:
        expected = self.true_pos + self.false_neg
        return self.true_pos / expected if expected else 1.0

    @property
    def f1_score(self) -> float:
        denominator = 2 * self.true_pos + self.false_pos + self.false_neg
        return 2 * self.true_pos / denominator if denominator else 1.0

    def reset(self):
        self.true_pos = 0
        self.false_pos = 0
        self.false_neg = 0

    def __str__(self):
        return (
            f"precision {100 * self.precision:6.2f} % | "
            f"recall {100 * self.recall:6.2f} % | "
            f"f1 score {100 * self.f1_score:6.2f} %"
        )


@dataclass
class Statistics:
    """Evaluation statistics: one counter per grammatical property."""

    properties: Dict[str, MetricCounter] = field(default_factory=dict)

    @classmethod
    def for_properties(cls, names: Iterable[str]) -> "Statistics":
        return cls({name: MetricCounter() for name in names})

    @property
    def accuracy(self) -> float:
        """The mean of the F1 scores of the properties."""
        if not self.properties:
            return 0.0
        return sum(m.f1_score for m in self.properties.values()) / len(self.properties)

    def reset(self):
        for metric in self.properties.values():
            metric.reset()

    def __str__(self):
        width = max((len(name) for name in self.properties), default=0) + 2  # include quotes
        lines = [
            f"- Overall accuracy: {100 * self.accuracy:.2f}%",
            "- Properties accuracy:",
        ]
        for name, metric in self.properties.items():
            lines.append(f"  {'`' + name + '`':<{width}} : {metric}")

        return "\n".join(lines)
