from typing import Dict, Iterable, List, Sequence

import numpy as np

from morphopredictor.analysis import MorphologicalAnalysis, Reading
from morphopredictor.constants import READING_LEMMA


def reading_features(reading: Reading) -> List[str]:
    """
    The features of a candidate reading as "name=value" strings.
    Lemmas are left out: they are too sparse to be useful features.
    """
    return [
        f"{name}={str(value).lower()}"
        for name, value in sorted(reading.items())
        if name != READING_LEMMA
    ]


def collect_features(analyses: Iterable[MorphologicalAnalysis]) -> Dict[str, int]:
    """
    returns a dictionary mapping each feature found in the analyses to its id
    """
    features = set()
    for analysis in analyses:
        for readings in analysis:
            for reading in readings:
                features.update(reading_features(reading))

    return {feature: i for i, feature in enumerate(sorted(features))}


def extract_feature_vector(readings: Sequence[Reading], feature2id: Dict[str, int]) -> np.ndarray:
    """Multi-hot vector of the features of all the candidate readings of a token."""
    vector = np.zeros(len(feature2id), dtype=np.float32)
    idxs = []
    for reading in readings:
        for feature in reading_features(reading):
            if feature in feature2id:
                idxs.append(feature2id[feature])

    vector[idxs] = 1

    return vector


def extract_feature_matrix(analysis: MorphologicalAnalysis, feature2id: Dict[str, int]) -> np.ndarray:
    """(N_tokens, N_features) multi-hot vectors of a sentence"""
    if not analysis:
        return np.zeros((0, len(feature2id)), dtype=np.float32)

    return np.vstack([extract_feature_vector(readings, feature2id) for readings in analysis])
