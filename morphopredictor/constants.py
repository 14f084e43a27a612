import os


BASE_DIR = os.path.abspath(os.path.join(__file__, "..", ".."))
DATA_DIR = os.path.join(BASE_DIR, "data")
CHECKPOINTS_DIR = os.path.join(BASE_DIR, "checkpoints")


# Grammatical properties and their ordered values.
# The position of a value is its class index; the extra class len(values)
# stands for "property not applicable".
PROPERTIES = {
    "mood": [
        "indicative",
        "subjunctive",
        "conditional",
        "imperative",
        "infinitive",
        "participle",
        "gerund",
    ],
    "tense": ["present", "past", "future", "imperfect"],
    "gender": ["masculine", "feminine", "neuter", "common"],
    "number": ["singular", "plural", "dual"],
    "person": ["first", "second", "third"],
    "case": [
        "nominative",
        "accusative",
        "genitive",
        "dative",
        "vocative",
        "ablative",
        "locative",
        "instrumental",
    ],
    "degree": ["positive", "comparative", "superlative"],
}

# Short annotations found in tagged corpora, mapped to the values above
PROPERTY_ALIASES = {
    "mood": {
        "ind": "indicative",
        "sub": "subjunctive",
        "subj": "subjunctive",
        "cnd": "conditional",
        "cond": "conditional",
        "imp": "imperative",
        "inf": "infinitive",
        "part": "participle",
        "ger": "gerund",
    },
    "tense": {"pres": "present", "past": "past", "fut": "future", "imperf": "imperfect"},
    "gender": {"m": "masculine", "f": "feminine", "n": "neuter", "c": "common"},
    "number": {"s": "singular", "sg": "singular", "p": "plural", "pl": "plural", "d": "dual"},
    "person": {"1": "first", "2": "second", "3": "third"},
    "case": {
        "nom": "nominative",
        "acc": "accusative",
        "gen": "genitive",
        "dat": "dative",
        "voc": "vocative",
        "abl": "ablative",
        "loc": "locative",
        "ins": "instrumental",
    },
    "degree": {"pos": "positive", "cmp": "comparative", "sup": "superlative"},
}

ENCODER_BERT = "bert"
ENCODER_BIRNN = "birnn"
ENCODER_TYPES = (ENCODER_BERT, ENCODER_BIRNN)

# Key of the analysis readings that is not a grammatical property
READING_LEMMA = "lemma"
