"""
Default hyperparameters of the morphological predictor.
Every value can be overridden from the command line of the main scripts.
"""

# ======================================================
# Data
# ======================================================

DATA_CONFIG = {
    "component_separator": " ",  # text between the forms of a split token
    "seed": 42,
}

# ======================================================
# Transformer (word-piece) predictor
# ======================================================

BERT_CONFIG = {
    "model_name": "bert-base-multilingual-cased",
    "hidden_size": None,  # None: same as the transformer hidden size
    "fine_tuning": True,
}

# ======================================================
# Recurrent (token-level) predictor
# ======================================================

BIRNN_CONFIG = {
    "token_encoding_size": 100,
    "rnn_hidden_size": 200,
    "num_layers": 1,
    "dropout": 0.2,
    "hidden_size": 200,
}

TOKENS_ENCODER_CONFIG = {
    "morpho_size": 50,  # projection of the analysis features
    "trainable": True,
}

# ======================================================
# Training
# ======================================================

TRAIN_CONFIG = {
    "epochs": 10,
    "learning_rate": 0.001,
    "betas": (0.9, 0.999),
    "class_weights": False,
    "save_whole_model": True,
}
