import argparse
import logging
import os

from morphopredictor.analysis import LexiconAnalyzer, NullAnalyzer
from morphopredictor.config import BERT_CONFIG, BIRNN_CONFIG, DATA_CONFIG, TOKENS_ENCODER_CONFIG, TRAIN_CONFIG
from morphopredictor.constants import CHECKPOINTS_DIR, DATA_DIR, ENCODER_BERT, ENCODER_BIRNN, ENCODER_TYPES
from morphopredictor.dataset import Dataset
from morphopredictor.features import collect_features
from morphopredictor.models.predictor.model import MorphoPredictorModel
from morphopredictor.models.predictor.text_predictor import TextMorphoPredictorModel
from morphopredictor.models.predictor.tokens_encoder import TokensEncoder, build_embedder
from morphopredictor.models.predictor.trainer import build_optimizer, train
from morphopredictor.properties import PropertyRegistry
from morphopredictor.utils import compute_class_weights, get_device, load_checkpoint, save_lexicon, set_seed


def build_model(args, registry, train_dataset):
    if args.encoder == ENCODER_BERT:
        print(f"Loading transformer '{args.model_name}'...")
        predictor = MorphoPredictorModel.from_pretrained(
            registry,
            args.model_name,
            hidden_size=args.hidden_size,
            fine_tuning=not args.no_fine_tuning,
        )
        return TextMorphoPredictorModel(predictor)

    print(f"Loading {args.embedder} embedder from '{args.embedder_path}'...")
    embedder = build_embedder(args.embedder, args.embedder_path)
    feature2id = collect_features(example.sentence.morpho_analysis for example in train_dataset)
    print(f"Collected {len(feature2id)} morphological features")

    tokens_encoder = TokensEncoder(
        embedder,
        feature2id,
        encoding_size=args.token_encoding_size,
        morpho_size=args.morpho_size,
        trainable=not args.freeze_tokens_encoder,
    )
    predictor = MorphoPredictorModel.with_birnn(
        registry,
        token_encoding_size=args.token_encoding_size,
        rnn_hidden_size=args.rnn_hidden_size,
        num_layers=args.num_layers,
        dropout=args.dropout,
        hidden_size=args.hidden_size or BIRNN_CONFIG["hidden_size"],
    )
    return TextMorphoPredictorModel(predictor, tokens_encoder)


def main(args):
    set_seed(args.seed)
    device = get_device(args.device)
    print(f"Using device: {device}")

    registry = PropertyRegistry.from_file(args.properties) if args.properties else PropertyRegistry.default()

    if args.no_analysis:
        analyzer = NullAnalyzer()
    elif args.lexicon:
        print(f"Loading lexicon from '{args.lexicon}'...")
        analyzer = LexiconAnalyzer.from_file(args.lexicon)
    else:
        print(f"Collecting lexicon from '{args.training_set}'...")
        analyzer = LexiconAnalyzer.collect([args.training_set])
        lexicon_path = save_lexicon(analyzer, args.model_path)
        print(f"Saved lexicon to '{lexicon_path}'")

    print(f"Loading training dataset from '{args.training_set}'...")
    train_dataset = Dataset.from_file(args.training_set, analyzer, separator=args.separator)

    val_dataset = None
    if args.validation_set:
        print(f"Loading validation dataset from '{args.validation_set}'...")
        val_dataset = Dataset.from_file(args.validation_set, analyzer, separator=args.separator)

    print("Initializing model...")
    model = build_model(args, registry, train_dataset).to(device)
    optimizer = build_optimizer(model, lr=args.lr, betas=TRAIN_CONFIG["betas"])

    start_epoch, best_metric = 0, None
    if args.checkpoint:
        start_epoch, best_metric = load_checkpoint(args.checkpoint, model, optimizer, device)

    class_weights = compute_class_weights(train_dataset, registry) if args.class_weights else None

    print()
    print(f"Training examples: {len(train_dataset)}.")
    if val_dataset is not None:
        print(f"Validation examples: {len(val_dataset)}.")

    print("Starting training...")
    train(
        model,
        train_dataset.examples,
        optimizer,
        epochs=args.epochs,
        val_examples=val_dataset.examples if val_dataset is not None else None,
        save_path=args.model_path,
        class_weights=class_weights,
        seed=args.seed,
        start_epoch=start_epoch,
        best_metric=best_metric,
        whole_model=not args.predictor_only,
    )


def build_parser():
    parser = argparse.ArgumentParser(description="Train a morphological properties predictor")

    parser.add_argument(
        "-t", "--training-set", default=os.path.join(DATA_DIR, "train.jsonl"), help="JSONL training dataset"
    )
    parser.add_argument("-v", "--validation-set", default=None, help="JSONL validation dataset")
    parser.add_argument(
        "-m",
        "--model-path",
        default=os.path.join(CHECKPOINTS_DIR, "morphopredictor.pt"),
        help="File in which to save the model",
    )
    parser.add_argument("--encoder", choices=ENCODER_TYPES, default=ENCODER_BERT, help="Context encoder")
    parser.add_argument("--epochs", type=int, default=TRAIN_CONFIG["epochs"], help="Number of epochs")
    parser.add_argument("--lr", type=float, default=TRAIN_CONFIG["learning_rate"], help="Learning rate")
    parser.add_argument("--seed", type=int, default=DATA_CONFIG["seed"], help="Random seed")
    parser.add_argument("--device", type=str, default="cuda", help="Device to use")
    parser.add_argument("--properties", default=None, help="JSON file of the grammatical properties")
    parser.add_argument("--lexicon", default=None, help="JSON lexicon of the morphological analyzer")
    parser.add_argument("--no-analysis", action="store_true", help="Do not analyze the sentences")
    parser.add_argument(
        "--separator",
        default=DATA_CONFIG["component_separator"],
        help="Text between the components of a split token",
    )
    parser.add_argument("--class-weights", action="store_true", help="Balance the classes in the loss")
    parser.add_argument("--predictor-only", action="store_true", help="Do not save the tokens encoder")
    parser.add_argument("--checkpoint", default=None, help="Checkpoint to resume training from")
    parser.add_argument("--hidden-size", type=int, default=BERT_CONFIG["hidden_size"], help="Hidden size of the heads")

    # transformer encoder
    parser.add_argument("--model-name", default=BERT_CONFIG["model_name"], help="Pretrained transformer")
    parser.add_argument("--no-fine-tuning", action="store_true", help="Freeze the transformer")

    # recurrent encoder
    parser.add_argument("--embedder", choices=["fasttext", "transformer"], default="fasttext")
    parser.add_argument("--embedder-path", default=None, help="FastText model file or transformer name")
    parser.add_argument("--token-encoding-size", type=int, default=BIRNN_CONFIG["token_encoding_size"])
    parser.add_argument("--rnn-hidden-size", type=int, default=BIRNN_CONFIG["rnn_hidden_size"])
    parser.add_argument("--num-layers", type=int, default=BIRNN_CONFIG["num_layers"])
    parser.add_argument("--dropout", type=float, default=BIRNN_CONFIG["dropout"])
    parser.add_argument("--morpho-size", type=int, default=TOKENS_ENCODER_CONFIG["morpho_size"])
    parser.add_argument("--freeze-tokens-encoder", action="store_true")

    return parser


if __name__ == "__main__":

    parser = build_parser()
    args = parser.parse_args()

    if args.encoder == ENCODER_BIRNN and args.embedder_path is None:
        parser.error("--embedder-path is required by the birnn encoder")

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    main(args)
