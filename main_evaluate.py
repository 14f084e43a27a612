import argparse
import logging
import os

from morphopredictor.analysis import LexiconAnalyzer, NullAnalyzer
from morphopredictor.config import DATA_CONFIG
from morphopredictor.constants import CHECKPOINTS_DIR, DATA_DIR
from morphopredictor.dataset import Dataset
from morphopredictor.models.predictor.evaluate import evaluate
from morphopredictor.models.predictor.tokens_encoder import build_embedder
from morphopredictor.utils import Timer, get_device, load_model


def main(args):
    device = get_device(args.device)

    analyzer = NullAnalyzer()
    if args.lexicon:
        print(f"Loading lexicon from '{args.lexicon}'...")
        analyzer = LexiconAnalyzer.from_file(args.lexicon)

    print(f"Loading validation dataset from '{args.validation_set}'...")
    dataset = Dataset.from_file(args.validation_set, analyzer, separator=args.separator)

    embedder = build_embedder(args.embedder, args.embedder_path) if args.embedder_path else None

    print(f"Loading morphological predictor model from '{args.model_path}'...")
    model = load_model(args.model_path, device=device, embedder=embedder)

    print(f"\nStart validation on {len(dataset)} examples")

    timer = Timer()
    stats = evaluate(model, dataset.examples)

    print(f"Elapsed time: {timer.format_elapsed()}")
    print()
    print(f"Statistics\n{stats}")


if __name__ == "__main__":

    parser = argparse.ArgumentParser(description="Evaluate a morphological properties predictor")

    parser.add_argument(
        "-m", "--model-path", default=os.path.join(CHECKPOINTS_DIR, "morphopredictor.pt"), help="The serialized model"
    )
    parser.add_argument(
        "-v", "--validation-set", default=os.path.join(DATA_DIR, "val.jsonl"), help="JSONL validation dataset"
    )
    parser.add_argument("--lexicon", default=None, help="JSON lexicon of the morphological analyzer")
    parser.add_argument("--separator", default=DATA_CONFIG["component_separator"])
    parser.add_argument("--device", type=str, default="cuda", help="Device to use")
    parser.add_argument("--embedder", choices=["fasttext", "transformer"], default="fasttext")
    parser.add_argument(
        "--embedder-path",
        default=None,
        help="Word embedder of the tokens encoder, if not the one recorded in the model",
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    main(args)
