import argparse
import logging
import os

from morphopredictor.analysis import LexiconAnalyzer, NullAnalyzer
from morphopredictor.constants import CHECKPOINTS_DIR
from morphopredictor.dataset import sentence_from_text
from morphopredictor.models.predictor.text_predictor import TextMorphoPredictor
from morphopredictor.models.predictor.tokens_encoder import build_embedder
from morphopredictor.utils import get_device, load_model


def print_results(sentence, output):
    for token, predictions in zip(sentence.tokens, output):
        values = [p.value for p in predictions.values() if p.value is not None]
        print(f"{token.form}: {' '.join(values)}")


def main(args):
    device = get_device(args.device)

    analyzer = NullAnalyzer()
    if args.lexicon:
        print(f"Loading lexicon from '{args.lexicon}'...")
        analyzer = LexiconAnalyzer.from_file(args.lexicon)

    embedder = build_embedder(args.embedder, args.embedder_path) if args.embedder_path else None

    print(f"Loading morphological predictor model from '{args.model_path}'...")
    model = load_model(args.model_path, device=device, embedder=embedder)
    model.eval()
    predictor = TextMorphoPredictor(model)

    while True:
        text = input("\nPredict the tokens morphologies from a text (empty to exit): ").strip()
        if not text:
            break

        sentence = sentence_from_text(text, analyzer)
        output = predictor.predict(sentence)

        print()
        print_results(sentence, output)

    print("\nExiting...")


if __name__ == "__main__":

    parser = argparse.ArgumentParser(description="Predict the morphological properties of tokens")

    parser.add_argument(
        "-m", "--model-path", default=os.path.join(CHECKPOINTS_DIR, "morphopredictor.pt"), help="The serialized model"
    )
    parser.add_argument("--lexicon", default=None, help="JSON lexicon of the morphological analyzer")
    parser.add_argument("--device", type=str, default="cpu", help="Device to use")
    parser.add_argument("--embedder", choices=["fasttext", "transformer"], default="fasttext")
    parser.add_argument(
        "--embedder-path",
        default=None,
        help="Word embedder of the tokens encoder, if not the one recorded in the model",
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING)

    main(args)
