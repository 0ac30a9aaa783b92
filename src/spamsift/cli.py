"""spamsift command-line interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from . import __version__
from .config import Config, ConfigError, load_config, resolve_config_path
from .logging import configure_logging
from .model import ClassifierModel, ModelNotTrainedError
from .store import Store
from .trainer import Trainer, TrainingResult, read_document, split_tokens

app = typer.Typer(help="Naive Bayes spam filter utilities.")
LOGGER = logging.getLogger(__name__)


class Label(str, Enum):
    SPAM = "spam"
    HAM = "ham"


@dataclass
class CLIState:
    """Stores shared CLI options."""

    config_path: Path | None


@app.callback()
def _spamsift(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Path to config (env SPAMSIFT_CONFIG or ~/.config/spamsift/config.yaml).",
        ),
    ] = None,
) -> None:
    """Capture global CLI options."""

    resolved = config.expanduser() if config else None
    ctx.obj = CLIState(config_path=resolved)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show configuration and model counters."""

    state = _state(ctx)
    config, store = _load_environment(state)
    model = _load_model(config, store)
    stats = model.stats()

    typer.echo("→ spamsift status")
    typer.echo(f"Version: {__version__}")
    typer.echo(f"Config path: {resolve_config_path(state.config_path)[0]}")
    typer.echo(f"Root dir: {config.root_dir}")
    typer.echo(f"Model: {store.model_path(config.model_name)}")
    typer.echo(f"Spam documents: {stats.spam_documents}")
    typer.echo(f"Ham documents: {stats.ham_documents}")
    typer.echo(f"Vocabulary: spam={stats.spam_vocabulary} ham={stats.ham_vocabulary}")
    typer.echo(f"Registered documents: {len(store.trained_documents)}")
    typer.echo(f"Verdict log: {store.verdict_log_path}")


@app.command()
def train(
    ctx: typer.Context,
    files: Annotated[list[Path], typer.Argument(..., help="Plain-text documents to train.")],
    label: Annotated[
        Label,
        typer.Option("-l", "--label", help="Label applied to every document."),
    ],
) -> None:
    """Train the model on individual documents."""

    config, store = _load_environment(_state(ctx))
    model = _load_model(config, store)
    trainer = Trainer(model, registry=store.trained_documents)
    results = [trainer.train_file(path.expanduser(), label.value) for path in files]
    _persist(config, store, model, trainer)
    _report_training(results)
    if any(result.status == "read_error" for result in results):
        raise typer.Exit(1)


@app.command("train-corpus")
def train_corpus(
    ctx: typer.Context,
    corpus: Annotated[
        Path,
        typer.Argument(..., help="Directory containing 'spam' and 'ham' subdirectories."),
    ],
    full: Annotated[
        bool,
        typer.Option("--full", help="Retrain from scratch (clears the document registry)."),
    ] = False,
) -> None:
    """Train on every document of a spam/ham corpus."""

    config, store = _load_environment(_state(ctx))
    corpus_dir = corpus.expanduser()
    if not corpus_dir.is_dir():
        _fail(f"Corpus directory not found: {corpus_dir}")

    model = ClassifierModel() if full else _load_model(config, store)
    trainer = Trainer(model, registry=store.trained_documents, fresh=full)
    results = trainer.train_corpus(corpus_dir)
    _persist(config, store, model, trainer)
    _report_training(results)


@app.command()
def classify(
    ctx: typer.Context,
    message: Annotated[
        Path | None,
        typer.Argument(help="Plain-text document to classify."),
    ] = None,
    text: Annotated[
        str | None,
        typer.Option("-t", "--text", help="Classify this text instead of a file."),
    ] = None,
) -> None:
    """Print the spam verdict for a document."""

    config, store = _load_environment(_state(ctx))
    source, tokens = _document_tokens(message, text)
    model = _load_model(config, store)
    verdict = model.is_spam(tokens)
    store.log_verdict(source, verdict, token_count=len(tokens))
    LOGGER.info(
        "Classified %s as %s (%.4f)",
        source,
        _verdict_word(verdict.is_spam),
        verdict.probability,
    )

    typer.echo(f"Document: {source}")
    typer.echo(f"Verdict: {_verdict_word(verdict.is_spam)}")
    typer.echo(f"Spam probability: {verdict.probability:.4f}")


@app.command()
def explain(
    ctx: typer.Context,
    message: Annotated[
        Path | None,
        typer.Argument(help="Plain-text document to explain."),
    ] = None,
    text: Annotated[
        str | None,
        typer.Option("-t", "--text", help="Explain this text instead of a file."),
    ] = None,
) -> None:
    """Show priors, posteriors and the tokens behind a verdict."""

    config, store = _load_environment(_state(ctx))
    source, tokens = _document_tokens(message, text)
    model = _load_model(config, store)
    try:
        explanation = model.explain(tokens)
    except ModelNotTrainedError as exc:
        _fail(f"Cannot explain: {exc}")

    typer.echo(f"Document: {source}")
    typer.echo(
        f"Verdict: {_verdict_word(explanation.is_spam)} "
        f"(probability {explanation.probability:.4f})"
    )
    typer.echo(f"Priors: spam={explanation.prior_spam:.4f} ham={explanation.prior_ham:.4f}")
    typer.echo(
        f"Posteriors: spam={explanation.posterior_spam:.4f} "
        f"ham={explanation.posterior_ham:.4f}"
    )
    typer.echo(f"Top spam indicators: {_join(explanation.top_spam_indicators)}")
    typer.echo(f"Top ham indicators: {_join(explanation.top_ham_indicators)}")
    typer.echo("Tokens:")
    for detail in explanation.details:
        typer.echo(
            f"  {detail.token}: p(spam)={detail.spam_probability:.4f} "
            f"p(ham)={detail.ham_probability:.4f} llr={detail.contribution:+.4f}"
        )


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise RuntimeError("CLI state missing from context.")
    return state


def _load_environment(state: CLIState) -> tuple[Config, Store]:
    try:
        config = load_config(state.config_path)
        configure_logging(config.logging, config.root_dir)
    except ConfigError as exc:
        _config_failure(exc)
    store = Store(config.root_dir, verdict_log=config.verdict_log)
    return config, store


def _load_model(config: Config, store: Store) -> ClassifierModel:
    try:
        return store.load_model(config.model_name)
    except OSError as exc:
        _fail(f"Failed to load model '{config.model_name}': {exc}")


def _persist(config: Config, store: Store, model: ClassifierModel, trainer: Trainer) -> None:
    try:
        store.save_model(config.model_name, model)
    except OSError as exc:
        _fail(f"Failed to save model '{config.model_name}': {exc}")
    trainer.commit()


def _document_tokens(message: Path | None, text: str | None) -> tuple[str, list[str]]:
    if (message is None) == (text is None):
        _fail("Provide exactly one of a document path or --text.")
    if text is not None:
        return "<text>", split_tokens(text)
    path = message.expanduser()
    if not path.is_file():
        _fail(f"Document not found: {path}")
    try:
        _content, tokens = read_document(path)
    except OSError as exc:
        _fail(f"Failed to read document: {exc}")
    return str(path), tokens


def _report_training(results: list[TrainingResult]) -> None:
    for result in results:
        if result.status == "read_error":
            typer.secho(
                f"Failed to read {result.path}: {result.reason}",
                fg=typer.colors.RED,
                err=True,
            )
    trained = sum(1 for result in results if result.status == "trained")
    skipped = sum(1 for result in results if result.status == "skipped_duplicate")
    typer.echo(
        f"Processed {len(results)} document(s): trained {trained}, "
        f"skipped {skipped} already trained."
    )


def _verdict_word(is_spam: bool) -> str:
    return "spam" if is_spam else "ham"


def _join(indicators) -> str:
    if not indicators:
        return "none"
    return ", ".join(str(indicator) for indicator in indicators)


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def _config_failure(exc: ConfigError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2) from exc


def main() -> None:  # pragma: no cover - delegated to Typer
    app()


__all__ = ["app", "main"]
