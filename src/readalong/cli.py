"""Command-line interface using Click."""

import json
import sys
from pathlib import Path
from typing import List, Optional

import click

from . import __version__
from .config import FALLBACK_POLICIES, AlignmentSettings
from .exceptions import ReadAlongError
from .core.clock import SimulatedClock
from .core.models import TimedWord
from .core.scheduler import ManualScheduler
from .core.serialization import (
    HighlightEvent,
    paragraphs_to_json,
    save_timeline_to_json,
    seek_result_to_json,
    timeline_to_json,
    tokens_to_json,
)
from .core.session import ReadAlongSession
from .core.tokenizer import RenderedDocument
from .core.transcript import load_transcript_file
from .utils.logging import setup_logging
from .utils.validation import (
    validate_offset_ms, validate_probability, validate_step, validate_time,
    validate_window_size,
)


def _load_document(path: str, selector: Optional[str]) -> RenderedDocument:
    try:
        markup = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ReadAlongError(f"Cannot read document {path}: {e}") from e
    document = RenderedDocument(markup, container_selector=selector)
    document.tokenize()
    return document


def _transcript_duration(words: List[TimedWord]) -> float:
    return max((w.end_time for w in words), default=0.0)


def _fail(ctx, error: Exception) -> None:
    logger = ctx.obj['logger']
    logger.error(f"❌ {error}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-file', type=click.Path(), help='Log to file')
@click.pass_context
def cli(ctx, verbose, log_file):
    """ReadAlong - align narrated audio transcripts with HTML documents."""
    ctx.ensure_object(dict)
    logger = setup_logging(
        level="DEBUG" if verbose else "WARNING",
        log_file=Path(log_file) if log_file else None,
        verbose=verbose
    )
    ctx.obj['logger'] = logger


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('--selector', help='CSS selector of the text container')
@click.option('--json', 'as_json', is_flag=True, help='Print tokens as JSON')
@click.pass_context
def tokens(ctx, document, selector, as_json):
    """Tokenize DOCUMENT and list its word tokens."""
    try:
        doc = _load_document(document, selector)
    except ReadAlongError as e:
        _fail(ctx, e)
        return

    if as_json:
        click.echo(json.dumps(tokens_to_json(doc.tokens), ensure_ascii=False, indent=2))
        return
    for token in doc.tokens:
        marker = " (skip)" if token.is_skip else ""
        click.echo(f"{token.index:5d}  {token.raw_text}{marker}")
    click.echo(f"{len(doc.tokens)} tokens")


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.argument('transcript', type=click.Path(exists=True, dir_okay=False))
@click.option('--offset-ms', type=int, default=0,
              help='Shift every transcript timestamp by this many milliseconds')
@click.option('--step', type=float, default=0.05,
              help='Simulated playback step in seconds')
@click.option('--duration', type=float, default=None,
              help='Audio duration (defaults to the last transcript word end)')
@click.option('--selector', help='CSS selector of the text container')
@click.option('--min-probability', type=float, default=None,
              help='Reject matches below this probability')
@click.option('--fallback', type=click.Choice(FALLBACK_POLICIES), default=None,
              help='What to do with rejected matches')
@click.option('--json', 'as_json', is_flag=True, help='Print the timeline as JSON')
@click.option('--out', type=click.Path(dir_okay=False),
              help='Also save the timeline and tokens to this JSON file')
@click.pass_context
def align(ctx, document, transcript, offset_ms, step, duration, selector,
          min_probability, fallback, as_json, out):
    """Simulate playback of TRANSCRIPT over DOCUMENT and print the highlight timeline."""
    try:
        offset_ms = validate_offset_ms(offset_ms)
        step = validate_step(step)
        if duration is not None:
            duration = validate_time(duration)
        overrides = {}
        if min_probability is not None:
            overrides['min_highlight_probability'] = validate_probability(min_probability)
        if fallback:
            overrides['fallback_policy'] = fallback
        settings = AlignmentSettings(**overrides).validate()

        doc = _load_document(document, selector)
        words = load_transcript_file(transcript, offset_ms=offset_ms)
    except ReadAlongError as e:
        _fail(ctx, e)
        return

    clock = SimulatedClock(duration if duration is not None else _transcript_duration(words))
    scheduler = ManualScheduler()
    session = ReadAlongSession(doc, words, clock, settings=settings, scheduler=scheduler)

    events: List[HighlightEvent] = []
    session.highlighter.add_listener(
        lambda token: events.append(
            HighlightEvent(clock.get_current_time(), token.index, token.raw_text)
        )
    )

    clock.play()
    while clock.is_playing:
        clock.advance(step)
        scheduler.fire()

    highlighted = len(session.highlighter.highlighted_indices)
    if as_json:
        click.echo(json.dumps({
            "duration": clock.get_duration(),
            "state": session.state.value,
            "highlighted": highlighted,
            "tokens": len(doc.tokens),
            "timeline": timeline_to_json(events),
        }, ensure_ascii=False, indent=2))
    else:
        for event in events:
            click.echo(f"{event.time:8.3f}s  #{event.token_index:<5d} {event.text}")
        click.echo(f"Highlighted {highlighted}/{len(doc.tokens)} tokens ({session.state.value})")
    if out:
        save_timeline_to_json(out, events, doc.tokens)
        ctx.obj['logger'].info(f"Saved timeline to {out}")
    session.destroy()


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.argument('transcript', type=click.Path(exists=True, dir_okay=False))
@click.argument('query')
@click.option('--offset-ms', type=int, default=0,
              help='Shift every transcript timestamp by this many milliseconds')
@click.option('--selector', help='CSS selector of the text container')
@click.option('--min-probability', type=float, default=None,
              help='Minimum paragraph match probability')
@click.option('--context-window', type=int, default=None,
              help='Tokens of context on each side of the match')
@click.pass_context
def seek(ctx, document, transcript, query, offset_ms, selector, min_probability,
         context_window):
    """Find QUERY in DOCUMENT and print the playback time it maps to."""
    try:
        offset_ms = validate_offset_ms(offset_ms)
        if min_probability is not None:
            validate_probability(min_probability)
        if context_window is not None:
            validate_window_size(context_window)
        doc = _load_document(document, selector)
        words = load_transcript_file(transcript, offset_ms=offset_ms)
    except ReadAlongError as e:
        _fail(ctx, e)
        return

    clock = SimulatedClock(_transcript_duration(words))
    session = ReadAlongSession(doc, words, clock, scheduler=ManualScheduler())
    if context_window is not None:
        session.set_paragraph_context_window(context_window)

    result = session.seek_to_paragraph(query, min_probability=min_probability)
    click.echo(json.dumps(seek_result_to_json(result), ensure_ascii=False, indent=2))
    session.destroy()
    if not result.success:
        sys.exit(2)


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('--selector', help='CSS selector of the text container')
@click.pass_context
def paragraphs(ctx, document, selector):
    """List the paragraphs detected in DOCUMENT."""
    try:
        doc = _load_document(document, selector)
    except ReadAlongError as e:
        _fail(ctx, e)
        return

    session = ReadAlongSession(doc, [], SimulatedClock(0), scheduler=ManualScheduler())
    found = session.seeker.find_paragraph_boundaries()
    click.echo(json.dumps(paragraphs_to_json(found), ensure_ascii=False, indent=2))


if __name__ == '__main__':
    cli()
