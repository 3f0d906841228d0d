"""Command-line interface using Click."""

import sys
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import click

from . import __version__
from .config import EngineSettings
from .core.clock import ManualClock
from .core.engine import SyncEngine
from .core.metrics import TextMetrics
from .core.models import ActivationState, LineKind
from .core.timeline import build_timeline, load_lyrics_file
from .exceptions import KaraSyncError, ValidationError
from .utils.logging import setup_logging


def _validate_window(start: float, end: float, step: float) -> None:
    if step <= 0:
        raise ValidationError(f"Step must be positive: {step}")
    if end < start:
        raise ValidationError(f"End ({end}) must not be before start ({start})")


def _simulation_times(
    start: float, end: float, step: float, seeks: Iterable[Tuple[float, float]]
) -> List[float]:
    """Tick times from start to end, jumping at each (at, to) seek."""
    pending = sorted(seeks)
    times: List[float] = []
    t = start
    while t <= end:
        times.append(t)
        if pending and t >= pending[0][0]:
            _, t = pending.pop(0)
            continue
        t += step
    return times


def _describe_state(state: ActivationState, previous: Optional[ActivationState]) -> Optional[str]:
    if previous is not None and (
        state.active_line_ids == previous.active_line_ids
        and state.highlighted_syllable_ids == previous.highlighted_syllable_ids
        and state.primary_line_id == previous.primary_line_id
        and state.is_user_controlling_scroll == previous.is_user_controlling_scroll
    ):
        return None
    parts = [
        f"{state.time_ms:8.0f}ms",
        f"scroll={state.primary_line_id or '-'}",
        f"offset={state.scroll_offset:g}px",
        f"active=[{', '.join(sorted(state.active_line_ids))}]",
        f"highlight=[{', '.join(sorted(state.highlighted_syllable_ids))}]",
    ]
    if state.is_seek:
        parts.append("SEEK")
    return "  ".join(parts)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-file', type=click.Path(), help='Log to file')
@click.pass_context
def cli(ctx, verbose, log_file):
    """karasync - Karaoke lyric timeline synchronization."""
    ctx.ensure_object(dict)
    logger = setup_logging(
        level="DEBUG" if verbose else None,
        log_file=Path(log_file) if log_file else None,
        verbose=verbose
    )
    ctx.obj['logger'] = logger
    ctx.obj['verbose'] = verbose


@cli.command()
@click.argument('lyrics_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def correct(ctx, lyrics_file):
    """Show corrected line timings of a lyrics file (.json or .lrc)."""
    logger = ctx.obj['logger']
    try:
        document = load_lyrics_file(Path(lyrics_file))
        timeline = build_timeline(document, settings=EngineSettings(word_by_word=False))
        for line in timeline:
            moved = "" if line.end_ms == line.actual_end_ms else f"  (was {line.actual_end_ms:.0f})"
            click.echo(
                f"{line.id:>10}  {line.kind.value:<8} "
                f"[{line.start_ms:8.0f}, {line.end_ms:8.0f}){moved}  {line.text.splitlines()[0] if line.text else ''}"
            )
        logger.info(f"✅ Corrected {len(timeline.lyric_lines)} lyric lines")
    except KaraSyncError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)


@cli.command()
@click.argument('lyrics_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--lightweight', is_flag=True, help='Disable emphasized-word animations')
@click.option('--font-size', type=int, default=None, help='Font size in pixels')
@click.pass_context
def params(ctx, lyrics_file, lightweight, font_size):
    """Show derived animation parameters for every syllable."""
    logger = ctx.obj['logger']
    try:
        settings = EngineSettings(lightweight=lightweight)
        if font_size is not None:
            settings.font_size = font_size
        settings.validate()
        metrics = TextMetrics.from_settings(settings)
        document = load_lyrics_file(Path(lyrics_file))
        if not document.is_word_timed:
            raise ValidationError("Lyrics have no syllable timings")
        timeline = build_timeline(document, metrics, settings)
        for line in timeline:
            if line.kind != LineKind.LYRIC:
                continue
            click.echo(f"{line.id}: {line.text}")
            for word in line.words:
                grow = f" grow x{word.max_scale:.3f}" if word.growable else ""
                click.echo(f"  word {word.text!r} {word.duration_ms:.0f}ms{grow}")
                for s in word.syllables:
                    pre = ""
                    if s.next_syllable_in_word is not None:
                        pre = (
                            f" -> {s.next_syllable_in_word.id}"
                            f" delay={s.pre_highlight_delay_ms}ms"
                            f" duration={s.pre_highlight_duration_ms:g}ms"
                        )
                    click.echo(
                        f"    {s.id:>12} {s.text!r:<14} {s.start_ms:8.0f} +{s.duration_ms:.0f}ms"
                        f" chars={len(s.char_wipes)}{pre}"
                    )
    except KaraSyncError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)


@cli.command()
@click.argument('lyrics_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--start', type=float, default=0.0, help='First tick (ms)')
@click.option('--end', type=float, default=None, help='Last tick (ms), defaults to the last line end')
@click.option('--step', type=float, default=100.0, help='Tick interval (ms)')
@click.option('--seek', 'seeks', type=(float, float), multiple=True,
              help='Jump AT TO: after the tick at AT, continue from TO')
@click.option('--lightweight', is_flag=True, help='Disable emphasized-word animations')
@click.option('--no-fade', is_flag=True, help='Do not fade past lines')
@click.pass_context
def simulate(ctx, lyrics_file, start, end, step, seeks, lightweight, no_fade):
    """Tick the engine over a lyrics file and print every state change."""
    logger = ctx.obj['logger']
    try:
        settings = EngineSettings(lightweight=lightweight, fade_past_lines=not no_fade)
        document = load_lyrics_file(Path(lyrics_file))
        engine = SyncEngine(settings=settings)
        timeline = engine.render(document)
        if end is None:
            end = max((line.end_ms for line in timeline), default=start)
        _validate_window(start, end, step)

        clock = ManualClock(start)
        previous = None
        for t in _simulation_times(start, end, step, seeks):
            clock.seek(t)
            state = engine.tick(clock.now())
            line = _describe_state(state, previous)
            if line:
                click.echo(line)
            previous = state
        engine.teardown()
        logger.info(f"✅ Simulated {start:.0f}ms to {end:.0f}ms")
    except KaraSyncError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)


if __name__ == '__main__':
    cli()
