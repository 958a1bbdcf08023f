"""Command-line host for Vocal Range."""

import threading
import time
from typing import List, Optional

import click
import numpy as np

from ..advisor import AdvisoryError, VocalAnalysis, build_prompt
from ..core.config import ConfigManager
from ..core.factory import ComponentFactory
from ..logger import get_logger
from ..logging_config import setup_logging
from ..note_types import NoteData
from ..note_utils import convert_note_notation, is_in_tune
from ..services.audio_providers import list_input_devices
from ..session import CaptureState

logger = get_logger(__name__)


def format_note(note: Optional[NoteData], use_flats: bool = False, in_tune_cents: float = 15.0) -> str:
    """One-line tuner readout for a note."""
    if note is None:
        return "--    ---.- Hz"
    name = convert_note_notation(note.name, to_flats=use_flats)
    marker = "*" if is_in_tune(note, in_tune_cents) else " "
    return f"{name:<4} {note.frequency:7.1f} Hz {note.deviation:+6.1f} cents {marker}"


def format_analysis(report: VocalAnalysis) -> str:
    """Plain-text rendering of an advisory report."""
    lines = [f"\nVoice type: {report.voice_type}", report.description, "", "Songs to try:"]
    for song in report.songs:
        lines.append(f"  - {song.title} by {song.artist}: {song.reason}")
    lines += ["", "Exercises:"]
    for exercise in report.exercises:
        lines.append(f"  - {exercise.name}: {exercise.instructions}")
    return "\n".join(lines)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding the JSON configuration files",
)
@click.pass_context
def main(ctx, debug, config_dir):
    """Vocal Range - find the lowest and highest notes you can sing."""
    setup_logging("DEBUG" if debug else None)
    ctx.obj = ComponentFactory(ConfigManager(config_dir))


@main.command()
def devices():
    """List available audio input devices."""
    try:
        inputs = list_input_devices()
    except Exception as e:
        logger.error(f"Could not query audio devices: {e}", exc_info=True)
        raise click.ClickException(f"Could not query audio devices: {e}")

    if not inputs:
        click.echo("No input devices found.")
        return
    click.echo("Available audio input devices:")
    for device in inputs:
        click.echo(
            f"{device['id']}: {device['name']} "
            f"(Sample Rate: {device['sample_rate'] / 1000:.1f}kHz)"
        )


@main.command()
@click.option("--device", type=int, default=None, help="Audio input device ID")
@click.option("--duration", type=float, default=15.0, help="Listening time in seconds")
@click.option("--flats", is_flag=True, help="Use flat notes instead of sharps")
@click.pass_obj
def tune(factory: ComponentFactory, device, duration, flats):
    """Show the sung note, its frequency and how far off pitch it is."""
    estimator = factory.create_pitch_estimator()
    note_mapper = factory.create_note_mapper()
    in_tune_cents = factory.config_manager.get_config("note_mapper")["in_tune_cents"]
    provider = factory.create_live_audio(device)

    def on_frame(frame: np.ndarray) -> None:
        frequency = estimator.estimate(frame, provider.sample_rate)
        note = note_mapper(frequency) if frequency is not None else None
        click.echo("\r" + format_note(note, flats, in_tune_cents), nl=False)

    try:
        provider.start(on_frame)
    except Exception as e:
        raise click.ClickException(f"Could not open audio device: {e}")

    click.echo(f"Listening for {duration:.0f} seconds (Ctrl+C to stop)...")
    try:
        time.sleep(duration)
    except KeyboardInterrupt:
        pass
    finally:
        provider.stop()
        click.echo("")


@main.command(name="test")
@click.option("--device", type=int, default=None, help="Audio input device ID")
@click.option("--no-analysis", is_flag=True, help="Print the advisory request instead of sending it")
@click.pass_obj
def range_test(factory: ComponentFactory, device, no_analysis):
    """Capture your lowest and then your highest note."""
    session = factory.create_session()
    provider = factory.create_live_audio(device)
    # Frames arrive on the audio thread, commands on this one
    lock = threading.Lock()

    def on_frame(frame: np.ndarray) -> None:
        # Stopping the stream waits for this callback, so never block here;
        # a frame that arrives during a command is dropped.
        if not lock.acquire(blocking=False):
            return
        try:
            session.on_frame(frame, provider.sample_rate)
        finally:
            lock.release()

    try:
        provider.start(on_frame)
    except Exception as e:
        raise click.ClickException(f"Could not open audio device: {e}")

    try:
        with lock:
            session.begin(provider)

        steps = [
            (CaptureState.AWAITING_LOW, "Sing your LOWEST comfortable note and press Enter"),
            (CaptureState.AWAITING_HIGH, "Sing your HIGHEST comfortable note and press Enter"),
        ]
        for state, instruction in steps:
            while session.state is state:
                click.prompt(instruction, default="", show_default=False)
                with lock:
                    note = session.live_note
                    captured = session.capture()
                if captured:
                    click.echo(f"Captured {note}")
                else:
                    click.echo("No pitch detected, sing a little louder and try again.")
    except (KeyboardInterrupt, click.Abort):
        click.echo("\nTest cancelled.")
        with lock:
            session.reset()
        return

    low_name, high_name = session.endpoints
    click.echo(f"\nYour range: {low_name} - {high_name}")

    if no_analysis:
        click.echo("\nAdvisory request:")
        click.echo(build_prompt(low_name, high_name))
        return

    click.echo("\nAnalyzing your range...")
    try:
        report = factory.request_analysis(session, factory.create_advisor())
    except AdvisoryError as e:
        click.echo(f"Analysis unavailable: {e.reason.message}")
        return
    except Exception as e:
        logger.error(f"Analysis failed: {e}", exc_info=True)
        raise click.ClickException(f"Analysis failed: {e}")
    click.echo(format_analysis(report))


@main.command()
@click.argument("wav_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--frame-size", type=int, default=None, help="Samples per analysis frame")
@click.option("--flats", is_flag=True, help="Use flat notes instead of sharps")
@click.pass_obj
def analyze(factory: ComponentFactory, wav_file, frame_size, flats):
    """Report the lowest and highest notes found in a WAV recording."""
    estimator = factory.create_pitch_estimator()
    note_mapper = factory.create_note_mapper()

    kwargs = {"realtime": False}
    if frame_size:
        kwargs["chunk_size"] = frame_size
    try:
        provider = factory.create_wav_audio(wav_file, **kwargs)
        notes: List[NoteData] = []
        for frame in provider.frames():
            frequency = estimator.estimate(frame, provider.sample_rate)
            note = note_mapper(frequency) if frequency is not None else None
            if note is not None:
                notes.append(note)
    except RuntimeError as e:
        logger.error(f"Could not read {wav_file}: {e}", exc_info=True)
        raise click.ClickException(f"Could not read {wav_file}: {e}")

    if not notes:
        click.echo("No pitch detected.")
        return

    lowest = min(notes, key=lambda n: n.frequency)
    highest = max(notes, key=lambda n: n.frequency)
    click.echo(f"Frames with pitch: {len(notes)}")
    click.echo(f"Lowest:  {format_note(lowest, flats)}")
    click.echo(f"Highest: {format_note(highest, flats)}")


if __name__ == "__main__":
    main()
