# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import NoReturn, Optional

import typer

from ..adapters.filesystem.local_fs import LocalFS
from ..adapters.image.pillow_loader import PillowImageLoader
from ..adapters.index.sqlite_index import SQLiteIndex
from ..adapters.opencv.analyzer import OpenCVAnalyzer
from ..config import ComparisonSettings
from ..domain.errors import DisplayMatchError
from ..services import BatchService, ComparisonService, ReportService

from ..logging_config import setup_logging

setup_logging()

app = typer.Typer(help="displaymatch CLI - compare display renders with photos of displays")

MODES: set[str] = {"auto", "render", "photo"}
FORMATS: set[str] = {"json", "ndjson", "csv"}

logger = logging.getLogger(__name__)


def _parse_choice(value: Optional[str], valid: set[str], what: str, default: str) -> str:
    """
    Normalise a single-choice option.
    Raises Typer BadParameter if the value is not one of `valid`.
    """
    choice = (value or default).strip().lower()
    if choice not in valid:
        raise typer.BadParameter(
            f"Unknown {what}: {choice}. Valid options: {', '.join(sorted(valid))}"
        )
    return choice


def _settings(no_align: bool = False) -> ComparisonSettings:
    try:
        settings = ComparisonSettings.from_env()
    except DisplayMatchError as e:
        raise typer.BadParameter(str(e))
    if no_align:
        settings = replace(settings, align_sizes=False)
    return settings


def _fail(e: Exception) -> NoReturn:
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(code=1)


def _verbose(verbose: bool) -> None:
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")


def _wire(settings: ComparisonSettings) -> ComparisonService:
    """
    Minimal composition root:
      OpenCVAnalyzer + ComparisonService
    """
    return ComparisonService(OpenCVAnalyzer(settings), settings)


# ------------------------------
# CLI Commands
# ------------------------------


@app.command()
def compare(
    image1: Path = typer.Argument(..., exists=True, dir_okay=False, help="First image (e.g. the render)"),
    image2: Path = typer.Argument(..., exists=True, dir_okay=False, help="Second image (e.g. the photo)"),
    no_align: bool = typer.Option(
        False, "--no-align", help="Do not resize the second image to the first one's size."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Compare two images and print the result as JSON.
    """
    _verbose(verbose)
    loader = PillowImageLoader()
    comparison = _wire(_settings(no_align))
    try:
        img1 = loader.load(image1)
        img2 = loader.load(image2)
    except DisplayMatchError as e:
        _fail(e)

    result = comparison.compare(img1, img2)
    typer.echo(json.dumps(result.as_dict(), indent=2))


@app.command()
def classify(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Image to classify"),
):
    """
    Print whether an image looks like a digital render or a photo.
    """
    try:
        img = PillowImageLoader().load(image)
    except DisplayMatchError as e:
        _fail(e)
    is_render = OpenCVAnalyzer().is_digital_render(img)
    typer.echo("render" if is_render else "photo")


@app.command()
def preprocess(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Image to process"),
    out: Path = typer.Option(..., "--out", help="Where to write the processed image"),
    mode: str = typer.Option(
        "auto", "--mode", help="Processing profile: auto, render or photo", case_sensitive=False
    ),
    segments: bool = typer.Option(
        False, "--segments", help="Write the extracted LCD segments instead of the preprocessed image."
    ),
):
    """
    Write the preprocessed image (or its LCD segments) to --out.
    """
    mode = _parse_choice(mode, MODES, "mode", "auto")
    loader = PillowImageLoader()
    analyzer = OpenCVAnalyzer()
    try:
        img = loader.load(image)
        is_render = analyzer.is_digital_render(img) if mode == "auto" else mode == "render"
        processed = analyzer.preprocess_image(img, is_render)
        if segments:
            processed = analyzer.extract_lcd_segments(processed, is_render)
        written = loader.save(processed, out)
    except DisplayMatchError as e:
        _fail(e)

    kind = "segments" if segments else "preprocessed"
    typer.echo(f"Wrote {kind} {'render' if is_render else 'photo'} image to {written}")


@app.command()
def batch(
    probe: Path = typer.Option(
        ...,
        "--probe",
        exists=True,
        dir_okay=False,
        resolve_path=True,
        help="Image to compare against the references",
    ),
    refs: Path = typer.Option(
        ...,
        "--refs",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
        help="Directory of reference images",
    ),
    db: Path = typer.Option(
        "displaymatch.db",
        "--db",
        help="Path to SQLite DB file",
        resolve_path=True,
    ),
    progress: Optional[int] = typer.Option(
        None,
        "--progress",
        help="Log a progress tick every N references (e.g., 50). Omit to disable.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Suppress the final summary line.",
    ),
    no_align: bool = typer.Option(
        False, "--no-align", help="Do not resize references to the probe's size."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Compare a probe image against every reference image and record the results.
    """
    _verbose(verbose)
    if progress is not None and progress < 0:
        raise typer.BadParameter("--progress must be an integer >= 0")

    comparison = _wire(_settings(no_align))
    with SQLiteIndex(db) as index:
        service = BatchService(
            LocalFS(),
            PillowImageLoader(),
            comparison,
            index,
            progress_every=progress or 0,
        )
        try:
            entries = service.run(probe, refs)
        except DisplayMatchError as e:
            _fail(e)

    if quiet:
        return
    if not entries:
        typer.echo(f"No reference images compared under {refs}; index: {db}")
        return
    best = entries[0]
    typer.echo(
        f"Compared {len(entries)} references; best: {best.reference} "
        f"(score {best.result.score:.1f}); index: {db}"
    )


@app.command()
def report(
    db: Path = typer.Option(
        "displaymatch.db",
        "--db",
        help="Path to the SQLite index file.",
        exists=False,
        readable=True,
        writable=True,
        resolve_path=True,
    ),
    fmt: str = typer.Option(
        "json",
        "--fmt",
        help="Output format: json, ndjson or csv.",
        case_sensitive=False,
    ),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "--output",
        help="Write report to this path. If a directory is provided, the file will be named 'comparisons.<fmt>' inside it. "
        "If omitted entirely, defaults to './comparisons.<fmt>'.",
        resolve_path=True,
    ),
):
    """
    Write the recorded comparisons from the index.
    """
    fmt = _parse_choice(fmt, FORMATS, "format", "json")
    with SQLiteIndex(db) as index:
        report = ReportService(index)

        # - no --out  -> ./comparisons.<fmt>
        # - --out DIR -> DIR/comparisons.<fmt>
        # - --out FILE -> FILE
        if out is None:
            target = Path(f"comparisons.{fmt}")
        else:
            out = Path(out)
            if out.exists() and out.is_dir():
                target = out / f"comparisons.{fmt}"
            else:
                target = out

        written = report.write_comparisons(target, fmt=fmt)
        typer.echo(f"Wrote {fmt} report to {written}")
