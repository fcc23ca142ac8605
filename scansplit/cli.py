"""Command-line interface for scanned-page photo segmentation."""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from dotenv import load_dotenv

from scansplit import __version__
from scansplit.photo_detection.regions import Region
from scansplit.pipeline import DetectionConfig, PhotoSegmenter
from scansplit.preprocessing.loader import ImageDecodeError, load_image
from scansplit.utils.debug import draw_regions, save_debug_image

# Load environment variables from .env
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)

logger = logging.getLogger(__name__)


def _set_verbose(verbose: bool) -> None:
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _load_regions_file(path: Path) -> List[Region]:
    """Read regions from a JSON list of regions or a saved detection result.

    Raises:
        ValueError: If the file is not valid JSON or has no usable regions list
    """
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        raise ValueError(f"Could not read regions from {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get('photos')
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of regions or a detection result in {path}")

    return [Region.from_dict(item, default_id=f"photo_{i}") for i, item in enumerate(data)]


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """scansplit - Find and crop the individual photos on a scanned page."""
    pass


@main.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--ai', 'use_ai', is_flag=True, help='Try the Claude vision model first')
@click.option('--no-previews', is_flag=True, help='Omit base64 previews from the result')
@click.option(
    '--output',
    '-o',
    'output_file',
    type=click.Path(dir_okay=False),
    help='Write the JSON result to this file instead of stdout'
)
@click.option(
    '--debug',
    'debug_dir',
    type=click.Path(file_okay=False),
    help='Save an overlay of the detected regions to this directory'
)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def detect(
    input_path: str,
    use_ai: bool,
    no_previews: bool,
    output_file: Optional[str],
    debug_dir: Optional[str],
    verbose: bool
) -> None:
    """Detect the photos on a scanned page and print the result as JSON.

    INPUT_PATH: Scanned page image
    """
    _set_verbose(verbose)

    segmenter = PhotoSegmenter(DetectionConfig())
    result = segmenter.detect_file(input_path, use_ai=use_ai, include_previews=not no_previews)

    output_json = json.dumps(result.to_dict(), indent=2)
    if output_file:
        Path(output_file).write_text(output_json + '\n', encoding='utf-8')
        logger.info(f"Saved: {output_file}")
    else:
        click.echo(output_json)

    if not result.success:
        logger.error(f"Detection failed for {input_path}: {result.error}")
        sys.exit(1)

    logger.info(
        f"{Path(input_path).name}: {len(result.photos)} photo(s) via '{result.method}' "
        f"in {result.processing_time:.3f}s"
    )
    logger.debug(f"States: {' -> '.join(result.states)}")

    if debug_dir:
        image, _ = load_image(input_path)
        overlay = draw_regions(image, result.photos)
        saved = save_debug_image(
            overlay,
            Path(debug_dir) / f"{Path(input_path).stem}_regions.jpg",
            "Detected regions"
        )
        logger.info(f"Debug overlay: {saved}")


@main.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--ai', 'use_ai', is_flag=True, help='Try the Claude vision model first')
@click.option(
    '--regions',
    'regions_file',
    type=click.Path(exists=True, dir_okay=False),
    help='JSON file with regions (or a saved detection result) to crop'
)
@click.option('--enhance', is_flag=True, help='Upscale and enhance each extracted photo')
@click.option(
    '--output',
    '-o',
    'output_dir',
    type=click.Path(file_okay=False),
    default='./output',
    help='Output directory for extracted photos'
)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def extract(
    input_path: str,
    use_ai: bool,
    regions_file: Optional[str],
    enhance: bool,
    output_dir: str,
    verbose: bool
) -> None:
    """Crop each detected photo out of a scanned page into its own JPEG.

    INPUT_PATH: Scanned page image
    """
    _set_verbose(verbose)

    input_file = Path(input_path)
    config = DetectionConfig()
    segmenter = PhotoSegmenter(config)

    try:
        image, metadata = load_image(input_file)
    except ImageDecodeError as e:
        logger.error(f"Cannot read {input_file.name}: {e}")
        sys.exit(1)

    if regions_file:
        try:
            regions = _load_regions_file(Path(regions_file))
        except ValueError as e:
            logger.error(str(e))
            sys.exit(1)
    else:
        result = segmenter.detect_file(input_file, use_ai=use_ai, include_previews=False)
        if not result.success:
            logger.error(f"Detection failed for {input_file.name}: {result.error}")
            sys.exit(1)
        regions = result.photos

    if not regions:
        logger.warning(f"No photos found in {input_file.name}")
        return

    extraction = segmenter.extract(image, regions, enhance=enhance)
    for error in extraction.errors:
        logger.warning(error)

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    # Naming convention: <stem>_Photo{NN}.jpg
    for i, photo in enumerate(extraction.photos, 1):
        output_file_path = output_path / f"{input_file.stem}_Photo{i:02d}.jpg"
        save_debug_image(
            photo,
            output_file_path,
            f"Extracted photo {i}",
            quality=config.extract_quality
        )
        logger.info(f"Saved: {output_file_path.name}")

    logger.info(
        f"COMPLETE: {len(extraction.photos)}/{len(regions)} photo(s) from "
        f"{input_file.name} ({metadata.original_size[0]}x{metadata.original_size[1]}) "
        f"-> {output_path.absolute()}"
    )


if __name__ == '__main__':
    main()
