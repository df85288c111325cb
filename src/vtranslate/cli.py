"""
Command-line interface for the video translation pipeline.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from .codec import MediaCodec
from .errors import StageFailedError, TranslatorError
from .logging_utils import setup_logging
from .models import ProgressEvent, SourceLanguage, TargetLanguage
from .pipeline import Pipeline
from .settings import Settings
from .storage import LocalArtifactStore

logger = logging.getLogger("vtranslate")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Translate the spoken audio track of a video")

    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--input_video", help="Video file to translate")
    src.add_argument("--url", help="Video link (not supported; download the file first)")

    ap.add_argument(
        "--source-language",
        choices=[lang.value for lang in SourceLanguage],
        default="auto",
        help="Spoken language of the input; 'auto' lets the service detect it",
    )
    ap.add_argument(
        "--target-language",
        choices=[lang.value for lang in TargetLanguage],
        default="uk",
    )
    ap.add_argument("--output-dir", default=None, help="Where to store the translated video")
    ap.add_argument("--env-file", default=None, help="Explicit .env file to load")
    ap.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return ap.parse_args(argv)


class ProgressBar:
    """Renders ProgressEvents on a tqdm bar."""

    def __init__(self, disable: bool = False):
        self.bar = tqdm(total=100, unit="%", desc="Queued", disable=disable)

    def __call__(self, event: ProgressEvent) -> None:
        self.bar.set_description(event.stage_label)
        if event.eta_seconds is not None:
            self.bar.set_postfix(eta=f"{event.eta_seconds}s")
        self.bar.update(event.percent - self.bar.n)

    def close(self) -> None:
        self.bar.close()


async def main_async(argv: list[str] | None = None) -> int:
    """Main async CLI entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_env(args.env_file)
    except TranslatorError as e:
        logger.error(str(e))
        return 1
    if args.output_dir:
        settings.output_dir = args.output_dir

    codec = MediaCodec.from_settings(settings)
    pipeline = Pipeline(settings, codec, LocalArtifactStore(settings.output_dir))

    try:
        if args.url:
            pipeline.submit_url(args.url)
        video_path = Path(args.input_video)
        if not video_path.exists():
            logger.error(f"Input not found: {video_path}")
            return 1
        job = pipeline.new_job(
            video_path.read_bytes(),
            args.source_language,
            args.target_language,
            filename=video_path.name,
        )
    except (TranslatorError, ValueError) as e:
        logger.error(str(e))
        return 1

    bar = ProgressBar(disable=args.no_progress)
    try:
        result = await pipeline.run(job, bar)
    except StageFailedError as e:
        logger.error(f"{e.kind}: {e}")
        return 1
    except TranslatorError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        bar.close()

    print(f"Original text:\n{result.original_text}\n")
    print(f"Translated text:\n{result.translated_text}\n")
    print(f"Translated video: {result.artifact_url}")
    return 0


def main() -> None:
    """Main CLI entry point."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
