#!/usr/bin/env python3
"""
Organize an audio library into tagged MP3 folders.

Usage:
    audiocc SOURCE DEST [--quality {copy,320,v0}] [--fix] [--no-cover]
                        [--workers N] [--config PATH] [--verbose]
"""

import argparse
import logging
import sys
import threading

from audiocc.config import Config, ConfigError, QUALITIES
from audiocc.errors import AudioccError, Canceled
from audiocc.pipeline import Pipeline
from audiocc.process import check_tools

logger = logging.getLogger("audiocc")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audiocc",
        description="Probe, transcode to MP3 and file an audio library by its tags",
    )
    parser.add_argument("source", help="Folder to scan for audio files")
    parser.add_argument("dest", help="Library root to place MP3 folders under")
    parser.add_argument("--quality", choices=QUALITIES,
                        help="MP3 quality (default from config: v0)")
    parser.add_argument("--fix", action="store_true", default=None,
                        help="Re-encode without metadata first (broken durations)")
    parser.add_argument("--no-cover", dest="embed_cover", action="store_false", default=None,
                        help="Do not embed cover art")
    parser.add_argument("--workers", type=int, help="Folders processed in parallel")
    parser.add_argument("--config", help="Path to audiocc.toml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> None:
    """Copy CLI flags over config values (flags left unset keep the config)."""
    if args.quality is not None:
        config["transcode"]["quality"] = args.quality
    if args.fix is not None:
        config["transcode"]["fix"] = args.fix
    if args.embed_cover is not None:
        config["transcode"]["embed_cover"] = args.embed_cover
    if args.workers is not None:
        config["pipeline"]["workers"] = args.workers
    config._validate()


def main(argv=None) -> int:
    """Main organize entrypoint."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    )

    cancel = threading.Event()
    try:
        config = Config.load(args.config)
        apply_overrides(config, args)
        logger.info(f"Config loaded: {config}")

        check_tools(config.get("tools", "ffmpeg"), config.get("tools", "ffprobe"))

        pipeline = Pipeline.from_config(config, cancel=cancel)
        stats = pipeline.run(args.source, args.dest)

    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except (KeyboardInterrupt, Canceled):
        cancel.set()
        logger.warning("Organize interrupted by user")
        return 130
    except AudioccError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except Exception as e:
        logger.error(f"Organize failed: {e}", exc_info=True)
        return 1

    logger.info("")
    logger.info("=" * 60)
    logger.info("📊 Organize Summary")
    logger.info("=" * 60)
    logger.info(f"  Folders:     {stats.bundles_total}")
    logger.info(f"  Placed:      {stats.bundles_done}")
    logger.info(f"  Failed:      {len(stats.errors)}")
    logger.info(f"  MP3s:        {stats.files_transcoded}")
    for error in stats.errors:
        logger.info(f"  ✗ {error}")
    logger.info("=" * 60)

    if stats.errors:
        return 1
    logger.info("✅ Organize complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
