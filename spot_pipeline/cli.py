"""
Command-line interface for spot-pipeline.

This module implements the CLI using Click, turning a Spotify playlist,
album or artist URL into a folder of tagged audio files.
rich-click is used for the output colors.

Usage:
    # Download a playlist with the settings from config.yaml
    spot-pipeline "https://open.spotify.com/playlist/..."

    # Album as m4a into another folder
    spot-pipeline "https://open.spotify.com/album/..." --format m4a --output ~/Music

    # Artist top tracks, with debug output on the console
    spot-pipeline "https://open.spotify.com/artist/..." --verbose

Workflow:
    1. Load config.yaml / .env and set up logging
    2. Fetch the track list (with retries)
    3. For each track, in order: match on YouTube Music, then stream,
       transcode and tag into <output>/<playlist name>/

Exit Codes:
    0: every track was written
    1: configuration or catalog error (bad URL, credentials, Spotify
       unreachable), unexpected error, or at least one track failed
    130: interrupted
"""

import asyncio
import sys
from dataclasses import replace
from pathlib import Path

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.MAX_WIDTH = 100

from spot_pipeline import __version__
from spot_pipeline.core import (
    AuthenticationError,
    CatalogError,
    Config,
    ConfigError,
    RetryExhaustedError,
    SpotPipelineError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from spot_pipeline.core.file_manager import playlist_folder
from spot_pipeline.core.progress import TrackProgressBar
from spot_pipeline.download import AudioPipeline, Track, TrackProcessor, build_tracks
from spot_pipeline.spotify import (
    CatalogClient,
    CatalogResolver,
    ResourceKind,
    RetryingFetcher,
    parse_resource,
)
from spot_pipeline.youtube import SourceMatcher

logger = get_logger(__name__)


@click.command()
@click.argument("url", metavar="<spotify-url>")
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.yaml (default: ./config.yaml)"
)
@click.option(
    "--output", "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides config)"
)
@click.option(
    "--format", "audio_format",
    type=str,
    default=None,
    metavar="<format>",
    help="Audio format: mp3, m4a, opus, flac... (overrides config)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console"
)
@click.version_option(__version__, prog_name="spot-pipeline")
def cli(
    url: str,
    config_path: Path | None,
    output_dir: Path | None,
    audio_format: str | None,
    verbose: bool
) -> None:
    """
    Download a Spotify playlist, album or artist top tracks via YouTube Music.
    """
    try:
        config = _load_configuration(config_path, output_dir, audio_format)
    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    setup_logging(config.output.directory, verbose=verbose)

    try:
        failed = asyncio.run(_run_download(url, config))
        sys.exit(1 if failed else 0)

    except CatalogError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if _is_auth_failure(e):
            click.echo("Check your client_id and client_secret in config.yaml", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(1)

    except SpotPipelineError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(1)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _load_configuration(
    config_path: Path | None,
    output_dir: Path | None,
    audio_format: str | None
) -> Config:
    """
    Load config.yaml and apply the command-line overrides.

    Raises:
        ConfigError: If configuration is invalid or missing.
    """
    config = load_config(config_path)

    output = config.output
    if output_dir is not None:
        output = replace(output, directory=output_dir.expanduser().resolve())
    if audio_format is not None:
        output = replace(output, format=audio_format.lower().lstrip("."))

    return replace(config, output=output)


def _is_auth_failure(error: CatalogError) -> bool:
    if isinstance(error, AuthenticationError):
        return True
    return isinstance(error, RetryExhaustedError) and isinstance(
        error.last_error, AuthenticationError
    )


async def _run_download(url: str, config: Config) -> int:
    """
    Fetch the track list and process every track.

    Args:
        url: Spotify playlist, album or artist URL.
        config: Loaded configuration.

    Returns:
        Number of tracks that failed.

    Raises:
        CatalogError: If the track list could not be fetched.
    """
    ref = parse_resource(url)

    client = CatalogClient(
        config.spotify.client_id,
        config.spotify.client_secret,
        market=config.spotify.market,
        cache_token=config.spotify.cache_token,
    )
    fetcher = RetryingFetcher(
        CatalogResolver(client),
        max_attempts=config.fetch.max_attempts,
        attempt_timeout=config.fetch.attempt_timeout,
        backoff_base=config.fetch.backoff_base,
        fail_fast_on_auth=config.fetch.fail_fast_on_auth,
    )

    logger.info(f"Fetching {ref.kind.value} {ref.id}...")
    metadata = await fetcher.fetch(url)
    logger.info(f"'{metadata.name}': {len(metadata.tracks)} tracks")

    if not metadata.tracks:
        logger.warning("Nothing to download")
        return 0

    playlist_id = ref.id if ref.kind == ResourceKind.PLAYLIST else None
    tracks = build_tracks(metadata, playlist_id=playlist_id)

    output_folder = playlist_folder(config.output.directory, metadata.name)
    processor = TrackProcessor(
        SourceMatcher(search_filter=config.youtube.search_filter),
        AudioPipeline(
            audio_format=config.output.format,
            ffmpeg_binary=config.youtube.ffmpeg,
            cookie_file=config.youtube.cookie_file,
        ),
        output_folder,
    )

    with TrackProgressBar(total=len(tracks)) as progress:
        for track in tracks:
            progress.set_current(track.label)
            try:
                await processor.process(track)
                progress.update(success=True)
            except SpotPipelineError:
                # Already recorded on the track and in the failures report
                progress.update(success=False)

    _print_summary(metadata.name, output_folder, tracks)
    return sum(1 for track in tracks if track.error is not None)


def _print_summary(name: str, output_folder: Path, tracks: list[Track]) -> None:
    """
    Log final statistics.

    Output:
        Total tracks, written files, failures and the output folder.
    """
    failed = [track for track in tracks if track.error is not None]

    logger.info("=" * 60)
    logger.info(f"FINAL STATISTICS: {name}")
    logger.info("=" * 60)
    logger.info(f"Total tracks:      {len(tracks)}")
    logger.info(f"Downloaded:        {len(tracks) - len(failed)}")
    logger.info(f"Failed:            {len(failed)}")
    logger.info(f"Output folder:     {output_folder}")
    logger.info("=" * 60)

    for track in failed:
        logger.info(f"  {track.index}. {track.label}: {track.error}")


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-pipeline` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
