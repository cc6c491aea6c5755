"""Command-line interface for the GI product verifier."""

import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
import yaml
from loguru import logger

from gi_verifier.config_loader import ensure_directories, get_logging_config, load_config
from gi_verifier.models import Source
from gi_verifier.scraper import build_scraper
from gi_verifier.service import VerificationService


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{thread.name}</magenta> | {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {thread.name} | {name}:{line} | {message}"


def setup_logging(config: dict):
    """Route loguru output to stderr and, unless ``logging.file`` is empty, a rotating file.

    stdout is left to command output so ``verify --json`` stays parseable.
    Records carry the thread name because extractions run on the drain worker.
    """
    log_config = get_logging_config(config)
    level = str(log_config.get("level") or "INFO").upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    log_file = log_config.get("file")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            rotation=log_config.get("rotation", "1 week"),
            retention=log_config.get("retention", "1 month"),
            encoding="utf-8",
            format=FILE_FORMAT,
        )


def _print_result(data: dict):
    status = "NOT GENUINE" if data["invalid"] else ("verified" if data["attributes"] else "no data")
    click.echo(f"\n{data['product_code']}: {status} (source: {data['source']})")
    for key in ("authorized_user", "artisan", "image_url"):
        if data.get(key):
            click.echo(f"  {key}: {data[key]}")
    for label, value in data["attributes"].items():
        click.echo(f"  {label}: {value}")


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """GI product verifier - provenance lookup on external verification sites."""
    ctx.ensure_object(dict)

    try:
        cfg = load_config(config)
        if verbose:
            cfg.setdefault("logging", {})["level"] = "DEBUG"
        ctx.obj["config"] = cfg
        ctx.obj["config_path"] = config

        ensure_directories(cfg)
        setup_logging(cfg)
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("codes", nargs=-1, required=True)
@click.option("--headless/--no-headless", default=None, help="Override browser headless mode")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def verify(ctx, codes: Tuple[str, ...], headless: Optional[bool], as_json: bool):
    """Verify one or more product codes through the cached, serialized pipeline."""
    config = ctx.obj["config"]
    service = VerificationService.from_config(config, headless=headless)

    logger.info(f"Submitting {len(codes)} product code(s)")
    futures = [(code, service.scrape_product(code)) for code in codes]

    results = []
    failures = []
    for code, future in futures:
        try:
            results.append(future.result().as_dict())
        except Exception as e:
            logger.error(f"Verification failed for {code}: {e}")
            failures.append({"product_code": code, "error": str(e)})

    if as_json:
        click.echo(json.dumps({"results": results, "errors": failures}, indent=2, ensure_ascii=False))
    else:
        for data in results:
            _print_result(data)
        for failure in failures:
            click.echo(f"\n{failure['product_code']}: FAILED - {failure['error']}", err=True)

    if failures:
        sys.exit(1)


@cli.command()
@click.argument("code")
@click.option(
    "--source", "-s",
    type=click.Choice([s.value for s in Source], case_sensitive=False),
    default=Source.PRIMARY.value,
    show_default=True,
    help="Verification site to query",
)
@click.option("--headless/--no-headless", default=None, help="Override browser headless mode")
@click.pass_context
def probe(ctx, code: str, source: str, headless: Optional[bool]):
    """Query a single verification site directly, without cache or fallback."""
    config = ctx.obj["config"]
    scraper = build_scraper(source.lower(), config, headless=headless)

    try:
        result = scraper.extract(code)
    except Exception as e:
        logger.exception(f"Probe of {source} failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result.as_dict(), indent=2, ensure_ascii=False))


@cli.command("show-config")
@click.pass_context
def show_config(ctx):
    """Print the effective configuration."""
    click.echo(yaml.safe_dump(ctx.obj["config"], sort_keys=False, allow_unicode=True))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
