"""Click CLI for the PT502 decoder.

Entry point registered in ``pyproject.toml`` as ``pt502-decoder``.

Subcommands::

    pt502-decoder decode CAPTURE               # replay a capture file to NDJSON
    pt502-decoder coordinate format 37.39      # canonical coordinate text
    pt502-decoder coordinate patch 37.39 5 5000
    pt502-decoder status 0A3                   # unpack a status word
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
import orjson

from pt502_decoder import __version__
from pt502_decoder.capture import classify_line, malformed
from pt502_decoder.config import AppConfig, LogFileConfig, load_config
from pt502_decoder.coordinates import apply_patch, format_coordinate
from pt502_decoder.decoder import Pt502Decoder
from pt502_decoder.delta import DecodeError
from pt502_decoder.filter import PositionFilter
from pt502_decoder.models import MalformedEvent
from pt502_decoder.output import FileSink, StdoutSink
from pt502_decoder.providers import InMemoryDeviceRegistry, InMemoryPositionStore
from pt502_decoder.status import unpack_status
from pt502_decoder.transform import Transformer

logger = logging.getLogger("pt502_decoder")

DEFAULT_CONFIG = "/etc/pt502/config.json"


# ── structured JSON log formatter ───────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        obj = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj).decode()


def _setup_logging(level: str, log_file_config: Optional[LogFileConfig] = None) -> None:
    """Configure the root logger with JSON output on stderr + optional file."""
    root = logging.getLogger()
    level = "warning" if level == "warn" else level
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Reconfiguring replaces handlers installed by an earlier call
    for handler in list(root.handlers):
        if isinstance(handler.formatter, _JsonFormatter):
            root.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_JsonFormatter())
    root.addHandler(stderr_handler)

    if log_file_config and log_file_config.enabled:
        from logging.handlers import RotatingFileHandler

        Path(log_file_config.path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=log_file_config.path,
            maxBytes=log_file_config.max_size_bytes,
            backupCount=log_file_config.backup_count,
        )
        file_handler.setFormatter(_JsonFormatter())
        root.addHandler(file_handler)


def _load(config_path: Optional[str]) -> AppConfig:
    """Load the config file, or defaults when none is given or installed."""
    cfg_path = config_path or os.environ.get("PT502_CONFIG")
    if cfg_path is None and Path(DEFAULT_CONFIG).exists():
        cfg_path = DEFAULT_CONFIG
    if cfg_path is None:
        return AppConfig()
    return load_config(cfg_path)


# ── main CLI group ──────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.option("-c", "--config", "config_path", default=None, help="Config file path.")
@click.option("--log-level", default=None,
              type=click.Choice(["debug", "info", "warn", "error"]),
              help="Log verbosity.")
@click.option("--validate-config", "validate_only", is_flag=True,
              help="Validate config and exit.")
@click.version_option(__version__)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Optional[str],
    log_level: Optional[str],
    validate_only: bool,
) -> None:
    """PT502 decoder: tracker reports and delta frames to NDJSON."""
    try:
        cfg = _load(config_path)
    except Exception as exc:
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(1) from exc

    if validate_only:
        click.echo("Configuration is valid.", err=True)
        raise SystemExit(0)

    effective_level = log_level or os.environ.get("PT502_LOG_LEVEL") or cfg.logging.level
    _setup_logging(effective_level, cfg.logging.file)
    ctx.obj = cfg

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── decode ──────────────────────────────────────────────────────────


@main.command()
@click.argument("capture", type=click.File("r", encoding="latin-1"))
@click.option("-o", "--output", "output_mode", type=click.Choice(["stdout", "file"]),
              default="stdout", help="Output mode (default: stdout).")
@click.option("-d", "--output-dir", default=None, help="Override output directory.")
@click.option("-s", "--session", default="capture", help="Session name for the replayed messages.")
@click.pass_obj
def decode(cfg: AppConfig, capture, output_mode: str, output_dir: Optional[str], session: str) -> None:
    """Replay CAPTURE (one message per line, binary frames as ``hex:``) to NDJSON."""
    if output_dir:
        cfg.output.file.output_dir = output_dir

    if output_mode == "stdout":
        sink = StdoutSink()
    else:
        fc = cfg.output.file
        sink = FileSink(
            output_dir=fc.output_dir,
            prefix=fc.file_prefix,
            instance_id=cfg.instance_id,
            rotation_seconds=fc.rotation.interval_seconds,
            rotation_bytes=fc.rotation.max_size_bytes,
        )

    logger.info(
        "Starting pt502-decoder %s (instance=%s, output=%s)",
        __version__,
        cfg.instance_id,
        output_mode,
    )
    try:
        count = _replay(cfg, capture, sink, session)
    finally:
        sink.close()
    logger.info("Replay finished (wrote %d records)", count)


def _replay(cfg: AppConfig, lines, sink, session: str) -> int:
    """Core loop: classify → decode → update baseline → filter → transform → output."""
    registry = InMemoryDeviceRegistry(cfg.registry.devices, cfg.registry.register_unknown)
    positions = InMemoryPositionStore()
    decoder = Pt502Decoder(
        registry,
        positions,
        send_reply=lambda text: logger.info("Reply to %s: %r", session, text),
    )
    filt = PositionFilter(cfg.filter)
    xform = Transformer(instance_id=cfg.instance_id, session=session)
    source = {"instance_id": cfg.instance_id, "session": session}

    count = 0
    for line in lines:
        message = classify_line(line, instance_id=cfg.instance_id, session=session)
        if message is None:
            continue

        if isinstance(message, MalformedEvent):
            data = xform.transform_malformed(message)
        else:
            try:
                position = decoder.decode(session, message)
            except DecodeError as exc:
                data = xform.transform_malformed(
                    malformed("truncated_frame", str(exc), message, source)
                )
            else:
                if position is None:
                    continue
                positions.update(position)
                unique_id = registry.get_unique_id(position.device_id)
                if filt.apply(position, unique_id) is None:
                    continue
                data = xform.transform(position, unique_id)

        try:
            sink.write(data)
        except BrokenPipeError:
            break
        count += 1
    return count


# ── codec helpers ───────────────────────────────────────────────────


@main.group()
def coordinate() -> None:
    """Inspect the canonical coordinate text form."""


@coordinate.command("format")
@click.argument("value", type=float)
@click.option("--longitude", is_flag=True, help="Use E/W instead of N/S.")
def coordinate_format(value: float, longitude: bool) -> None:
    """Print the text form of VALUE (decimal degrees)."""
    hemispheres = ("E", "W") if longitude else ("N", "S")
    click.echo(format_coordinate(value, *hemispheres))


@coordinate.command("patch")
@click.argument("value", type=float)
@click.argument("index", type=int)
@click.argument("payload")
@click.option("--longitude", is_flag=True, help="Use E/W instead of N/S.")
def coordinate_patch(value: float, index: int, payload: str, longitude: bool) -> None:
    """Apply PAYLOAD at INDEX to the text form of VALUE and print the result."""
    hemispheres = ("E", "W") if longitude else ("N", "S")
    patched = apply_patch(value, index, payload, *hemispheres)
    click.echo(f"{format_coordinate(value, *hemispheres)} -> {patched:.6f}")


@main.command()
@click.argument("word")
def status(word: str) -> None:
    """Unpack a three-hex-digit status WORD."""
    try:
        value = int(word, 16)
    except ValueError as exc:
        raise click.BadParameter(f"not hexadecimal: {word}") from exc
    unpacked = unpack_status(value)
    click.echo(orjson.dumps(unpacked._asdict()).decode())
