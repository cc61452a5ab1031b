"""CLI implementation for httpreaderat."""

import json
import sys
from pathlib import Path
from typing import Optional

import typer

from . import open_reader_at
from .io.base import DEFAULT_BLOCK_SIZE, DEFAULT_CACHE_COUNT
from .io.http_sync import HTTPReaderAt

app = typer.Typer(add_completion=False, help="Read byte ranges of a remote file over HTTP.")


def reader_info(reader: HTTPReaderAt) -> dict:
    return {
        "url": reader.url,
        "length": reader.length,
        "block_size": reader.block_size,
        "cached_blocks": len(reader.cache),
        "requests_made": reader.requests_made,
        "bytes_fetched": reader.bytes_fetched,
    }


@app.command()
def main(
    url: str = typer.Argument(..., help="URL of a server that accepts byte ranges"),
    offset: int = typer.Option(0, "--offset", min=0, help="Absolute offset of the first byte"),
    length: Optional[int] = typer.Option(None, "--length", min=0, help="Bytes to read (default: up to the end)"),
    block_size: int = typer.Option(DEFAULT_BLOCK_SIZE, "--block-size", min=1, help="Cache block size in bytes"),
    cache_count: int = typer.Option(DEFAULT_CACHE_COUNT, "--cache-count", min=1, help="Number of blocks to cache"),
    set_length: Optional[int] = typer.Option(None, "--set-length", min=0, help="Skip the length probe and use this size"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to PATH instead of stdout"),
    info: bool = typer.Option(False, "--info", help="Print reader statistics as JSON instead of data"),
):
    """Fetch OFFSET..OFFSET+LENGTH of URL using block-aligned range requests."""
    try:
        reader = open_reader_at(url, length=set_length, block_size=block_size, cache_count=cache_count)

        if length is None:
            if reader.length < 0:
                typer.echo("Resource length unknown, pass --length.", err=True)
                raise typer.Exit(code=1)
            length = max(0, reader.length - offset)

        buf = bytearray(length)
        n = reader.read_at(buf, offset)
    except (OSError, EOFError, ValueError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)

    if info:
        typer.echo(json.dumps(reader_info(reader), indent=2))
        return

    data = bytes(buf[:n])
    if output:
        output.write_bytes(data)
    else:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()


if __name__ == "__main__":
    app()
