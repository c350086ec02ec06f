"""
Sample data generator for the price ingestion pipeline.

Writes deterministic pseudo-random NDJSON price files: a mix of
one-service-per-line objects and multi-service arrays, optionally with
malformed and blank lines sprinkled in, gzip-compressed when the output path
ends in `.gz`.
"""

from __future__ import annotations

import gzip
import json
import random
import sys
import time
from datetime import date, timedelta
from pathlib import Path
from typing import IO, Any, Dict, Iterator, List

import typer

app = typer.Typer(help="Generate synthetic NDJSON price files.")

_ARRANGEMENTS = ["ffs", "bundle", "capitation"]
_CODE_TYPES = [("CPT", "2024"), ("HCPCS", "2024"), ("MS-DRG", "41")]
_NAMES = ["Office Visit", "MRI Brain", "Knee Arthroscopy", "Chest X-Ray", "Lab Panel"]
_NEGOTIATED_TYPES = ["negotiated", "percentage"]
_BILLING_CLASSES = ["professional", "institutional"]
_SERVICE_CODES = ["11", "21", "22", "23", "81"]


def _service_payload(rng: random.Random, index: int) -> Dict[str, Any]:
    code_type, version = rng.choice(_CODE_TYPES)
    rates: List[Dict[str, Any]] = []
    for _ in range(rng.randint(0, 3)):
        prices = [
            {
                "negotiated_type": rng.choice(_NEGOTIATED_TYPES),
                "negotiated_rate": round(rng.uniform(10, 5_000), 2),
                "expiration_date": (
                    date(2025, 1, 1) + timedelta(days=rng.randint(0, 730))
                ).isoformat(),
                "service_code": rng.sample(_SERVICE_CODES, k=rng.randint(1, 3)),
                "billing_class": rng.choice(_BILLING_CLASSES),
            }
            for _ in range(rng.randint(1, 3))
        ]
        rates.append(
            {
                "provider_references": sorted(rng.sample(range(100, 10_000), k=rng.randint(1, 4))),
                "negotiated_prices": prices,
            }
        )
    return {
        "negotiation_arrangement": rng.choice(_ARRANGEMENTS),
        "name": f"{rng.choice(_NAMES)} #{index}",
        "billing_code_type": code_type,
        "billing_code_type_version": version,
        "billing_code": str(rng.randint(10_000, 99_999)),
        "description": "",
        "negotiated_rates": rates,
    }


def _lines(
    services: int,
    array_every: int,
    array_size: int,
    malformed_every: int,
    blank_every: int,
    seed: int,
) -> Iterator[str]:
    rng = random.Random(seed)
    emitted = 0
    line_no = 0
    while emitted < services:
        line_no += 1
        if blank_every and line_no % blank_every == 0:
            yield ""
            continue
        if malformed_every and line_no % malformed_every == 0:
            yield '{"name": "truncated record", "negotiated_rates": ['
            continue
        if array_every and line_no % array_every == 0:
            size = min(array_size, services - emitted)
            batch = [_service_payload(rng, emitted + offset) for offset in range(size)]
            emitted += size
            yield json.dumps(batch)
        else:
            yield json.dumps(_service_payload(rng, emitted))
            emitted += 1


def _open_output(path: Path) -> IO[str]:
    if path.name.endswith(".gz"):
        return gzip.open(path, "wt", encoding="utf-8")
    return path.open("w", encoding="utf-8")


def write_ndjson(
    path: Path,
    services: int,
    array_every: int = 5,
    array_size: int = 3,
    malformed_every: int = 0,
    blank_every: int = 0,
    seed: int = 42,
) -> int:
    """
    Write `services` Records to `path`; returns the number of lines written.
    """
    if 1 in (malformed_every, blank_every):
        raise ValueError("malformed_every and blank_every must be 0 or greater than 1")
    path.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with _open_output(path) as f:
        for line in _lines(services, array_every, array_size, malformed_every, blank_every, seed):
            f.write(line + "\n")
            written += 1
    return written


@app.command()
def main(
    output: Path = typer.Option(
        Path("data/sample.json.gz"),
        "--output",
        "-o",
        help="Output path; a .gz suffix produces a gzip-compressed file.",
    ),
    services: int = typer.Option(10_000, "--services", "-n", help="Number of services."),
    array_every: int = typer.Option(5, "--array-every", help="Every Nth line is an array."),
    array_size: int = typer.Option(3, "--array-size", help="Services per array line."),
    malformed_every: int = typer.Option(
        0, "--malformed-every", help="Every Nth line is malformed JSON (0 = never)."
    ),
    blank_every: int = typer.Option(0, "--blank-every", help="Every Nth line is blank."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
) -> None:
    """
    Generate a synthetic price file.
    """
    start = time.perf_counter()
    typer.echo(f"Generating {services:,} services -> {output} (seed={seed})")
    lines = write_ndjson(
        output,
        services,
        array_every=array_every,
        array_size=array_size,
        malformed_every=malformed_every,
        blank_every=blank_every,
        seed=seed,
    )
    duration = time.perf_counter() - start
    typer.echo(f"Wrote {lines:,} lines in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
