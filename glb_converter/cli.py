"""Command-line entry point: ``glb-converter <scene.gltf|scene.glb>``.

Writes the asset tree to ``./scene`` and prints a JSON summary. Without an
input path it prints usage and exits successfully without writing anything.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict

from .converter import convert_document
from .emitter import DEFAULT_OUTPUT_ROOT
from .errors import InputNotFoundError, ParseFailureError


EXIT_OK = 0
EXIT_PARSE_ERROR = 11
EXIT_IO_ERROR = 12


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glb-converter",
        description="Convert a glTF/GLB scene into engine-ready JSON and binary assets.",
    )
    parser.add_argument("input", nargs="?", help="Path to the .gltf or .glb document.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.input is None:
        parser.print_usage(sys.stderr)
        print("No file given", file=sys.stderr)
        return EXIT_OK

    try:
        summary = convert_document(args.input, DEFAULT_OUTPUT_ROOT)
    except InputNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_IO_ERROR
    except ParseFailureError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_PARSE_ERROR
    except OSError as exc:
        print(f"I/O error writing outputs: {exc}", file=sys.stderr)
        return EXIT_IO_ERROR

    for warning in summary.warnings:
        print(f"[warn] {warning}", file=sys.stderr)
    print(json.dumps(asdict(summary), indent=2))
    return EXIT_OK
