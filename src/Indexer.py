#!/usr/bin/env python3
"""
Indexer.py — directory chunking CLI

- Input: `source_dir` (default ".") and `output_dir` (default "output")
- Walks source_dir for files with a supported extension (sorted, recursive)
- PROCESS: parse -> chunk (with C enrichment) -> write one .txt per chunk as it is produced
- Per-file failures are logged and skipped; the batch continues
- Optional --symbols FILE: dump a JSON symbol table gathered across the batch
- Prints a concise JSON summary to stdout
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import chunker
from Calculators.TokenEstimator import TokenEstimator
from enrichment import SymbolTable, extract_node_details
from estimator_registry import DEFAULT_ESTIMATOR, available_token_estimators, create_token_estimator
from node_roles import LANGUAGE_EXTENSIONS, language_for_extension, roles_for_language

logger = logging.getLogger("collapse")

MAX_TOKENS_ENV = "COLLAPSE_CHUNKER_MAX_TOKENS"
ESTIMATOR_ENV = "COLLAPSE_CHUNKER_ESTIMATOR"
MODEL_ENV = "COLLAPSE_CHUNKER_MODEL"

SYMBOL_LANGUAGES = {"c"}

_UNSAFE_NAME_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def _env_value(name: str) -> str:
    return (os.environ.get(name) or "").strip()


def resolve_max_tokens(cli_value: Optional[int] = None) -> int:
    """CLI value, else COLLAPSE_CHUNKER_MAX_TOKENS, else chunker.DEFAULT_MAX_TOKENS.

    Raises:
        ValueError: when the chosen value is not a positive integer.
    """
    if cli_value is not None:
        if cli_value <= 0:
            raise ValueError(f"--max-tokens must be positive, got {cli_value}")
        return cli_value
    raw = _env_value(MAX_TOKENS_ENV)
    if not raw:
        return chunker.DEFAULT_MAX_TOKENS
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{MAX_TOKENS_ENV} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{MAX_TOKENS_ENV} must be positive, got {value}")
    return value


def resolve_estimator(name: Optional[str] = None, model_id: Optional[str] = None) -> TokenEstimator:
    """Build the token estimator named on the CLI or in the environment (default: whitespace)."""
    key = name or _env_value(ESTIMATOR_ENV) or DEFAULT_ESTIMATOR
    return create_token_estimator(key, model_id=model_id or _env_value(MODEL_ENV) or None)


def iter_source_files(root: Path, extensions: Iterable[str] = LANGUAGE_EXTENSIONS) -> Iterator[Path]:
    """Yield files under `root` whose extension is supported, in sorted order."""
    wanted = {ext.lower() for ext in extensions}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            if Path(name).suffix[1:].lower() in wanted:
                yield Path(dirpath) / name


def chunk_file_name(path: Path, index: int, base: Optional[Path] = None) -> str:
    """Unique, filesystem-safe `.txt` name for chunk `index` of `path` (relative to `base`)."""
    try:
        relative = path.relative_to(base) if base is not None else path
    except ValueError:
        relative = path
    file_identifier = _UNSAFE_NAME_RE.sub("_", relative.as_posix()).lower()
    chunk_name = f"{path.name}_chunk_{index}"
    return _UNSAFE_NAME_RE.sub("_", f"{file_identifier}_{chunk_name}").lower() + ".txt"


def render_chunk(chunk: chunker.Chunk) -> str:
    """Human-readable chunk file: provenance header, node details, then the content."""
    meta: Dict[str, Any] = chunk.metadata
    lines = [
        f"File: {chunk.path}",
        f"File Name: {Path(chunk.path).name}",
        f"Node Type: {chunk.node_type}",
        f"Start Line: {chunk.start_line}",
        f"End Line: {chunk.end_line}",
    ]
    if chunk.collapsed:
        lines.append("Collapsed: Yes")

    if chunk.node_type == "function_definition" and "body" in meta:
        body = meta["body"]
        lines.append(f"Function Name: {meta.get('name')}")
        lines.append(f"Return Type: {meta.get('return_type')}")
        lines.append("Parameters:")
        lines.extend(f"  - {p['type']} {p['name']}" for p in meta.get("parameters", []))
        lines.append("Function Body:")
        lines.append("  Variables:")
        lines.extend(f"    - {v['type']} {v['name']} (line {v['line']})" for v in body["variables"])
        lines.append("  Control Structures:")
        lines.extend(
            f"    - {cs['type']} (line {cs['line']}): {cs['condition']}" for cs in body["control_structures"]
        )
        lines.append("  Function Calls:")
        lines.extend(
            f"    - {fc['name']}({', '.join(fc['arguments'])}) (line {fc['line']})" for fc in body["function_calls"]
        )
    else:
        labels = (
            ("name", "Name"),
            ("declaration_type", "Declaration Type"),
            ("declaration_name", "Declaration Name"),
            ("usage", "Usage"),
            ("function_name", "Function Name"),
            ("path", "Include Path"),
        )
        for key, label in labels:
            if meta.get(key):
                lines.append(f"{label}: {meta[key]}")
        if meta.get("is_pointer"):
            lines.append("Is Pointer: Yes")
        if meta.get("arguments"):
            lines.append(f"Arguments: {', '.join(meta['arguments'])}")

    return "\n".join(lines) + f"\n\nContent:\n{chunk.content}\n"


def write_chunks(
        path: Path,
        out_dir: Path,
        max_tokens: int,
        estimator: TokenEstimator,
        symbols: Optional[SymbolTable] = None,
        base: Optional[Path] = None,
) -> int:
    """Chunk one file and write each chunk as soon as it is produced.

    Returns:
        Number of chunks written.
    """
    language = language_for_extension(path.suffix)
    if not language:
        logger.warning("Skipping unsupported file: %s", path)
        return 0

    source = path.read_bytes()
    tree = chunker.parse_source(source, language)
    if symbols is not None and language in SYMBOL_LANGUAGES:
        symbols.record_tree(tree.root_node, source, str(path))

    count = 0
    for chunk in chunker.iter_chunks(
            tree.root_node,
            source,
            max_tokens,
            estimator=estimator,
            roles=roles_for_language(language),
            decorate=extract_node_details,
            path=str(path),
            language=language,
    ):
        target = out_dir / chunk_file_name(path, count, base)
        target.write_text(render_chunk(chunk), encoding="utf-8")
        count += 1
    logger.debug("File %s produced %d chunks", path, count)
    return count


def process_directory(
        source_dir: Path,
        out_dir: Path,
        max_tokens: int,
        estimator: TokenEstimator,
        symbols: Optional[SymbolTable] = None,
) -> Dict[str, Any]:
    """Chunk every supported file under `source_dir`.

    Returns:
        Summary dict. Per-file failures are logged and listed under "failed".
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    processed = 0
    total = 0
    failed: List[str] = []
    for p in iter_source_files(source_dir):
        logger.info("Processing file: %s", p)
        try:
            total += write_chunks(p, out_dir, max_tokens, estimator, symbols=symbols, base=source_dir)
            processed += 1
        except Exception as e:
            logger.error("Failed processing %s: %s", p, e)
            failed.append(str(p))
    return {
        "source_dir": str(source_dir),
        "output_dir": str(out_dir),
        "max_tokens": max_tokens,
        "processed_files": processed,
        "written_chunks": total,
        "failed": failed,
    }


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint.

    - Resolves budget and estimator (flags win over environment)
    - Chunks every supported file under source_dir into output_dir
    - Optionally writes the symbol table as JSON
    - Prints JSON summary
    """
    parser = argparse.ArgumentParser(description="Write structure-preserving chunks for every source file.")
    parser.add_argument("source_dir", nargs="?", default=".", help="Directory to walk (default: .)")
    parser.add_argument("output_dir", nargs="?", default="output", help="Directory for chunk files (default: output)")
    parser.add_argument("--max-tokens", type=int, help=f"Token budget per chunk (env {MAX_TOKENS_ENV})")
    parser.add_argument(
        "--estimator",
        choices=list(available_token_estimators()),
        help=f"Token estimator (env {ESTIMATOR_ENV}, default {DEFAULT_ESTIMATOR})",
    )
    parser.add_argument("--model", help=f"Model id for the 'model' estimator (env {MODEL_ENV})")
    parser.add_argument("--symbols", help="Write a JSON symbol table for C files to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        max_tokens = resolve_max_tokens(args.max_tokens)
        estimator = resolve_estimator(args.estimator, args.model)
    except ValueError as e:
        parser.error(str(e))
    symbols = SymbolTable() if args.symbols else None

    summary = process_directory(Path(args.source_dir), Path(args.output_dir), max_tokens, estimator, symbols)

    if symbols is not None:
        Path(args.symbols).write_text(json.dumps(symbols.to_dict(), indent=2), encoding="utf-8")
        summary["symbols"] = args.symbols
    print(json.dumps(summary, ensure_ascii=False))


if __name__ == "__main__":
    main()
