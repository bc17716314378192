"""
Text-file compressor built on the Huffman tree codec

Compressing FILE writes two files beside it:
  - FILE.code   (code table: symbol id and bit path, one per line)
  - FILE.short  (packed bitstream, terminated by the end-of-stream code)

How to run:
  huffman-compress compress notes.txt
  huffman-compress decompress notes.code notes.short --output notes.new
"""

from __future__ import annotations

import argparse
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from bitio import BitInputStream, BitOutputStream
from huffman import HuffmanTree

logger = logging.getLogger(__name__)

ALPHABET_SIZE = 256  # byte values; id 256 is end-of-stream
CODE_SUFFIX = ".code"
SHORT_SUFFIX = ".short"


def count_symbols(data: bytes, alphabet_size: int = ALPHABET_SIZE) -> List[int]:
    counts = [0] * alphabet_size
    for b in data:
        counts[b] += 1
    return counts


def encode(data: bytes, tree: HuffmanTree, bits: BitOutputStream) -> int:
    """
    Write the code of every byte in data, then the end-of-stream code.
    Returns the number of bits written.
    """
    codes = tree.codes()
    start = bits.bits_written
    for b in data:
        code = codes.get(b)
        if code is None:
            raise ValueError(f"byte {b} has no code in this tree")
        bits.write_code(code)
    bits.write_code(codes[tree.eof])
    return bits.bits_written - start


def compress(data: bytes) -> Tuple[str, bytes]:
    """Returns (code table text, packed payload)."""
    tree = HuffmanTree.from_counts(count_symbols(data))
    out = io.BytesIO()
    with BitOutputStream(out) as bits:
        encode(data, tree, bits)
    return tree.to_code(), out.getvalue()


def decompress(table: str, payload: bytes) -> bytes:
    tree = HuffmanTree.from_code(table, eof=ALPHABET_SIZE)
    out = io.BytesIO()
    tree.decode(BitInputStream(payload), out)
    return out.getvalue()


@dataclass
class CompressionStats:
    source_bytes: int
    payload_bytes: int
    table_bytes: int
    code_path: Path
    short_path: Path

    @property
    def ratio(self) -> float:
        return self.payload_bytes / max(1, self.source_bytes)


def compress_file(path: Path, code_path: Optional[Path] = None,
                  short_path: Optional[Path] = None) -> CompressionStats:
    path = Path(path)
    code_path = Path(code_path) if code_path else path.with_suffix(CODE_SUFFIX)
    short_path = Path(short_path) if short_path else path.with_suffix(SHORT_SUFFIX)
    resolved = [p.resolve() for p in (path, code_path, short_path)]
    if len(set(resolved)) != 3:
        raise ValueError(f"{path}, {code_path} and {short_path} must be three different files")

    data = path.read_bytes()
    table, payload = compress(data)

    # table is ASCII; keep "\n" on every platform
    with code_path.open("w", encoding="ascii", newline="\n") as f:
        f.write(table)
    short_path.write_bytes(payload)

    logger.info("compressed %s (%dB) -> %s (%dB) + %s (%dB)",
                path, len(data), short_path, len(payload), code_path, len(table))
    return CompressionStats(len(data), len(payload), len(table), code_path, short_path)


def decompress_file(code_path: Path, short_path: Path, out_path: Path) -> int:
    """Returns the number of bytes written to out_path."""
    with Path(code_path).open("r", encoding="ascii", newline="") as f:
        tree = HuffmanTree.from_code(f, eof=ALPHABET_SIZE)
    with Path(short_path).open("rb") as src, Path(out_path).open("wb") as dst:
        written = tree.decode(BitInputStream(src), dst)
    logger.info("decompressed %s -> %s (%dB)", short_path, out_path, written)
    return written


# Main

def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="huffman-compress", description="Huffman text-file compressor")
    ap.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = ap.add_subparsers(dest="command", required=True)

    c = sub.add_parser("compress", help="Write FILE.code and FILE.short")
    c.add_argument("file", type=Path)
    c.add_argument("--code", type=Path, default=None, help="Code table path (default: FILE.code)")
    c.add_argument("--short", type=Path, default=None, help="Bitstream path (default: FILE.short)")

    d = sub.add_parser("decompress", help="Rebuild the original file from .code and .short")
    d.add_argument("code", type=Path)
    d.add_argument("short", type=Path)
    d.add_argument("--output", type=Path, default=None, help="Output path (default: SHORT with .new suffix)")

    args = ap.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "compress":
            stats = compress_file(args.file, args.code, args.short)
            print(f"{args.file}: {stats.source_bytes}B -> {stats.payload_bytes}B "
                  f"(ratio {stats.ratio:.3f}, table {stats.table_bytes}B)")
        else:
            out_path = args.output or args.short.with_suffix(".new")
            written = decompress_file(args.code, args.short, out_path)
            print(f"Wrote {written}B to {out_path}")
    except (ValueError, OSError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
