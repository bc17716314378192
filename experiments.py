"""
Experiment harness: Huffman tree decode vs. decode from a rebuilt code table

Runs repeated compress/decompress experiments on synthetic data to measure
compression and the cost of shipping the code table.

Outputs (in --outdir):
  - metrics.csv     (raw row per run per pipeline)
  - summary.csv     (grouped mean/stdev)
  - *.png           (charts)

How to run:
  huffman-experiments --outdir results --runs 5
  huffman-experiments --outdir results --runs 3 --no_exp2 --exp1_generators zipf128,english_like

Pipelines:
  tree   decode with the tree built from the counts
  table  write the code table, rebuild the tree from its text, decode with that
"""

from __future__ import annotations

import argparse
import csv
import io
import logging
import math
import random
import statistics
import time
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt

from bitio import BitInputStream, BitOutputStream
from compressor import ALPHABET_SIZE, count_symbols, encode
from huffman import HuffmanTree

logger = logging.getLogger(__name__)

PIPELINES = ("tree", "table")


def now_ns() -> int:
    return time.perf_counter_ns()

def ns_to_ms(ns: int) -> float:
    return ns / 1_000_000.0

def entropy_bits(counts: Sequence[int]) -> float:
    """Shannon entropy in bits per symbol."""
    total = sum(counts)
    if total == 0:
        return 0.0
    return -sum((c / total) * math.log2(c / total) for c in counts if c > 0)


# Synthetic datasets

def gen_uniform(size: int, alphabet: int = 256, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    return bytes(rng.randrange(alphabet) for _ in range(size))

def gen_repetitive(size: int, dominant: int = ord('A'), dom_frac: float = 0.90, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    others = [i for i in range(256) if i != dominant]
    return bytes(dominant if rng.random() < dom_frac else rng.choice(others) for _ in range(size))

def gen_zipf_like(size: int, alphabet: int = 128, s: float = 1.2, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    weights = [1.0 / ((i + 1) ** s) for i in range(alphabet)]
    return bytes(rng.choices(range(alphabet), weights=weights, k=size))

def gen_english_like(size: int, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    chars = " etaoinshrdlcumwfgypbvkjxq\n"
    weights = [13.0] + [6.0] * 12 + [2.5] * 10 + [1.2] * 3 + [1.5]
    return "".join(rng.choices(chars, weights=weights, k=size)).encode("ascii")

GENERATOR_REGISTRY: Dict[str, Callable[[int, int], bytes]] = {
    "uniform256": lambda size, seed: gen_uniform(size, alphabet=256, seed=seed),
    "uniform128": lambda size, seed: gen_uniform(size, alphabet=128, seed=seed),
    "zipf128": lambda size, seed: gen_zipf_like(size, alphabet=128, s=1.2, seed=seed),
    "repetitive90": lambda size, seed: gen_repetitive(size, dom_frac=0.90, seed=seed),
    "repetitive99": lambda size, seed: gen_repetitive(size, dom_frac=0.99, seed=seed),
    "english_like": lambda size, seed: gen_english_like(size, seed=seed),
}

def generate_dataset(name: str, size_bytes: int, seed: int) -> Tuple[str, bytes]:
    """Unknown names fall back to uniform256 so a long sweep does not stop."""
    fn = GENERATOR_REGISTRY.get(name)
    if fn is None:
        logger.warning("unknown generator %r, using uniform256", name)
        return f"{name}_fallback_uniform256", gen_uniform(size_bytes, alphabet=256, seed=seed)
    return name, fn(size_bytes, seed)


# Experiment runner

@dataclass
class MetricRow:
    exp_name: str
    dataset_name: str
    file_size_bytes: int
    run_id: int
    pipeline: str  # "tree" or "table"
    unique_symbols: int

    build_tree_ms: float
    table_ms: float
    encode_ms: float
    decode_ms: float
    total_ms: float

    compressed_bytes: int
    table_bytes: int
    pad_bits: int
    compression_ratio: float
    bits_per_symbol: float
    entropy_bits: float
    correctness_ok: int  # 1 or 0


def run_one(data: bytes, pipeline: str) -> MetricRow:
    if pipeline not in PIPELINES:
        raise ValueError(f"pipeline must be one of {PIPELINES}, got {pipeline!r}")
    counts = count_symbols(data)

    t0 = now_ns()
    tree = HuffmanTree.from_counts(counts)
    build_tree_ms = ns_to_ms(now_ns() - t0)

    t0 = now_ns()
    out = io.BytesIO()
    with BitOutputStream(out) as bits:
        payload_bits = encode(data, tree, bits)
    pad_bits = (-payload_bits) % 8
    packed = out.getvalue()
    encode_ms = ns_to_ms(now_ns() - t0)

    table = tree.to_code()
    table_ms = 0.0
    if pipeline == "table":
        t0 = now_ns()
        tree = HuffmanTree.from_code(table, eof=ALPHABET_SIZE)
        table_ms = ns_to_ms(now_ns() - t0)

    t0 = now_ns()
    decoded = io.BytesIO()
    tree.decode(BitInputStream(packed), decoded)
    decode_ms = ns_to_ms(now_ns() - t0)

    return MetricRow(
        exp_name="",
        dataset_name="",
        file_size_bytes=len(data),
        run_id=0,
        pipeline=pipeline,
        unique_symbols=sum(1 for c in counts if c > 0),
        build_tree_ms=build_tree_ms,
        table_ms=table_ms,
        encode_ms=encode_ms,
        decode_ms=decode_ms,
        total_ms=build_tree_ms + table_ms + encode_ms + decode_ms,
        compressed_bytes=len(packed),
        table_bytes=len(table),
        pad_bits=pad_bits,
        compression_ratio=len(packed) / max(1, len(data)),
        bits_per_symbol=payload_bits / max(1, len(data)),
        entropy_bits=entropy_bits(counts),
        correctness_ok=1 if decoded.getvalue() == data else 0,
    )


def write_csv(path: Path, rows: List[MetricRow]) -> None:
    names = [f.name for f in fields(MetricRow)]
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=names)
        w.writeheader()
        for r in rows:
            w.writerow({k: getattr(r, k) for k in names})


SUMMARY_METRICS = ("compression_ratio", "bits_per_symbol", "encode_ms", "decode_ms",
                   "build_tree_ms", "table_ms", "total_ms")

def mean_stdev(vals: List[float]) -> Tuple[float, float]:
    if len(vals) == 1:
        return vals[0], 0.0
    return statistics.mean(vals), statistics.stdev(vals)

def group_summary(rows: List[MetricRow], out_path: Path) -> None:
    """Group by exp_name, dataset_name, file_size_bytes, pipeline; mean/stdev per metric."""
    groups: Dict[Tuple[str, str, int, str], List[MetricRow]] = {}
    for r in rows:
        groups.setdefault((r.exp_name, r.dataset_name, r.file_size_bytes, r.pipeline), []).append(r)

    header = ["exp_name", "dataset_name", "file_size_bytes", "pipeline", "n_runs", "table_bytes_mean"]
    for m in SUMMARY_METRICS:
        header += [f"{m}_mean", f"{m}_stdev"]
    header.append("correctness_ok_rate")

    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=header)
        w.writeheader()
        for (exp_name, dataset_name, size_b, pipeline), items in sorted(groups.items()):
            row = {
                "exp_name": exp_name,
                "dataset_name": dataset_name,
                "file_size_bytes": size_b,
                "pipeline": pipeline,
                "n_runs": len(items),
                "table_bytes_mean": statistics.mean(x.table_bytes for x in items),
                "correctness_ok_rate": sum(x.correctness_ok for x in items) / len(items),
            }
            for m in SUMMARY_METRICS:
                row[f"{m}_mean"], row[f"{m}_stdev"] = mean_stdev([getattr(x, m) for x in items])
            w.writerow(row)


# Plotting

def _line_chart(outdir: Path, name: str, x, series: Dict[str, List[float]], *,
                title: str, ylabel: str, xlabel: Optional[str] = None,
                xticklabels: Optional[List[str]] = None) -> None:
    plt.figure()
    for label, y in series.items():
        plt.plot(x, y, marker="o", label=label)
    if xticklabels is not None:
        plt.xticks(x, xticklabels, rotation=20, ha="right")
    if xlabel:
        plt.xlabel(xlabel)
    plt.ylabel(ylabel)
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(outdir / name, dpi=200)
    plt.close()


def plot_experiment_1(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp1_distribution"]
    if not exp_rows:
        return

    datasets = sorted(set(r.dataset_name for r in exp_rows))
    x = list(range(len(datasets)))

    def mean_for(dataset: str, field: str, pipeline: Optional[str] = None) -> float:
        vals = [getattr(r, field) for r in exp_rows
                if r.dataset_name == dataset and (pipeline is None or r.pipeline == pipeline)]
        return statistics.mean(vals) if vals else float("nan")

    _line_chart(outdir, "exp1_compression_ratio.png", x,
                {"payload": [mean_for(d, "compression_ratio") for d in datasets]},
                title="Experiment 1: Compression Ratio by Distribution",
                ylabel="Compressed Bytes / Original Bytes", xticklabels=datasets)

    # Huffman stays within 1 bit of the entropy
    _line_chart(outdir, "exp1_bits_per_symbol.png", x,
                {"huffman": [mean_for(d, "bits_per_symbol") for d in datasets],
                 "entropy": [mean_for(d, "entropy_bits") for d in datasets]},
                title="Experiment 1: Code Length vs Entropy",
                ylabel="Bits per Symbol", xticklabels=datasets)

    _line_chart(outdir, "exp1_decode_time.png", x,
                {p: [mean_for(d, "decode_ms", p) for d in datasets] for p in PIPELINES},
                title="Experiment 1: Decode Time by Distribution",
                ylabel="Decode Time (ms)", xticklabels=datasets)


def plot_experiment_2(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp2_size_scaling"]
    if not exp_rows:
        return

    for dist in sorted(set(r.dataset_name for r in exp_rows)):
        dist_rows = [r for r in exp_rows if r.dataset_name == dist]
        sizes = sorted(set(r.file_size_bytes for r in dist_rows))

        def mean_size(size: int, pipeline: str, field: str) -> float:
            vals = [getattr(r, field) for r in dist_rows if r.file_size_bytes == size and r.pipeline == pipeline]
            return statistics.mean(vals) if vals else float("nan")

        _line_chart(outdir, f"exp2_total_time_{dist}.png", sizes,
                    {p: [mean_size(s, p, "total_ms") for s in sizes] for p in PIPELINES},
                    title=f"Experiment 2: Total Runtime vs Size ({dist})",
                    ylabel="Total Time (ms) (build + table + encode + decode)", xlabel="File Size (bytes)")

        # table overhead shrinks relative to payload as the file grows
        _line_chart(outdir, f"exp2_ratio_with_table_{dist}.png", sizes,
                    {"payload": [mean_size(s, "table", "compression_ratio") for s in sizes],
                     "payload + table": [(mean_size(s, "table", "compressed_bytes")
                                          + mean_size(s, "table", "table_bytes")) / s for s in sizes]},
                    title=f"Experiment 2: Compression Ratio vs Size ({dist})",
                    ylabel="Compressed Bytes / Original Bytes", xlabel="File Size (bytes)")


# Main

def parse_csv_list(s: str) -> List[str]:
    return [x.strip() for x in s.split(",") if x.strip()]

def size_ladder(min_kb: int, max_kb: int) -> List[int]:
    """Byte sizes doubling from min_kb up to max_kb."""
    sizes = []
    size_b = max(1, min_kb) * 1024
    while size_b <= max(1, max_kb) * 1024:
        sizes.append(size_b)
        size_b *= 2
    return sizes

def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="huffman-experiments",
                                 description="Benchmark the tree and table decode pipelines")
    ap.add_argument("--outdir", type=str, default="results", help="Where metrics, summary and charts go")
    ap.add_argument("--runs", type=int, default=5, help="Runs per dataset and size")
    ap.add_argument("--seed", type=int, default=123, help="Seed offset for the dataset generators")
    ap.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")

    ap.add_argument("--no_exp1", action="store_true", help="Skip the distribution sweep")
    ap.add_argument("--no_exp2", action="store_true", help="Skip the size sweep")

    ap.add_argument("--exp1_size_kb", type=int, default=256, help="Dataset size for the distribution sweep, KB")
    ap.add_argument("--exp1_generators", type=str, default="uniform256,zipf128,repetitive90,english_like",
                    help=f"Generators for the distribution sweep, from: {', '.join(GENERATOR_REGISTRY)}")

    ap.add_argument("--exp2_min_kb", type=int, default=1, help="Smallest size in the size sweep, KB")
    ap.add_argument("--exp2_max_kb", type=int, default=1024, help="Largest size in the size sweep, KB")
    ap.add_argument("--exp2_generators", type=str, default="zipf128,english_like",
                    help="Generators for the size sweep")

    args = ap.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    rows: List[MetricRow] = []

    def record(exp_name: str, gen_name: str, size_b: int, seed: int) -> None:
        for run_id in range(1, args.runs + 1):
            dataset_name, data = generate_dataset(gen_name, size_b, seed + run_id)
            for pipeline in PIPELINES:
                row = run_one(data, pipeline)
                row.exp_name, row.dataset_name, row.run_id = exp_name, dataset_name, run_id
                rows.append(row)
                logger.info("%s %s %dB %s: ratio %.3f", exp_name, dataset_name, size_b, pipeline,
                            row.compression_ratio)

    if not args.no_exp1:
        for gen_name in parse_csv_list(args.exp1_generators):
            record("exp1_distribution", gen_name, max(1, args.exp1_size_kb) * 1024, args.seed)

    if not args.no_exp2:
        for gen_name in parse_csv_list(args.exp2_generators):
            for size_b in size_ladder(args.exp2_min_kb, args.exp2_max_kb):
                record("exp2_size_scaling", gen_name, size_b, args.seed + 10_000 + size_b)

    write_csv(outdir / "metrics.csv", rows)
    group_summary(rows, outdir / "summary.csv")
    plot_experiment_1(rows, outdir)
    plot_experiment_2(rows, outdir)

    failed = sum(1 for r in rows if not r.correctness_ok)
    print(f"{len(rows)} runs, {failed} failed round trips; results in {outdir.resolve()}")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
