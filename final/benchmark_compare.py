#!/usr/bin/env python3
"""
benchmark_compare.py -- Compare the BWT+RLE compressor against simpler
baselines implemented in pure Python.

This utility script exercises the compressor on a small suite of
hand-crafted test data sets. Each codec is invoked to compress and then
decompress the data. The script measures the total bytes produced
(compression ratio), as well as the time taken to encode and decode.
Results are collected into a pandas DataFrame and plotted using
matplotlib.

The compressor under test is imported from ``bwt_rle``.  Two baselines
are provided here:

* ``baseline_rle`` – The same record format (u64 header followed by
  byte/u16 count records) written directly over the input with no
  transform. The header holds the input length, which places the
  sentinel at the end. This isolates how much the transform helps the
  run-length stage.

* ``baseline_raw`` – A plain copy. Serves as the ratio 1.0 reference.

Run this script directly to print a table of metrics and output a
PNG chart named ``bwt_rle_comparison_plot.png`` into the working directory.
"""

import random
import time
from typing import Callable, Dict, List, Optional, Tuple

import matplotlib
matplotlib.use('Agg') # headless backend
import matplotlib.pyplot as plt
import pandas as pd

from bwt_rle import (
    compress as bwt_compress,
    decompress as bwt_decompress,
    HEADER,
    RECORD,
    iter_runs,
    rle_decode,
)

Codec = Tuple[Callable[[bytes], bytes], Callable[[bytes], bytes]]


def baseline_rle_encode(data: bytes) -> bytes:
    """Run-length code ``data`` without transforming it first."""
    out = bytearray(HEADER.pack(len(data)))
    for b, count in iter_runs(data):
        out += RECORD.pack(b, count)
    return bytes(out)


def baseline_rle_decode(payload: bytes) -> bytes:
    """Inverse of ``baseline_rle_encode``."""
    return rle_decode(payload).payload()


def baseline_raw_encode(data: bytes) -> bytes:
    return bytes(data)


def baseline_raw_decode(payload: bytes) -> bytes:
    return bytes(payload)


CODECS: Dict[str, Codec] = {
    'bwt_rle': (bwt_compress, bwt_decompress),
    'baseline_rle': (baseline_rle_encode, baseline_rle_decode),
    'baseline_raw': (baseline_raw_encode, baseline_raw_decode),
}


def default_data_sets() -> Dict[str, bytes]:
    return {
        "repetitive_text": b"A" * 2000 + b"B" * 1000 + (b"CD" * 500),
        "english_like": (b"In compression we favor short programs and transparent circuits. " * 20),
        "source_code": open(__file__, 'rb').read()[:4096], # first 4 KiB of this script as code sample
        "byte_counter": bytes([i % 256 for i in range(4096)]),
        # use a deterministic random seed for reproducibility
        "random_bytes": bytes(random.Random(42).getrandbits(8) for _ in range(4096)),
    }


def run_benchmarks(data_sets: Optional[Dict[str, bytes]] = None,
                   plot_path: str = 'bwt_rle_comparison_plot.png'):
    """Run compression benchmarks on a suite of test data sets.

    Returns a pandas DataFrame with results for each combination of
    dataset and codec. Also writes a PNG plot to ``plot_path``.
    """
    if data_sets is None:
        data_sets = default_data_sets()
    results: List[Dict[str, object]] = []

    for name, data in data_sets.items():
        orig_len = len(data)
        for algorithm, (encode, decode) in CODECS.items():
            t0 = time.perf_counter()
            payload = encode(data)
            comp_time = (time.perf_counter() - t0) * 1000.0
            t0 = time.perf_counter()
            decoded = decode(payload)
            decomp_time = (time.perf_counter() - t0) * 1000.0
            results.append({
                'dataset': name,
                'algorithm': algorithm,
                'ratio': len(payload) / orig_len if orig_len else 1.0,
                'comp_ms': comp_time,
                'decomp_ms': decomp_time,
                'valid': decoded == data,
            })
    df = pd.DataFrame(results)
    # Create a bar chart comparing ratios and times
    fig, axs = plt.subplots(3, 1, figsize=(8, 10))
    for ax, metric, title in zip(
        axs,
        ['ratio', 'comp_ms', 'decomp_ms'],
        ['Compression Ratio (lower is better)',
         'Compression Time (ms)',
         'Decompression Time (ms)']):
        subset = df.pivot(index='dataset', columns='algorithm', values=metric)
        subset.plot.bar(ax=ax)
        ax.set_title(title)
        ax.set_ylabel(metric)
        ax.legend(loc='best', fontsize='small')
    plt.tight_layout()
    plt.savefig(plot_path, dpi=150)
    plt.close(fig)
    return df, plot_path


if __name__ == '__main__':
    df, plot_path = run_benchmarks()
    print(df)
    print(f"Plot written to {plot_path}")
