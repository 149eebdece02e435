import sys
import random
from pathlib import Path
import importlib
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture()
def m():
    """Lazily import the main module for tests to avoid module-level import."""
    return importlib.import_module("main")


@pytest.fixture()
def payload():
    """Deterministic pseudo-random bytes, sized to cross many symbol cycles."""
    rng = random.Random(0x4E00)
    return bytes(rng.getrandbits(8) for _ in range(1000))


@pytest.fixture()
def chunkings():
    """Provide a helper splitting a sequence at fixed and random cut points."""

    def split(seq, seed=0):
        rng = random.Random(seed)
        yield [seq]
        yield [seq[i:i + 1] for i in range(len(seq))]
        cuts = sorted(rng.sample(range(len(seq) + 1), min(5, len(seq) + 1)))
        bounds = [0] + cuts + [len(seq)]
        yield [seq[a:b] for a, b in zip(bounds, bounds[1:])]

    return split


@pytest.fixture()
def sample_file(tmp_path: Path):
    """Create a binary file containing every byte value plus some text."""
    path = tmp_path / "sample.bin"
    path.write_bytes(bytes(range(256)) + "Hello, 世界!\n".encode("utf-8"))
    return path
