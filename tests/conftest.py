"""Pytest configuration and fixtures for dwellmap tests."""


import pytest

from dwellmap.clock import ManualClock
from dwellmap.config import EngineConfig
from dwellmap.errors import SymbolResolutionError
from dwellmap.ranges import LineRange
from dwellmap.sampler import DocumentInfo
from dwellmap.symbols import SymbolInfo, SymbolKind


class FakeViewportProvider:
    """Viewport provider whose active document and ranges are set by the test."""

    def __init__(self):
        self.document = None
        self.ranges = []

    def show(self, path, start, end, language_id="typescript", line_count=200, scheme="file"):
        self.document = DocumentInfo(path, language_id, scheme=scheme, line_count=line_count)
        self.ranges = [LineRange(start, end)]

    def close(self):
        self.document = None
        self.ranges = []

    def active_document(self):
        return self.document

    def visible_line_intervals(self):
        return list(self.ranges) if self.document else None


class RecordingRevealer:
    def __init__(self):
        self.calls = []

    def reveal(self, file_path, start_line, end_line):
        self.calls.append((file_path, start_line, end_line))


class FakeSymbolResolver:
    """Returns canned symbol trees keyed by file name."""

    def __init__(self, symbols=None, failing=(), deleting=()):
        self.symbols = symbols or {}
        self.failing = set(failing)
        self.deleting = set(deleting)
        self.calls = []

    def resolve_symbols(self, file_path):
        self.calls.append(file_path.name)
        if file_path.name in self.failing:
            raise SymbolResolutionError(f"cannot resolve {file_path.name}")
        if file_path.name in self.deleting:
            file_path.unlink()
        return self.symbols.get(file_path.name, [])


@pytest.fixture
def clock():
    return ManualClock(0)


@pytest.fixture
def config():
    return EngineConfig(start_timers=False)


@pytest.fixture
def provider():
    return FakeViewportProvider()


@pytest.fixture
def revealer():
    return RecordingRevealer()


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def workspace(tmp_path):
    """A workspace with a couple of source files on disk."""
    root = tmp_path / "workspace"
    src = root / "src"
    src.mkdir(parents=True)
    (src / "a.ts").write_text("\n".join(f"line {i}" for i in range(100)) + "\n")
    (src / "b.ts").write_text("\n".join(f"line {i}" for i in range(60)) + "\n")
    (src / "models.py").write_text("class Model:\n    pass\n")
    return root


@pytest.fixture
def class_and_variable_symbols():
    """a.ts holds a class over lines 0-40; b.ts a variable over lines 0-40."""
    return {
        "a.ts": [SymbolInfo(SymbolKind.CLASS, "Widget", 0, 40)],
        "b.ts": [SymbolInfo(SymbolKind.VARIABLE, "settings", 0, 40)],
    }


@pytest.fixture
def sample_python_code():
    """Sample Python code for testing."""
    return '''def calculate_sum(a: int, b: int) -> int:
    """Calculate the sum of two numbers."""
    total = a + b
    return total


class Calculator:
    """A simple calculator class."""

    precision = 2

    def __init__(self):
        self.history = []

    def add(self, x, y):
        result = x + y
        self.history.append(result)
        return result


MAX_VALUE = 100
'''


@pytest.fixture
def make_resolver():
    return FakeSymbolResolver
