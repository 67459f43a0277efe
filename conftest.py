"""File for tests."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import yaml

DEFAULT_GOLDEN_PATTERN = "golden/*.yaml"


def pytest_configure(config: Any) -> None:
    """Configure the tests."""
    config.addinivalue_line(
        "markers",
        "golden_test(pattern): parameterize test with YAML golden records matching pattern",
    )


def _iter_marker_patterns(node: Any) -> Iterator[str]:
    """Yield pattern strings from golden_test markers on `node`."""
    for m in node.iter_markers(name="golden_test"):
        if m.args:
            yield m.args[0]
        else:
            yield DEFAULT_GOLDEN_PATTERN


def _load_record(p: Path) -> dict[str, Any]:
    """Load one golden record; YAML errors are kept in the record so the test reports them."""
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        data = {"__yaml_load_error__": str(e)}
    if not isinstance(data, dict):
        data = {"__yaml_load_error__": f"{p.name} does not contain a mapping"}
    data.setdefault("__path__", str(p))
    data.setdefault("__name__", p.name)
    return data


def pytest_generate_tests(metafunc: Any) -> None:
    """Generate tests (parametrization) from YAML golden files."""
    if "golden" not in metafunc.fixturenames:
        return

    patterns: list[str] = list(_iter_marker_patterns(metafunc.definition))
    if not patterns:
        patterns = [DEFAULT_GOLDEN_PATTERN]

    root = Path(metafunc.config.rootpath)

    files: list[Path] = []
    for pat in patterns:
        files.extend(sorted(root.glob(pat)))

    if not files:
        return

    metafunc.parametrize("golden", [_load_record(p) for p in files], ids=[p.name for p in files])


@pytest.fixture
def arm() -> Any:
    """Fresh ARM64 simulator."""
    from processor import Simulator

    return Simulator("arm64")


@pytest.fixture
def x86() -> Any:
    """Fresh x86-64 simulator."""
    from processor import Simulator

    return Simulator("x86")
