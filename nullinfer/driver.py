"""
nullinfer/driver.py

Fixture protocol.

A fixture is one ``.java`` file under a test-data root with a sibling
golden ``<base>.expected`` holding the canonical rendering. A fixture may
start with directives:

    // !NO_SMART_CASTS
    // !ANNOTATIONS: extra.json

The catalog is the list of fixture names a test suite has registered.
Discovery and catalog must agree exactly.
"""

from __future__ import annotations

import difflib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from nullinfer.config import InferenceConfig
from nullinfer.engine import infer_files
from nullinfer.errors import FixtureError
from nullinfer.renderer import render_canonical

log = logging.getLogger(__name__)

FIXTURE_EXTENSION = ".java"
GOLDEN_EXTENSION = ".expected"

_DIRECTIVE = re.compile(r"^\s*//\s*!(\w+)(?::\s*(.*?))?\s*$")


@dataclass
class FixtureResult:
    """Outcome of one fixture run; ``diff`` is empty on success."""
    name: str
    actual: str
    expected: str
    diff: str

    @property
    def passed(self) -> bool:
        return not self.diff


def discover_fixtures(root: str | Path) -> list[str]:
    """Fixture names (paths relative to root, without extension), sorted."""
    root = Path(root)
    return sorted(
        path.relative_to(root).with_suffix("").as_posix()
        for path in root.rglob(f"*{FIXTURE_EXTENSION}")
    )


def check_catalog(catalog: Iterable[str], root: str | Path) -> None:
    """
    Assert that every discovered fixture is registered and vice versa.

    Raises:
        FixtureError: listing files without an entry and entries without a file
    """
    registered = set(catalog)
    discovered = set(discover_fixtures(root))
    missing_entries = sorted(discovered - registered)
    missing_files = sorted(registered - discovered)
    if missing_entries or missing_files:
        raise FixtureError(missing_entries, missing_files)


def parse_directives(text: str, fixture_dir: Path) -> InferenceConfig:
    """Build the run configuration from the leading ``// !`` comment lines."""
    config = InferenceConfig()
    for line in text.splitlines():
        if not line.strip():
            continue
        match = _DIRECTIVE.match(line)
        if match is None:
            break
        name, argument = match.group(1), match.group(2)
        if name == "NO_SMART_CASTS":
            config.smart_casts = False
        elif name == "ANNOTATIONS" and argument:
            config.annotation_bundles.append(fixture_dir / argument)
        else:
            log.warning(f"Unknown fixture directive: {name}")
    return config


def render_fixture(path: str | Path) -> str:
    path = Path(path)
    config = parse_directives(path.read_text(encoding="utf-8"), path.parent)
    result = infer_files([path], config)
    return render_canonical(result.units, result.positions, result.verdicts)


def run_fixture(root: str | Path, name: str, update: bool = False) -> FixtureResult:
    """
    Run one fixture and diff it against its golden.

    With ``update`` the golden is rewritten from the actual output and the
    result always passes.
    """
    root = Path(root)
    source = root / f"{name}{FIXTURE_EXTENSION}"
    golden = root / f"{name}{GOLDEN_EXTENSION}"

    actual = render_fixture(source)
    if update:
        golden.write_text(actual, encoding="utf-8")
        log.info(f"Updated {golden}")
        return FixtureResult(name, actual, actual, "")

    expected = golden.read_text(encoding="utf-8") if golden.exists() else ""
    diff = "".join(
        difflib.unified_diff(
            expected.splitlines(keepends=True),
            actual.splitlines(keepends=True),
            fromfile=str(golden),
            tofile=f"{name} (actual)",
        )
    )
    return FixtureResult(name, actual, expected, diff)


def run_all(
    root: str | Path,
    catalog: Optional[Iterable[str]] = None,
    update: bool = False,
) -> list[FixtureResult]:
    """Run every fixture under root, checking the catalog first when given."""
    if catalog is not None:
        catalog = list(catalog)
        check_catalog(catalog, root)
        names = sorted(catalog)
    else:
        names = discover_fixtures(root)
    results = []
    for name in names:
        result = run_fixture(root, name, update)
        log.info(f"{'PASS' if result.passed else 'FAIL'} {name}")
        results.append(result)
    return results
