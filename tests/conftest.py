from __future__ import annotations

import faulthandler
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Iterable, List, Sequence

import pytest
from openpyxl import Workbook
from openpyxl.utils.datetime import CALENDAR_MAC_1904

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

faulthandler.enable()  # Ensure crashes emit tracebacks.

# Logs go to a throwaway directory; must be set before sheetbind is imported.
os.environ.setdefault("SHEETBIND_LOG_DIR", tempfile.mkdtemp(prefix="sheetbind-logs-"))

WorkbookFactory = Callable[..., Path]


def build_workbook(path: Path, rows: Iterable[Sequence[Any]], title: str = "Sheet1", *, date1904: bool = False) -> Path:
    """Save ``rows`` into a single-sheet workbook at ``path``."""

    wb = Workbook()
    ws = wb.active
    ws.title = title
    for row in rows:
        ws.append(list(row))
    if date1904:
        wb.epoch = CALENDAR_MAC_1904
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


@pytest.fixture()
def make_workbook(tmp_path: Path) -> WorkbookFactory:
    """Return a factory writing rows into ``tmp_path/<name>``."""

    counter: List[int] = [0]

    def _factory(rows: Iterable[Sequence[Any]], name: str | None = None, **kwargs: Any) -> Path:
        counter[0] += 1
        target = tmp_path / (name or f"book{counter[0]}.xlsx")
        return build_workbook(target, rows, **kwargs)

    return _factory
