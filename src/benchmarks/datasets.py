"""
Benchmark Dataset Loading

Loads benchmark cases (prompt, reference answer, per-item rubric) from a CSV
file with a header row:

    input,output,eval_aspect
    "2+2?","4","must be numeric"

Row order is preserved; it defines the order of the final report.

Usage:
    from src.benchmarks.datasets import load_csv_dataset

    dataset = load_csv_dataset(Path("test.csv"))
    for item in dataset.items:
        print(item.input, item.reference_output)
"""

import csv
import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.exceptions import DatasetError

logger = logging.getLogger(__name__)

# CSV column -> DatasetItem field
COLUMN_MAP = {
    "input": "input",
    "output": "reference_output",
    "eval_aspect": "eval_aspect",
}
REQUIRED_COLUMNS = tuple(COLUMN_MAP)


@dataclass(frozen=True)
class DatasetItem:
    """A single benchmark case."""

    input: str
    reference_output: str
    eval_aspect: str


@dataclass
class Dataset:
    """An ordered collection of benchmark cases."""

    name: str
    items: List[DatasetItem] = field(default_factory=list)
    source_path: Optional[Path] = None

    def __len__(self) -> int:
        return len(self.items)

    @property
    def content_hash(self) -> str:
        """SHA256 hash of dataset contents for versioning."""
        digest = hashlib.sha256()
        for item in self.items:
            for value in (item.input, item.reference_output, item.eval_aspect):
                digest.update(value.encode("utf-8"))
                digest.update(b"\x00")
        return digest.hexdigest()[:16]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": len(self.items),
            "content_hash": self.content_hash,
            "source_path": str(self.source_path) if self.source_path else None,
        }


def load_csv_dataset(path: Path, limit: Optional[int] = None) -> Dataset:
    """
    Load a dataset from a CSV file.

    Fields are whitespace-trimmed. Extra columns are ignored.

    Args:
        path: CSV file with at least the columns input, output, eval_aspect.
        limit: Keep only the first N rows.

    Returns:
        Dataset in file order.

    Raises:
        DatasetError: If the file is missing, unreadable or lacks a required column.
    """
    path = Path(path)
    if not path.exists():
        raise DatasetError(f"Dataset not found: {path}")
    if limit is not None and limit < 0:
        raise DatasetError(f"limit must be non-negative, got {limit}")

    try:
        # utf-8-sig tolerates the BOM spreadsheet exports add
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            header = [h.strip() for h in (reader.fieldnames or [])]
            missing = [c for c in REQUIRED_COLUMNS if c not in header]
            if missing:
                raise DatasetError(
                    f"Dataset {path} is missing required column(s): {', '.join(missing)}"
                )
            reader.fieldnames = header

            items: List[DatasetItem] = []
            for row in reader:
                if limit is not None and len(items) >= limit:
                    break
                items.append(
                    DatasetItem(
                        **{
                            attr: (row.get(column) or "").strip()
                            for column, attr in COLUMN_MAP.items()
                        }
                    )
                )
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise DatasetError(f"Failed to read dataset {path}: {e}") from e

    logger.info(f"Loaded {len(items)} case(s) from {path}")
    return Dataset(name=path.stem, items=items, source_path=path)
