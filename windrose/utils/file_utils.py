"""File I/O utilities for JSON-lines history files."""
import json
from pathlib import Path
from typing import Any, Iterable, Iterator, Tuple


def iter_json_lines(file_path: Path) -> Iterator[Tuple[int, Any]]:
    """
    Iterate decoded JSON values from a JSON-lines file.

    Blank lines are skipped. Lines that are not valid JSON yield None, so
    the caller can decide how to treat them.

    Yields:
        (line_number, value) tuples, line numbers starting at 1
    """
    with open(file_path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield line_number, json.loads(line)
            except json.JSONDecodeError:
                yield line_number, None


def save_json_lines(records: Iterable[Any], file_path: Path) -> int:
    """
    Atomically write records as JSON lines (write to temp, then rename).

    Returns:
        Number of records written
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = file_path.with_suffix(file_path.suffix + ".tmp")
    count = 0
    with open(temp_file, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record))
            f.write("\n")
            count += 1
    temp_file.replace(file_path)
    return count
