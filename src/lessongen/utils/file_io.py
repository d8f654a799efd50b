"""File I/O utilities for lesson artifacts and debug reports.

Supports JSON (plain data and pydantic models) and plain text, always UTF-8
with parent directories created on write.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Type, TypeVar, Union

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)

logger = logging.getLogger(__name__)


# ============================================================================
# JSON Functions
# ============================================================================


def read_json(file_path: Union[str, Path]) -> Dict[str, Any]:
    """Read JSON file and return parsed dictionary.

    Args:
        file_path: Path to JSON file

    Returns:
        Parsed JSON as dictionary

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    file_path = Path(file_path)
    logger.debug(f"Reading JSON from {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(
    data: Union[Dict[str, Any], List[Any]],
    file_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False,
) -> None:
    """Write data to JSON file with pretty printing.

    Creates parent directories if they don't exist.

    Args:
        data: Data to write (dict or list)
        file_path: Path to output JSON file
        indent: Number of spaces for indentation (default: 2)
        ensure_ascii: If False, non-ASCII characters are preserved (default: False)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    logger.debug(f"Writing JSON to {file_path}")

    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii)

    logger.info(f"Wrote JSON to {file_path}")


def read_model(file_path: Union[str, Path], model: Type[M]) -> M:
    """Read a JSON file and validate it into a pydantic model.

    Raises:
        pydantic.ValidationError: If the file content does not match the model
    """
    return model.model_validate(read_json(file_path))


def write_model(instance: BaseModel, file_path: Union[str, Path]) -> None:
    """Write a pydantic model as pretty-printed JSON."""
    write_json(instance.model_dump(mode="json"), file_path)


# ============================================================================
# Text Functions
# ============================================================================


def write_text(content: str, file_path: Union[str, Path], errors: str = "strict") -> Path:
    """Write text content, creating parent directories.

    Args:
        content: Text to write
        file_path: Destination path
        errors: Encoding error handler passed to open() (default: strict)

    Returns:
        The path written to

    Raises:
        OSError: If the directory cannot be created or the file written
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, "w", encoding="utf-8", errors=errors) as f:
        f.write(content)

    logger.debug(f"Wrote {len(content)} characters to {file_path}")
    return file_path
