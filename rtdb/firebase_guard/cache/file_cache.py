"""
File cache for large read results.

Full read results are written to a JSON file and the caller gets back a
summary (file, type, size, preview) it can use to decide whether to open it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from ..db.values import ValueKind, kind_of
from ..snapshot.filenames import encode_path, timestamp_token
from .summary import preview

logger = logging.getLogger(__name__)


class FileCache:
    """Writes read results to disk and returns a compact description.

    Attributes:
        dir: Absolute cache directory
    """

    def __init__(self, directory: str = ".mcp-firebase/cache") -> None:
        self.dir = Path(directory).resolve()
        self.dir.mkdir(parents=True, exist_ok=True)

    def write(self, tool_name: str, path: str, data: Any) -> Dict[str, Any]:
        """Cache `data` read from `path` by `tool_name`.

        Returns:
            file, rtdbPath, type, length/childCount, sizeBytes, preview
        """
        file_path = self.dir / f"{encode_path(path)}_{timestamp_token()}.json"
        text = json.dumps(data, indent=2, ensure_ascii=False)
        file_path.write_text(text, encoding="utf-8")

        kind = kind_of(data)
        summary: Dict[str, Any] = {
            "file": str(file_path),
            "rtdbPath": path or "/",
            "type": kind.value,
        }
        if kind == ValueKind.ARRAY:
            summary["length"] = len(data)
        elif kind == ValueKind.OBJECT:
            summary["childCount"] = len(data)
        summary["sizeBytes"] = len(text.encode("utf-8"))
        summary["preview"] = preview(data)

        logger.debug("Cached read result", extra={"tool": tool_name, "file": str(file_path)})
        return summary
