"""Form snapshot serialization

File content is never persisted. A file field is replaced by
<field>_metadata = {name, size, type, lastModified} and the user re-attaches
the file on resume.
"""
import io
import json
import mimetypes
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..utils.logger import get_logger

logger = get_logger(__name__)

METADATA_SUFFIX = "_metadata"


@dataclass
class FileAttachment:
    """A file the user picked in the form (content held in memory only)"""
    name: str
    content: bytes = b""
    content_type: Optional[str] = None
    last_modified: Optional[int] = None
    
    @property
    def size(self) -> int:
        return len(self.content)


def _is_file_like(value: Any) -> bool:
    return isinstance(value, (FileAttachment, bytes, bytearray, io.IOBase))


def file_metadata(field: str, value: Any) -> Dict[str, Any]:
    """Describe a file value without its content"""
    if isinstance(value, FileAttachment):
        return {
            "name": value.name,
            "size": value.size,
            "type": value.content_type or mimetypes.guess_type(value.name)[0] or "",
            "lastModified": value.last_modified,
        }
    if isinstance(value, (bytes, bytearray)):
        return {"name": field, "size": len(value), "type": "application/octet-stream", "lastModified": None}
    
    name = os.path.basename(str(getattr(value, "name", field)))
    size = None
    if value.seekable():
        position = value.tell()
        size = value.seek(0, io.SEEK_END)
        value.seek(position)
    return {"name": name, "size": size, "type": mimetypes.guess_type(name)[0] or "", "lastModified": None}


def to_serializable(form_data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Build a JSON-safe copy of a form snapshot
    
    Returns:
        (snapshot, dropped) where dropped lists fields that could not be
        serialized and were left out
    """
    snapshot: Dict[str, Any] = {}
    dropped: List[str] = []
    
    for key, value in form_data.items():
        if _is_file_like(value):
            snapshot[f"{key}{METADATA_SUFFIX}"] = file_metadata(key, value)
            continue
        if callable(value):
            continue
        try:
            snapshot[key] = json.loads(json.dumps(value))
        except (TypeError, ValueError):
            dropped.append(key)
    
    if dropped:
        logger.warning(f"Dropped unserializable draft fields: {', '.join(dropped)}")
    return snapshot, dropped


def files_to_reattach(snapshot: Dict[str, Any]) -> List[str]:
    """Fields whose files were replaced by metadata"""
    return sorted(
        key[: -len(METADATA_SUFFIX)]
        for key, value in snapshot.items()
        if key.endswith(METADATA_SUFFIX) and isinstance(value, dict)
    )
