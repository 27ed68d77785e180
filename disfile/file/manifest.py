"""
File Manifest

Design Decision: Manifest Structure
====================================

The manifest is the authoritative index of a stored file:
- The original file name
- The ordered list of piece handles (webhook message ids)

It is stored through the same webhook as the pieces, as the text content
of one message, so a single id (the primary handle) is enough to get the
whole file back.

Options Considered for Manifest Format:
1. JSON in a code fence - readable in the channel, survives markdown
2. JSON attachment - no 2000 character content limit, one more download
3. Custom delimited list - compact, fragile

Decision: JSON in a ``` fence
- Human readable when browsing the channel
- The fence keeps the webhook from rendering the JSON as markdown
- Parsed back with pydantic so malformed content fails loudly

Wire format:
```
{
  "filename": "report.pdf",
  "ids": ["1190...", "1190..."]
}
```
(wrapped in triple backticks)

Manifests are immutable; re-uploading a file creates a new one.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List

import pydantic

from ..errors import ManifestError

FENCE = "```"


class ManifestRecord(pydantic.BaseModel):
    """Schema of the JSON inside the fence."""
    model_config = pydantic.ConfigDict(extra='ignore')

    filename: pydantic.StrictStr = pydantic.Field(min_length=1)
    ids: List[pydantic.StrictStr]


@dataclass(frozen=True)
class Manifest:
    """Ordered piece handles plus the original file name."""
    file_name: str
    ids: List[str] = field(default_factory=list)

    @property
    def piece_count(self) -> int:
        return len(self.ids)

    def to_dict(self) -> Dict:
        return {'filename': self.file_name, 'ids': list(self.ids)}


@dataclass(frozen=True)
class UploadResult:
    """
    Receipt for a completed upload.

    Only primary_id is needed to download the file again; the caller is
    responsible for keeping it.
    """
    primary_id: str
    file_name: str
    file_chunk_ids: List[str]

    def to_dict(self) -> Dict:
        return {
            'primaryID': self.primary_id,
            'fileName': self.file_name,
            'fileChunkIDs': list(self.file_chunk_ids),
        }


def encode_manifest(manifest: Manifest) -> str:
    """Serialize a manifest to its fenced text form."""
    return FENCE + json.dumps(manifest.to_dict(), indent=2) + FENCE


def decode_manifest(text: str) -> Manifest:
    """
    Parse fenced manifest text.

    Raises:
        ManifestError: If the fence is missing or the JSON inside is invalid
    """
    if not isinstance(text, str):
        raise ManifestError(f"Manifest content must be text, got {type(text).__name__}")

    body = text.strip()
    if len(body) < 2 * len(FENCE) or not (body.startswith(FENCE) and body.endswith(FENCE)):
        raise ManifestError("Manifest content is missing its ``` markers")

    inner = body[len(FENCE):-len(FENCE)]

    try:
        record = ManifestRecord.model_validate_json(inner)
    except pydantic.ValidationError as e:
        raise ManifestError(f"Invalid manifest content: {e}") from e

    return Manifest(file_name=record.filename, ids=list(record.ids))
