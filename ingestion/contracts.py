"""
Disk Ingestion Contracts

Immutable data structures for the disk materializer.

BOUNDARY: Filesystem Materialization Layer
All writes below the governed root enter through these contracts.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
import base64
import codecs

from dispatch.contracts import DeploymentZone, MaterializationInstruction
from dispatch.errors import EncodingError

# Binary-to-text transfer encodings: content is decoded, not encoded
TRANSFER_DECODERS = {
    "base64": lambda text: base64.b64decode(text, validate=True),
    "base64url": base64.urlsafe_b64decode,
    "hex": bytes.fromhex,
}

# Buffer-style names without a codec of the same name
ENCODING_ALIASES = {
    "utf8": "utf-8",
    "binary": "latin-1",
    "ucs2": "utf-16-le",
    "ucs-2": "utf-16-le",
    "utf16le": "utf-16-le",
}


class IngestStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class IngestPayload:
    """
    One write request.

    path is relative to the governed root; a leading separator is
    stripped, never honored as absolute.
    """
    path: str
    content: Union[str, bytes]
    encoding: str = "utf-8"
    backup: bool = True
    zone: DeploymentZone = DeploymentZone.STAGING

    def encoded(self) -> bytes:
        """
        Bytes to write.

        base64/base64url/hex content is decoded; any other name must be a
        text codec able to represent the content. Raises EncodingError.
        """
        if isinstance(self.content, bytes):
            return self.content

        name = self.encoding.strip().lower()
        try:
            decoder = TRANSFER_DECODERS.get(name)
            if decoder is not None:
                return decoder(self.content)
            codec = codecs.lookup(ENCODING_ALIASES.get(name, name))
            # str.encode rejects bytes-to-bytes codecs such as rot13 or zlib
            return self.content.encode(codec.name)
        except (LookupError, ValueError) as e:
            raise EncodingError(f"cannot encode content as {self.encoding!r}: {e}") from e

    @staticmethod
    def from_instruction(instruction: MaterializationInstruction) -> 'IngestPayload':
        return IngestPayload(
            path=instruction.path,
            content=instruction.content,
            encoding=instruction.encoding,
            backup=instruction.backup,
            zone=instruction.zone,
        )


@dataclass(frozen=True)
class IngestResult:
    """
    Outcome of one write.

    INVARIANT: status SUCCESS carries size and timestamp; ERROR carries error.
    """
    status: IngestStatus
    path: str
    size: Optional[int] = None
    timestamp: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is IngestStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'path': self.path,
            'size': self.size,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'error': self.error,
        }


@dataclass(frozen=True)
class BackupEntry:
    file: str
    size: int
    modified: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file': self.file,
            'size': self.size,
            'modified': self.modified.isoformat(),
        }
