"""
Adapter Contracts

Request/response shapes exchanged between the orchestrator and a
provider adapter.

BOUNDARY ENFORCEMENT:
=====================
- All types are FROZEN (immutable)
- A request carries everything needed to reach the backend; adapters hold
  no per-call state
- A recovered result records which recovery strategy produced it
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import json

from dispatch.contracts import Provider


@dataclass(frozen=True)
class AdapterRequest:
    """Backend-specific request produced by transform()."""
    adapter_id: str
    provider: Provider
    model: str
    url: str
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def prompt_text(self) -> str:
        """Flattened text of the request body, used for keyword inspection."""
        return json.dumps(self.body, ensure_ascii=False)

    def with_body(self, **changes: Any) -> 'AdapterRequest':
        body = dict(self.body)
        body.update(changes)
        return AdapterRequest(
            adapter_id=self.adapter_id,
            provider=self.provider,
            model=self.model,
            url=self.url,
            body=body,
            headers=dict(self.headers),
        )


@dataclass(frozen=True)
class RecoveredResult:
    """
    Normalized backend output.

    payload is a parsed structure (dict/list) when a recovery strategy
    succeeded, otherwise the raw text.
    """
    payload: Any
    strategy: str
    raw_text: Optional[str] = None

    @property
    def is_structured(self) -> bool:
        return isinstance(self.payload, (dict, list))

    @property
    def content(self) -> Optional[str]:
        """
        Textual content to materialize, or None when there is nothing to write.

        A "content" field wins; plain text is used as-is; any other
        structure is serialized as indented JSON.
        """
        value = self.payload
        if isinstance(value, dict) and "content" in value:
            value = value["content"]
        if value is None:
            return None
        if isinstance(value, str):
            text = value
        else:
            text = json.dumps(value, indent=2, ensure_ascii=False)
        return text or None
