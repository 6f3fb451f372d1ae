"""
Packet Compiler

Turns a raw intent string into an immutable Packet.

GUARANTEES:
===========
1. Every compilation yields a fresh packet_id
2. fingerprint is a pure function of the raw intent text
3. Constraints are the same static ordered tuple for every packet
4. Only the lowest tier gets the restrictive generation limit

The compiler performs no deduplication; fingerprints are for
correlation only.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional, Union
import hashlib
import logging
import uuid

from .contracts import (
    DEFAULT_CONSTRAINTS,
    DeploymentZone,
    GenerationLimit,
    Packet,
    Tier,
)
from .errors import ValidationError

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 16

DIRECTIVE_TEMPLATE = """
# DISPATCH DIRECTIVE v1.0
[COMMAND_ID]: {command_id}
[EXECUTION_SCOPE]: INTERNAL_CORE

# PRIMARY INTENT
{intent}

# OPERATING RULES
1. You are a stateless computing node.
2. Your output reflects the caller's intent and nothing else.
3. Violating an output constraint disqualifies the response.
"""


def fingerprint_intent(raw_intent: str) -> str:
    """Short, collision-tolerant digest of the raw intent."""
    return hashlib.sha256(raw_intent.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def generation_limit_for(tier: Tier) -> GenerationLimit:
    if tier is Tier.LOWEST:
        return GenerationLimit.RESTRICTED_CONTEXT
    return GenerationLimit.AUTO_EVOLVE


class PacketCompiler:
    """Compiles raw intents into packets."""

    def __init__(self, template: str = DIRECTIVE_TEMPLATE):
        self._template = template

    def compile(
        self,
        raw_intent: str,
        tier: Union[Tier, str],
        target_path: Optional[str] = None,
        zone: Optional[Union[DeploymentZone, str]] = None
    ) -> Packet:
        """
        Compile an intent for a backend tier.

        Raises ValidationError for an empty intent or an unknown tier/zone.
        """
        if not raw_intent or not raw_intent.strip():
            raise ValidationError("raw intent must be a non-empty string")

        try:
            resolved_tier = Tier.parse(tier)
            resolved_zone = DeploymentZone.parse(zone) if zone else DeploymentZone.STAGING
        except ValueError as e:
            raise ValidationError(str(e)) from e

        packet = Packet(
            packet_id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            fingerprint=fingerprint_intent(raw_intent),
            payload=self._wrap(raw_intent),
            constraints=DEFAULT_CONSTRAINTS,
            generation_limit=generation_limit_for(resolved_tier),
            target_path=target_path or None,
            zone=resolved_zone,
        )

        logger.info(
            "Compiled packet %s for tier %s (fingerprint %s, limit %s)",
            packet.short_id, resolved_tier.value, packet.fingerprint,
            packet.generation_limit.value,
        )
        return packet

    def _wrap(self, intent: str) -> str:
        return self._template.format(command_id=uuid.uuid4(), intent=intent)
