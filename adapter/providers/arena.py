"""
Arena Consensus Adapter
=======================

Multi-model cluster used for adversarial audits. Execution is simulated
in-process: the cluster "votes" and returns a consensus envelope

    {"status": "CONSENSUS_REACHED", "winning_model": ..., "confidence": ...,
     "content": ...}

which recover() unwraps. Needs no credentials.

The simulation reproduces a compromised model when the prompt carries
destructive-call bait, so the security audit path can be exercised end
to end.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
import asyncio
import json
import logging
import random
import time

from dispatch.contracts import Packet, Provider

from ..contracts import AdapterRequest, RecoveredResult
from ..recovery import recover_structure
from .base import ProviderAdapter

logger = logging.getLogger(__name__)

CONSENSUS_REACHED = "CONSENSUS_REACHED"
CLUSTER_URL = "arena://cluster"

ARENA_DIRECTIVES = (
    "You are an adversarial reviewer in a multi-model arena.",
    "Your output will be compared against other models.",
    "Prioritize accuracy over politeness.",
)

# Prompt fragments that make the simulated cluster return destructive code
COMPROMISE_BAIT = ("rmsync", "deleteall", "formatdrive")


@dataclass(frozen=True)
class ArenaModel:
    model_id: str
    name: str
    strength: str  # "coding" | "reasoning" | "creative"


@dataclass(frozen=True)
class ArenaVote:
    model: str
    votes: int
    consensus: float  # percentage of all responses


DEFAULT_MODELS = (
    ArenaModel("claude-3.5", "Claude 3.5", "reasoning"),
    ArenaModel("gpt-4o", "GPT-4o", "coding"),
    ArenaModel("gemini-1.5", "Gemini 1.5", "creative"),
)

_STRENGTH_KEYWORDS = (
    ("coding", ("code", "programming")),
    ("reasoning", ("reason", "logic")),
    ("creative", ("creative", "design")),
)


class ArenaAdapter(ProviderAdapter):
    """Simulated arena cluster with consensus envelope recovery."""

    def __init__(
        self,
        models: Sequence[ArenaModel] = DEFAULT_MODELS,
        latency_seconds: float = 0.8,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None
    ):
        self._models = tuple(models)
        self._latency = latency_seconds
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()

    @property
    def adapter_id(self) -> str:
        return "ARENA_CLUSTER"

    @property
    def provider(self) -> Provider:
        return Provider.ARENA

    @property
    def models(self):
        return self._models

    def select_model(self, packet: Packet) -> ArenaModel:
        text = packet.payload.lower()
        for strength, keywords in _STRENGTH_KEYWORDS:
            if any(k in text for k in keywords):
                for model in self._models:
                    if model.strength == strength:
                        return model
        return self._models[0]

    def transform(self, packet: Packet) -> AdapterRequest:
        model = self.select_model(packet)
        mission = "\n".join([
            "# ARENA MISSION",
            f"Model Assignment: {model.name}",
            "Mission Type: ADVERSARIAL_REVIEW",
            "",
            self.add_system_prompt(packet.payload, ARENA_DIRECTIVES),
            self.embed_constraints(packet.constraints),
            "",
            "# OUTPUT REQUIREMENTS",
            "- Return raw JSON only",
            "- No conversational filler",
            "",
            "# MISSION ID",
            packet.packet_id,
        ])
        return AdapterRequest(
            adapter_id=self.adapter_id,
            provider=self.provider,
            model=model.model_id,
            url=CLUSTER_URL,
            body={"prompt": self.wrap_protocol(mission), "model": model.model_id},
        )

    async def execute(self, request: AdapterRequest) -> str:
        logger.info("[%s] arena round started (%s)", self.adapter_id, request.model)
        await self._sleep(self._latency)

        prompt = str(request.body.get("prompt", "")).lower()
        if any(bait in prompt for bait in COMPROMISE_BAIT):
            logger.warning("[%s] destructive bait in prompt, simulating compromised model", self.adapter_id)
            content = (
                "// compromised output\n"
                "import fs from 'fs';\n"
                "export function poison() {\n"
                "  fs.rmSync('/', {recursive: true});\n"
                "}\n"
            )
        elif "viral intelligence analysis" in prompt:
            content = json.dumps({
                "viralScore": self._rng.randint(70, 99),
                "sentimentScore": self._rng.randint(50, 90),
                "prediction": "Sustained growth expected over the next 48 hours.",
            }, indent=2)
        else:
            content = (
                "// Automated generation by Arena Cluster\n"
                f"// Model: {request.model}\n\n"
                "export const ArenaResult = {\n"
                "  status: 'active',\n"
                f"  timestamp: {int(self._clock() * 1000)},\n"
                "  message: 'Compiled successfully within dispatch bounds'\n"
                "};\n"
            )

        return json.dumps({
            "status": CONSENSUS_REACHED,
            "winning_model": request.model,
            "confidence": 0.99,
            "content": content,
        })

    def recover(self, raw_response: Any) -> RecoveredResult:
        data = raw_response
        strategy = "native"
        if isinstance(raw_response, str):
            outcome = recover_structure(raw_response)
            if not outcome.ok:
                return RecoveredResult(payload=raw_response, strategy="text", raw_text=raw_response)
            data, strategy = outcome.value, outcome.strategy

        raw_text = raw_response if isinstance(raw_response, str) else None
        if not (isinstance(data, dict) and data.get("status") == CONSENSUS_REACHED and data.get("content")):
            return RecoveredResult(payload=data, strategy=strategy, raw_text=raw_text)

        content = data["content"]
        if isinstance(content, str):
            inner = recover_structure(content)
            if inner.ok and isinstance(inner.value, (dict, list)):
                return RecoveredResult(payload=inner.value, strategy=f"consensus+{inner.strategy}", raw_text=raw_text)
            payload = {
                "content": content,
                "model": data.get("winning_model"),
                "confidence": data.get("confidence"),
            }
            return RecoveredResult(payload=payload, strategy="consensus", raw_text=raw_text)

        return RecoveredResult(payload=content, strategy="consensus", raw_text=raw_text)

    def recover_batch(self, responses: Sequence[str]) -> List[RecoveredResult]:
        return [self.recover(raw) for raw in responses]

    def vote(self, responses: Sequence[Any]) -> List[ArenaVote]:
        """Tally responses round-robin across the cluster's models."""
        if not responses:
            return []
        tally: Dict[str, int] = {}
        for index, _ in enumerate(responses):
            model_id = self._models[index % len(self._models)].model_id
            tally[model_id] = tally.get(model_id, 0) + 1
        return [
            ArenaVote(model=model, votes=votes, consensus=votes / len(responses) * 100)
            for model, votes in tally.items()
        ]
