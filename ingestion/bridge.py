"""
Disk Materializer

Sandboxed, atomic, optionally backed-up writes under a governed root.

GUARANTEES:
===========
1. Path, extension and encoding are validated before any filesystem
   access; violations raise ValidationError and nothing is written
2. Content goes to a uniquely named temporary sibling that is fsynced and
   then renamed over the target, so readers never see a partial file
3. Concurrent writes to the same target race as "last rename wins";
   the target is never truncated
4. Backup failure is logged and never fails the write
5. Batch ingest isolates failures per item and keeps input order

Filesystem work runs in worker threads (asyncio.to_thread); the event
loop is never blocked on disk I/O.
"""

from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence
import asyncio
import logging
import os
import stat
import tempfile
import time

from dispatch.config import BridgeConfig
from dispatch.contracts import DeploymentZone, MaterializationInstruction
from dispatch.events import AlertLevel, DispatchEvent, EventBus, EventType

from .backups import BackupStore
from .contracts import BackupEntry, IngestPayload, IngestResult, IngestStatus
from .deploy import simulate_publish
from .sandbox import PathSandbox

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644


def atomic_write(target: Path, data: bytes) -> int:
    """Write data to target via temp file + fsync + rename. Returns bytes written."""
    try:
        mode = stat.S_IMODE(target.stat().st_mode)
    except FileNotFoundError:
        mode = DEFAULT_FILE_MODE

    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return len(data)


class DiskMaterializer:
    """Consumes ingest payloads and materialization instructions."""

    def __init__(
        self,
        config: BridgeConfig,
        event_bus: Optional[EventBus] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time
    ):
        self._config = config
        self._sandbox = PathSandbox(config.root_dir, config.allowed_extensions)
        self._backups = BackupStore(self._sandbox.root / config.backup_dir, clock=clock)
        self._event_bus = event_bus
        self._sleep = sleep

    @property
    def root(self) -> Path:
        return self._sandbox.root

    @property
    def sandbox(self) -> PathSandbox:
        return self._sandbox

    # -------------------------------------------------------------------------
    # Ingest
    # -------------------------------------------------------------------------

    async def ingest(self, payload: IngestPayload) -> IngestResult:
        """
        Materialize one payload.

        Raises ValidationError for traversal, a disallowed extension or an
        unusable encoding, and OSError for filesystem failures.
        """
        target = self._sandbox.resolve(payload.path)
        data = payload.encoded()
        logger.info("Materializing [%s]: %s", payload.zone.value, payload.path)

        try:
            size = await asyncio.to_thread(self._write, target, data, payload.backup)
        except OSError as e:
            logger.error("Materialization failed for %s: %s", payload.path, e)
            raise

        if payload.zone is DeploymentZone.PRODUCTION:
            await simulate_publish(payload.path, self._config.publish_step_delays, self._sleep)

        logger.info("Materialized %s (%d bytes)", payload.path, size)
        return IngestResult(
            status=IngestStatus.SUCCESS,
            path=payload.path,
            size=size,
            timestamp=datetime.now(timezone.utc),
        )

    async def batch_ingest(self, payloads: Sequence[IngestPayload]) -> List[IngestResult]:
        """Ingest sequentially; every payload yields exactly one result, in order."""
        logger.info("Batch ingest of %d file(s)", len(payloads))
        results = []
        for payload in payloads:
            try:
                results.append(await self.ingest(payload))
            except Exception as e:
                logger.warning("Batch item %s rejected: %s", payload.path, e)
                results.append(IngestResult(
                    status=IngestStatus.ERROR, path=payload.path, error=str(e),
                ))
        succeeded = sum(1 for r in results if r.ok)
        logger.info("Batch complete: %d/%d succeeded", succeeded, len(payloads))
        return results

    def _write(self, target: Path, data: bytes, backup: bool) -> int:
        target.parent.mkdir(parents=True, exist_ok=True)
        if backup and self._config.enable_backup and target.is_file():
            try:
                self._backups.create(target)
            except OSError as e:
                logger.warning("Backup of %s failed, continuing: %s", target, e)
        return atomic_write(target, data)

    # -------------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------------

    def list_backups(self) -> List[BackupEntry]:
        return self._backups.entries()

    def prune_backups(self, max_age_days: Optional[float] = None) -> int:
        age = self._config.backup_max_age_days if max_age_days is None else max_age_days
        return self._backups.prune(age)

    # -------------------------------------------------------------------------
    # Event wiring
    # -------------------------------------------------------------------------

    def attach(self, event_bus: Optional[EventBus] = None) -> Callable[[], None]:
        """
        Subscribe to materialization requests on the bus.

        Returns the unsubscribe callable.
        """
        bus = event_bus or self._event_bus
        if bus is None:
            raise ValueError("no event bus to attach to")
        self._event_bus = bus
        return bus.subscribe(self._on_instruction, EventType.MATERIALIZATION_REQUESTED)

    async def _on_instruction(self, event: DispatchEvent):
        instruction: MaterializationInstruction = event.payload
        bus = self._event_bus
        try:
            result = await self.ingest(IngestPayload.from_instruction(instruction))
        except Exception as e:
            logger.error("Instruction for %s failed: %s", instruction.path, e)
            bus.publish(EventType.MATERIALIZATION_FAILED, {
                'packet_id': instruction.packet_id,
                'path': instruction.path,
                'error': str(e),
            })
            bus.alert(AlertLevel.ERROR, f"materialization failed: {instruction.path}: {e}")
            return

        bus.publish(EventType.MATERIALIZATION_COMPLETED, {
            'packet_id': instruction.packet_id,
            'source_node_id': instruction.source_node_id,
            **result.to_dict(),
        })
        bus.alert(AlertLevel.SUCCESS, f"materialized {result.path} ({result.size} bytes)")
