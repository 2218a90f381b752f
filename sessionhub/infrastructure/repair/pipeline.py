"""Container repair pipeline."""

import asyncio
import os
import shutil
from pathlib import Path
from typing import (
    List,
    Optional,
    Sequence,
)

from sessionhub.core.logging import logger
from sessionhub.domain.providers import (
    ContainerRepairInterface,
    RepairOutcome,
    RepairReport,
)
from sessionhub.domain.services.locks import KeyedLock
from sessionhub.infrastructure.repair.mp4_inspector import (
    is_fast_start,
    read_duration_seconds,
)
from sessionhub.infrastructure.repair.strategies import (
    MetadataToolStrategy,
    RemuxStrategy,
    RepairStrategy,
    StructuralInspectionStrategy,
)
from sessionhub.infrastructure.storage import BACKUP_SUFFIX


class ContainerRepairPipeline(ContainerRepairInterface):
    """Runs repair strategies in order until one fixes the file.

    Tool runs happen outside any lock; only swapping a finished file over
    the artifact is serialized per path.
    """

    def __init__(self, strategies: Optional[Sequence[RepairStrategy]] = None):
        self.strategies: List[RepairStrategy] = list(
            strategies if strategies is not None else default_strategies()
        )
        self._replace_locks = KeyedLock()

    async def needs_repair(self, path: Path) -> bool:
        return not await asyncio.to_thread(is_fast_start, path)

    async def probe_duration(self, path: Path) -> Optional[int]:
        try:
            return await asyncio.to_thread(read_duration_seconds, path)
        except (OSError, IndexError, ValueError) as e:
            logger.warning("duration_probe_failed", path=str(path), error=str(e))
            return None

    async def _backup(self, path: Path) -> Path:
        backup = path.with_name(path.name + BACKUP_SUFFIX)
        if not backup.exists():
            await asyncio.to_thread(shutil.copy2, path, backup)
            logger.info("recording_backup_created", path=str(backup))
        return backup

    async def repair(self, path: Path) -> RepairReport:
        """Repair ``path`` if its index box sits after the media data.

        A file that is already fast-start is left untouched and no backup is
        made, so running the pipeline twice is a no-op the second time.
        """
        if not await self.needs_repair(path):
            logger.info("recording_repair_skipped", path=str(path))
            return RepairReport(path=path, needed=False)

        report = RepairReport(path=path, needed=True, backup_path=await self._backup(path))

        async def commit(candidate: Path) -> None:
            async with self._replace_locks.hold(str(path)):
                # A concurrent run may have fixed the file while our tool ran
                if await asyncio.to_thread(is_fast_start, path):
                    logger.info("recording_repair_already_applied", path=str(path))
                    return
                os.replace(candidate, path)

        for strategy in self.strategies:
            result = await strategy.run(path, commit)
            report.attempts.append(result)
            logger.info(
                "repair_strategy_finished",
                path=str(path),
                strategy=result.strategy,
                outcome=result.outcome.value,
                note=result.note,
            )
            if result.outcome == RepairOutcome.FIXED:
                break

        if not report.succeeded:
            logger.warning("recording_repair_failed", path=str(path), note=report.note)
        return report


def default_strategies(
    metadata_binary: str = "AtomicParsley",
    remux_binary: str = "ffmpeg",
    timeout: float = 300.0,
) -> List[RepairStrategy]:
    """The standard chain: metadata tool, remux, structural inspection."""
    return [
        MetadataToolStrategy(metadata_binary, timeout),
        RemuxStrategy(remux_binary, timeout),
        StructuralInspectionStrategy(),
    ]
