"""Container repair strategies.

Each strategy checks for the tool it needs and reports a tri-state
outcome. Strategies never overwrite the artifact themselves; they hand a
finished working file to ``commit``, which swaps it into place.
"""

import asyncio
import contextlib
import shutil
import uuid
from abc import (
    ABC,
    abstractmethod,
)
from pathlib import Path
from typing import (
    Awaitable,
    Callable,
    List,
    Optional,
    Tuple,
)

from sessionhub.core.logging import logger
from sessionhub.domain.providers import (
    RepairOutcome,
    StrategyResult,
)
from sessionhub.infrastructure.repair.mp4_inspector import (
    index_precedes_media,
    is_fast_start,
    moov_within_head,
)

Commit = Callable[[Path], Awaitable[None]]


async def run_tool(args: List[str], timeout: float) -> Tuple[Optional[int], str]:
    """Run an external tool with a deadline.

    The child is killed when the deadline passes or the awaiting task is
    cancelled.

    Returns:
        Tuple[Optional[int], str]: Exit code (None on timeout) and the tail of stderr
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("repair_tool_timed_out", tool=args[0], timeout=timeout)
        return None, f"timed out after {timeout:g}s"
    finally:
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
    return process.returncode, stderr.decode("utf-8", errors="ignore").strip()[-500:]


class RepairStrategy(ABC):
    """One step of the repair chain."""

    name: str = "strategy"

    @abstractmethod
    async def run(self, path: Path, commit: Commit) -> StrategyResult:
        """Attempt to make ``path`` fast-start."""
        pass

    def _result(self, outcome: RepairOutcome, note: str = "") -> StrategyResult:
        return StrategyResult(strategy=self.name, outcome=outcome, note=note)


class ExternalToolStrategy(RepairStrategy):
    """Strategy backed by an executable found on the PATH."""

    def __init__(self, binary: str, timeout: float = 300.0):
        self.binary = binary
        self.timeout = timeout

    def resolve(self) -> Optional[str]:
        return shutil.which(self.binary)

    @abstractmethod
    def command(self, executable: str, source: Path, work: Path) -> List[str]:
        pass

    @abstractmethod
    async def prepare(self, source: Path, work: Path) -> None:
        pass

    async def run(self, path: Path, commit: Commit) -> StrategyResult:
        executable = self.resolve()
        if not executable:
            return self._result(RepairOutcome.NOT_APPLICABLE, f"{self.binary} not installed")

        # One scratch file per run; overlapping repairs of a file must not share it
        work = path.with_name(f"{path.stem}.{self.name}-{uuid.uuid4().hex[:12]}{path.suffix}")
        try:
            await self.prepare(path, work)
            code, stderr = await run_tool(self.command(executable, path, work), self.timeout)
            if code is None:
                return self._result(RepairOutcome.FAILED, f"{self.binary} {stderr}")
            if code != 0:
                return self._result(
                    RepairOutcome.FAILED, f"{self.binary} exited with {code}: {stderr}".strip()
                )
            if not work.is_file() or not await asyncio.to_thread(is_fast_start, work):
                return self._result(
                    RepairOutcome.FAILED, f"{self.binary} left the index after the media data"
                )
            await commit(work)
            return self._result(RepairOutcome.FIXED)
        except OSError as e:
            return self._result(RepairOutcome.FAILED, f"{self.binary} could not run: {e}")
        finally:
            work.unlink(missing_ok=True)


class MetadataToolStrategy(ExternalToolStrategy):
    """Rewrite the container in place with AtomicParsley on a working copy."""

    name = "metadata_tool"

    async def prepare(self, source: Path, work: Path) -> None:
        await asyncio.to_thread(shutil.copyfile, source, work)

    def command(self, executable: str, source: Path, work: Path) -> List[str]:
        return [executable, str(work), "--overWrite"]


class RemuxStrategy(ExternalToolStrategy):
    """Remux with ffmpeg, moving the index to the front without re-encoding."""

    name = "remux"

    async def prepare(self, source: Path, work: Path) -> None:
        work.unlink(missing_ok=True)

    def command(self, executable: str, source: Path, work: Path) -> List[str]:
        return [
            executable,
            "-y",
            "-i",
            str(source),
            "-c",
            "copy",
            "-movflags",
            "+faststart",
            str(work),
        ]


class StructuralInspectionStrategy(RepairStrategy):
    """Last resort: decide from the byte layout alone, never rewriting."""

    name = "structural_inspection"

    async def run(self, path: Path, commit: Commit) -> StrategyResult:
        front = await asyncio.to_thread(index_precedes_media, path)
        if front is None:
            # Box structure unreadable; fall back to scanning the head bytes
            front = await asyncio.to_thread(moov_within_head, path)
        if front:
            return self._result(
                RepairOutcome.NOT_APPLICABLE,
                "index box is near the start; playback issues are likely codec-related",
            )
        return self._result(
            RepairOutcome.FAILED,
            "index box sits after the media data; requires an external remux tool",
        )
