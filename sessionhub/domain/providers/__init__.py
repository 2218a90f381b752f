"""Interfaces to the collaborators the domain depends on.

These are implemented in the infrastructure layer: the meeting provider
client, the recording file store and the container repair pipeline.
"""

from .meeting_provider import (
    MeetingProviderInterface,
    ProviderMeeting,
    ProviderRecording,
)
from .repair import (
    ContainerRepairInterface,
    RepairOutcome,
    RepairReport,
    StrategyResult,
)
from .storage import RecordingStorageInterface

__all__ = [
    "MeetingProviderInterface",
    "ProviderMeeting",
    "ProviderRecording",
    "RecordingStorageInterface",
    "ContainerRepairInterface",
    "RepairOutcome",
    "RepairReport",
    "StrategyResult",
]
