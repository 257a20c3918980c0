"""
Persistence collaborator contract.

The engines read and write only through this protocol. Implementations
must raise DataUnavailable when the backing store fails and return empty
lists (never None) when there are simply no rows.

create_deload must enforce "one active deload per user" atomically
(transaction or conditional write) and raise DeloadAlreadyActive on
conflict; the engines have no mutual exclusion of their own.
"""

from datetime import date, datetime
from typing import List, Optional, Protocol

from services.training_logic.types import (
    DeloadRecord,
    ExerciseDefaultRecord,
    FatigueLogRecord,
    RecoveryLogRecord,
    SessionSetRecord,
)


class TrainingDataStore(Protocol):

    def get_session_sets(
        self,
        user_id: str,
        start: date,
        end: date,
        exercise_id: Optional[str] = None,
    ) -> List[SessionSetRecord]:
        """Sets logged on dates in [start, end], inclusive."""
        ...

    def get_recovery_logs(self, user_id: str, start: date, end: date) -> List[RecoveryLogRecord]:
        ...

    def get_first_session_date(self, user_id: str) -> Optional[date]:
        ...

    def get_target_sessions_per_week(self, user_id: str) -> Optional[int]:
        ...

    def get_exercise_default(self, user_id: str, exercise_id: str) -> Optional[ExerciseDefaultRecord]:
        ...

    def get_active_deload(self, user_id: str) -> Optional[DeloadRecord]:
        ...

    def get_deload_history(self, user_id: str, limit: int = 5) -> List[DeloadRecord]:
        """Most recent first (by start date)."""
        ...

    def create_deload(self, user_id: str, record: DeloadRecord) -> str:
        """Persist an active deload and return its id."""
        ...

    def close_active_deload(self, user_id: str, completed_at: datetime) -> bool:
        """Mark the active deload complete. False when none was active."""
        ...

    def record_fatigue(self, user_id: str, entry: FatigueLogRecord) -> None:
        """Upsert one fatigue log row per user per date."""
        ...

    def get_fatigue_history(self, user_id: str, start: date, end: date) -> List[FatigueLogRecord]:
        ...
