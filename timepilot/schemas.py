from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from .models import (
    DeadlineType, TargetFrequency, TaskStatus, StudyPlanMode, SchedulingPreference, TimeOfDay,
    SessionStatus, SessionState, RescheduleReason, SkipReason, WarningType, WarningSeverity,
    WarningCategory, ConflictType, SuggestionType, RescheduleStatus
)
from .config import get_config

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

# ----------------- Task Schemas ---------------------

class Task(BaseModel):
    id: str
    title: str
    description: str = ""
    estimated_hours: float = Field(..., gt=0, description="Total estimated hours, must be positive")
    deadline: Optional[str] = Field(None, pattern=DATE_PATTERN, description="YYYY-MM-DD, absent for open tasks")
    deadline_type: DeadlineType = DeadlineType.HARD
    importance: bool = False
    status: TaskStatus = TaskStatus.PENDING
    target_frequency: TargetFrequency = TargetFrequency.DAILY
    is_one_time_task: bool = False
    start_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    min_work_block: Optional[int] = Field(None, gt=0, description="Minimum meaningful session in minutes")
    max_session_length: Optional[float] = Field(None, gt=0, description="Maximum session length in hours")
    session_duration: Optional[float] = Field(None, gt=0, description="Preferred session length in hours")
    preferred_time_slots: List[TimeOfDay] = Field(default_factory=list)
    respect_frequency_for_deadlines: bool = True
    scheduling_preference: Optional[SchedulingPreference] = None
    category: Optional[str] = None
    created_at: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def has_deadline(self) -> bool:
        return bool(self.deadline) and self.deadline_type != DeadlineType.NONE


class TaskDraft(Task):
    """Proposed task parameters checked before the task is saved. The estimate is not yet validated."""
    id: str = "draft"
    title: str = ""
    estimated_hours: float = 0


# ----------------- Commitment Schemas ---------------------

class DateRange(BaseModel):
    start_date: str = Field(..., pattern=DATE_PATTERN)
    end_date: str = Field(..., pattern=DATE_PATTERN)

class DaySpecificTiming(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    is_all_day: bool = False

class OccurrenceModification(BaseModel):
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    title: Optional[str] = None
    category: Optional[str] = None
    is_all_day: Optional[bool] = None

class FixedCommitment(BaseModel):
    id: str
    title: str
    recurring: bool = False
    days_of_week: List[int] = Field(default_factory=list, description="0 = Sunday, 6 = Saturday")
    specific_dates: List[str] = Field(default_factory=list)
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    is_all_day: bool = False
    date_range: Optional[DateRange] = None
    counts_toward_daily_hours: bool = False
    use_day_specific_timing: bool = False
    day_specific_timings: List[DaySpecificTiming] = Field(default_factory=list)
    deleted_occurrences: List[str] = Field(default_factory=list)
    modified_occurrences: Dict[str, OccurrenceModification] = Field(default_factory=dict)
    recurrence_rule: Optional[str] = Field(None, description="RRULE string, overrides days_of_week when set")
    category: str = "Personal"
    location: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True


class TimeRange(BaseModel):
    start: str = Field(..., pattern=TIME_PATTERN, description="Start time in HH:MM format")
    end: str = Field(..., pattern=TIME_PATTERN, description="End time in HH:MM format")

class SessionDurationRange(BaseModel):
    min: int = Field(..., gt=0, description="Minutes")
    max: int = Field(..., gt=0, description="Minutes")

class FlexibleCommitment(BaseModel):
    """A commitment expressed as weekly hours rather than fixed times."""
    id: str
    title: str
    total_hours_per_week: float = Field(..., gt=0)
    preferred_days: List[int] = Field(default_factory=list)
    preferred_time_ranges: List[TimeRange] = Field(default_factory=list)
    session_duration_range: SessionDurationRange
    date_range: Optional[DateRange] = None
    category: str = "Personal"

class GeneratedSession(BaseModel):
    date: str
    start_time: str
    end_time: str
    duration: float
    day_of_week: int

class CommitmentOccurrence(BaseModel):
    commitment_id: str
    title: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_all_day: bool = False
    category: str = "Personal"


# ----------------- Session & Plan Schemas ---------------------

class SlotRef(BaseModel):
    date: str
    start_time: str
    end_time: str

class RescheduleHistoryEntry(BaseModel):
    from_slot: SlotRef
    to_slot: SlotRef
    timestamp: str
    reason: RescheduleReason
    success: Optional[bool] = None

class SessionSchedulingMetadata(BaseModel):
    original_slot: Optional[SlotRef] = None
    reschedule_history: List[RescheduleHistoryEntry] = Field(default_factory=list)
    redistribution_round: Optional[int] = None
    priority: Optional[float] = None
    failure_reasons: List[str] = Field(default_factory=list)
    successful_moves: int = 0
    last_processed_at: Optional[str] = None
    state: Optional[SessionState] = None

class SkipMetadata(BaseModel):
    skipped_at: str
    reason: SkipReason = SkipReason.USER_CHOICE
    partial_hours: Optional[float] = None

class StudySession(BaseModel):
    task_id: str
    scheduled_time: str = ""
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)
    allocated_hours: float = Field(..., ge=0)
    session_number: Optional[int] = None
    is_flexible: bool = True
    is_manual_override: bool = False
    done: bool = False
    status: SessionStatus = SessionStatus.SCHEDULED
    actual_hours: Optional[float] = None
    completed_at: Optional[str] = None
    scheduling_metadata: Optional[SessionSchedulingMetadata] = None
    skip_metadata: Optional[SkipMetadata] = None
    original_time: Optional[str] = None
    original_date: Optional[str] = None
    rescheduled_at: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def session_key(self) -> str:
        return f"{self.task_id}-{self.session_number}"

    @property
    def is_completed(self) -> bool:
        return self.done or self.status == SessionStatus.COMPLETED

    @property
    def is_skipped(self) -> bool:
        return self.status == SessionStatus.SKIPPED

class StudyPlan(BaseModel):
    id: str
    date: str = Field(..., pattern=DATE_PATTERN)
    planned_tasks: List[StudySession] = Field(default_factory=list)
    total_study_hours: float = 0
    available_hours: float = 0
    is_overloaded: bool = False

    class Config:
        from_attributes = True


# ----------------- Settings Schemas ---------------------

class DateSpecificStudyWindow(BaseModel):
    date: str = Field(..., pattern=DATE_PATTERN)
    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=24)
    is_active: bool = True

class DaySpecificStudyWindow(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=24)
    is_active: bool = True

class DaySpecificStudyHours(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    study_hours: float = Field(..., ge=0)
    is_active: bool = True

class UserSettings(BaseModel):
    daily_available_hours: float = Field(6, gt=0)
    work_days: List[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4, 5, 6], description="0 = Sunday")
    buffer_days: int = Field(0, ge=0)
    min_session_length: int = Field(15, gt=0, description="Minutes")
    buffer_time_between_sessions: int = Field(0, ge=0, description="Minutes")
    study_window_start_hour: int = Field(default_factory=lambda: get_config().default_window_start_hour, ge=0, le=23)
    study_window_end_hour: int = Field(default_factory=lambda: get_config().default_window_end_hour, ge=1, le=24)
    avoid_time_ranges: List[TimeRange] = Field(default_factory=list)
    study_plan_mode: StudyPlanMode = StudyPlanMode.EVEN
    max_session_hours: float = Field(4, gt=0)
    date_specific_study_windows: List[DateSpecificStudyWindow] = Field(default_factory=list)
    day_specific_study_windows: List[DaySpecificStudyWindow] = Field(default_factory=list)
    day_specific_study_hours: List[DaySpecificStudyHours] = Field(default_factory=list)

    class Config:
        from_attributes = True


# ----------------- Result Schemas ---------------------

class TimeSlot(BaseModel):
    start: str
    end: str
    duration: float

class UnscheduledSuggestion(BaseModel):
    task_title: str
    unscheduled_minutes: int
    importance: Optional[bool] = None
    deadline: Optional[str] = None

class PlanResult(BaseModel):
    plans: List[StudyPlan]
    suggestions: List[UnscheduledSuggestion] = Field(default_factory=list)

class FeasibilityWarning(BaseModel):
    type: WarningType
    category: WarningCategory
    severity: WarningSeverity
    title: str
    message: str
    suggestion: Optional[str] = None

class AlternativeSuggestions(BaseModel):
    frequency: Optional[TargetFrequency] = None
    deadline: Optional[str] = None
    estimation: Optional[float] = None
    note: Optional[str] = None
    mark_as_one_sitting: Optional[bool] = None
    remove_one_sitting: Optional[bool] = None
    increase_daily_hours: Optional[float] = None

class FeasibilityResult(BaseModel):
    is_valid: bool
    warnings: List[FeasibilityWarning] = Field(default_factory=list)
    alternative_suggestions: AlternativeSuggestions = Field(default_factory=AlternativeSuggestions)

class AddTaskAssessment(BaseModel):
    is_feasible: bool
    scheduled_hours: float
    unscheduled_hours: float
    message: str

class RedistributionOptions(BaseModel):
    respect_daily_limits: bool = True
    allow_weekend_overflow: bool = False
    max_redistribution_days: int = Field(14, gt=0)
    prioritize_important_tasks: bool = True
    preserve_session_size: bool = True
    enable_rollback: bool = True

class RedistributionDetails(BaseModel):
    total_processed: int = 0
    successfully_moved: int = 0
    failed_to_move: int = 0
    reasons: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

class RedistributionFeedback(BaseModel):
    message: str
    details: RedistributionDetails = Field(default_factory=RedistributionDetails)

class RedistributionResult(BaseModel):
    success: bool
    plans: List[StudyPlan] = Field(default_factory=list)
    redistributed_sessions: List[StudySession] = Field(default_factory=list)
    failed_sessions: List[StudySession] = Field(default_factory=list)
    conflicts_resolved: int = 0
    total_sessions_moved: int = 0
    rollback_performed: bool = False
    feedback: RedistributionFeedback

class CommitmentConflict(BaseModel):
    has_conflict: bool
    conflict_type: Optional[ConflictType] = None
    conflicting_commitment: Optional[FixedCommitment] = None
    conflicting_dates: List[str] = Field(default_factory=list)

class SettingsChangeIssue(BaseModel):
    date: str
    task_id: str
    message: str

class SettingsChangeValidation(BaseModel):
    is_valid: bool
    issues: List[SettingsChangeIssue] = Field(default_factory=list)

class SmartSuggestion(BaseModel):
    type: SuggestionType
    message: str
    action: Optional[str] = None
    task_id: Optional[str] = None

class UserReschedule(BaseModel):
    original_session_id: str
    original_plan_date: str
    new_plan_date: str
    new_start_time: str = Field(..., pattern=TIME_PATTERN)
    new_end_time: str = Field(..., pattern=TIME_PATTERN)
    task_id: str
    session_number: Optional[int] = None
    status: RescheduleStatus = RescheduleStatus.ACTIVE

class SessionMoveResult(BaseModel):
    plans: List[StudyPlan]
    success: bool
    new_date: Optional[str] = None
    new_time: Optional[str] = None

class RescheduleApplication(BaseModel):
    plans: List[StudyPlan]
    valid_reschedules: List[UserReschedule] = Field(default_factory=list)
    obsolete_reschedules: List[UserReschedule] = Field(default_factory=list)


# ----------------- Request Schemas ---------------------

class PlanRequest(BaseModel):
    tasks: List[Task]
    settings: UserSettings = Field(default_factory=UserSettings)
    commitments: List[FixedCommitment] = Field(default_factory=list)
    existing_plans: List[StudyPlan] = Field(default_factory=list)
    today: Optional[str] = Field(None, pattern=DATE_PATTERN)

class RedistributeRequest(BaseModel):
    plans: List[StudyPlan]
    tasks: List[Task]
    settings: UserSettings = Field(default_factory=UserSettings)
    commitments: List[FixedCommitment] = Field(default_factory=list)
    options: Optional[RedistributionOptions] = None
    today: Optional[str] = Field(None, pattern=DATE_PATTERN)

class FeasibilityRequest(BaseModel):
    task: TaskDraft
    settings: UserSettings = Field(default_factory=UserSettings)
    tasks: List[Task] = Field(default_factory=list)
    plans: List[StudyPlan] = Field(default_factory=list)
    commitments: List[FixedCommitment] = Field(default_factory=list)
    today: Optional[str] = Field(None, pattern=DATE_PATTERN)

class CommitmentSessionsRequest(BaseModel):
    commitment: FlexibleCommitment
    settings: UserSettings = Field(default_factory=UserSettings)
    commitments: List[FixedCommitment] = Field(default_factory=list)
    plans: List[StudyPlan] = Field(default_factory=list)
    today: Optional[str] = Field(None, pattern=DATE_PATTERN)

class SettingsChangeRequest(BaseModel):
    old_settings: UserSettings
    new_settings: UserSettings
    plans: List[StudyPlan] = Field(default_factory=list)

class CommitmentConflictRequest(BaseModel):
    commitment: FixedCommitment
    commitments: List[FixedCommitment] = Field(default_factory=list)
    exclude_commitment_id: Optional[str] = None
