import enum

# Enums

class DeadlineType(str, enum.Enum):
    HARD = "hard"
    SOFT = "soft"
    NONE = "none"

class TargetFrequency(str, enum.Enum):
    DAILY = "daily"
    THREE_TIMES_WEEK = "3x-week"
    WEEKLY = "weekly"
    FLEXIBLE = "flexible"

class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

class StudyPlanMode(str, enum.Enum):
    EISENHOWER = "eisenhower"  # Strict importance/deadline order, day by day
    BALANCED = "balanced"      # Four urgency/importance tiers
    EVEN = "even"              # Each task spread over its own range

class SchedulingPreference(str, enum.Enum):
    CONSISTENT = "consistent"
    OPPORTUNISTIC = "opportunistic"
    INTENSIVE = "intensive"

class TimeOfDay(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

class SessionState(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"                      # Terminal
    MISSED_ORIGINAL = "missed_original"          # Date passed while incomplete
    REDISTRIBUTED = "redistributed"              # Moved to a new slot
    FAILED_REDISTRIBUTION = "failed_redistribution"  # Terminal
    SKIPPED_USER = "skipped_user"                # Terminal
    SKIPPED_SYSTEM = "skipped_system"            # Terminal

class RescheduleReason(str, enum.Enum):
    MISSED = "missed"
    MANUAL = "manual"
    CONFLICT = "conflict"
    REDISTRIBUTION = "redistribution"
    UNIFIED_REDISTRIBUTION = "unified_redistribution"

class SkipReason(str, enum.Enum):
    USER_CHOICE = "user_choice"
    CONFLICT = "conflict"
    OVERLOAD = "overload"

class WarningType(str, enum.Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

class WarningSeverity(str, enum.Enum):
    CRITICAL = "critical"  # Blocks acceptance
    MAJOR = "major"        # Proceeds, but flags a likely problem
    MINOR = "minor"        # Advisory only

class WarningCategory(str, enum.Enum):
    FREQUENCY = "frequency"
    ESTIMATION = "estimation"
    SCHEDULE = "schedule"
    TIMING = "timing"
    WORKLOAD = "workload"
    SESSION = "session"
    MODE = "mode"
    BUFFER = "buffer"
    CATEGORY = "category"
    DEADLINE = "deadline"
    DISTRIBUTION = "distribution"
    COMPLETION = "completion"

class ConflictType(str, enum.Enum):
    STRICT = "strict"      # Genuine double booking
    OVERRIDE = "override"  # One-time commitment replacing a recurring one

class SuggestionType(str, enum.Enum):
    WARNING = "warning"
    SUGGESTION = "suggestion"
    CELEBRATION = "celebration"

class RescheduleStatus(str, enum.Enum):
    ACTIVE = "active"
    OBSOLETE = "obsolete"


TERMINAL_STATES = {
    SessionState.COMPLETED,
    SessionState.FAILED_REDISTRIBUTION,
    SessionState.SKIPPED_USER,
    SessionState.SKIPPED_SYSTEM,
}
