# backend/core/state.py

from enum import Enum


class InterviewStatus(str, Enum):
    COLLECTING_INFO = "collecting_info"
    CONFIRMING = "confirming"
    INTERVIEWING = "interviewing"
    COMPLETED = "completed"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in (InterviewStatus.COMPLETED, InterviewStatus.TERMINATED)


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ViolationKind(str, Enum):
    FULLSCREEN_EXIT = "fullscreen_exit"
    TAB_CHANGE = "tab_change"
    WINDOW_BLUR = "window_blur"


class SignalKind(str, Enum):
    FULLSCREEN = "fullscreen"
    VISIBILITY = "visibility"
    FOCUS = "focus"


class InterviewMode(str, Enum):
    PROCTORED = "proctored"
    MONITORED = "monitored"
    PRACTICE = "practice"


class Recommendation(str, Enum):
    STRONG_HIRE = "Strong Hire"
    HIRE = "Hire"
    NO_HIRE = "No Hire"
    INSUFFICIENT_DATA = "Insufficient Data"
