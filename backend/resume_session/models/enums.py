"""
Enums and constants for data models
"""
from enum import Enum


class Workflow(Enum):
    """Entry paths into the resume editor"""
    SCRATCH = "scratch"
    IMPORT = "import"
    TAILOR = "tailor"
    LEGACY = "legacy"


class TailorSource(Enum):
    """Sub-choice a tailor workflow must make before it can proceed"""
    NEW = "new"
    IMPORT = "import"


class PlanType(Enum):
    """User plan enumeration"""
    FREE = "free"
    PRO = "pro"
    ELITE = "elite"


class FailureReason(Enum):
    """Typed failure reasons returned by the resume gateway"""
    LIMIT_REACHED = "limit_reached"
    NETWORK_ERROR = "network_error"
    NOT_FOUND = "not_found"
