"""Exceptions raised by the planning core."""


class PlanningError(Exception):
    """Base class for planning errors."""
    pass


class ConfigurationError(PlanningError):
    """Required mode-specific input or setting is missing or invalid."""
    pass


class NotFoundError(PlanningError):
    """Referenced goal, plan or todo does not exist in the partition."""
    pass
