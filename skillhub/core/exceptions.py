class SkillHubError(Exception):
    """Base error for the profile engine."""


class ProfileStateError(SkillHubError, ValueError):
    """A status change the profile state machine does not allow."""


class InvalidStatusError(ProfileStateError):
    def __init__(self, value):
        super().__init__(f"Invalid profile status: {value!r}")
        self.value = value


class InvalidTransitionError(ProfileStateError):
    def __init__(self, current, target):
        super().__init__(f"Status transition {current} -> {target} is not allowed")
        self.current = current
        self.target = target


class GenerationError(SkillHubError):
    """Content generation failed. Always recovered inside the generator."""


class RepositoryUnavailableError(SkillHubError):
    """The profile repository could not be reached."""


class SupersededError(SkillHubError):
    """An outbound write was dropped because a newer write for the same record is queued."""
