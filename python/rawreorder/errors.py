class ReorderError(Exception):
    """Base class for errors raised by rawreorder."""


class SettingsError(ReorderError):
    """The settings file could not be read or validated."""


class InvalidRuleError(ReorderError, ValueError):
    """An extraction rule holds a regular expression that does not compile."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        super().__init__(f"Invalid class regex {pattern!r}: {reason}")


class ConfigNotFoundError(ReorderError):
    """No Tailwind config could be resolved for a file."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"Tailwind config not found for {file_path}")
