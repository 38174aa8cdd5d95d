"""PracticeTutor: adaptive practice sessions with multi-format answer checking."""

__version__ = "0.1.0"
