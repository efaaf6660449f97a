"""Exception hierarchy for failures the engine cannot express as results.

Domain-rule violations (missing ground, bad property values, overheating) are
never raised; they are reported through ``ValidationResult``. These exceptions
cover malformed input files and explicit lookups of things that do not exist.
"""


class MagsimError(Exception):
    """Base class for all user-facing errors in magsim."""


class CircuitLoadError(MagsimError):
    """Raised when a circuit, catalog or field-source file cannot be loaded."""
