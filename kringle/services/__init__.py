from kringle.services.assignment import (
    Assignment,
    AssignmentError,
    ConstraintViolation,
    GenerationExhausted,
    InfeasibleConstraints,
    InvalidInput,
    generate_assignments,
)
from kringle.services.verification import find_violations, verify_assignments

__all__ = [
    "Assignment",
    "AssignmentError",
    "ConstraintViolation",
    "GenerationExhausted",
    "InfeasibleConstraints",
    "InvalidInput",
    "generate_assignments",
    "find_violations",
    "verify_assignments",
]
