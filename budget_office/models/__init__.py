"""ORM model package."""

from budget_office.models.entities import (
    AppRole,
    Classifier,
    Financing,
    Office,
    Product,
    Purpose,
    Role,
    Subclassifier,
    Subunit,
    User,
    UserRole,
)

__all__ = [
    "AppRole",
    "Classifier",
    "Financing",
    "Office",
    "Product",
    "Purpose",
    "Role",
    "Subclassifier",
    "Subunit",
    "User",
    "UserRole",
]
