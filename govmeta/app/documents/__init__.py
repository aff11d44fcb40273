from .cip100 import (
    Author,
    Body,
    CIP100Fields,
    Document,
    Reference,
    ReferenceType,
    Update,
    Witness,
)
from .cip108 import CIP108Fields, RationaleBody, RationaleDocument

__all__ = [
    "Author",
    "Body",
    "CIP100Fields",
    "Document",
    "Reference",
    "ReferenceType",
    "Update",
    "Witness",
    "CIP108Fields",
    "RationaleBody",
    "RationaleDocument",
]
