"""
Shared Models

Base class for domain models.
"""

from pydantic import BaseModel, ConfigDict


class DomainModel(BaseModel):
    """
    Base domain model for all domain entities.
    
    Provides:
    - Proper Pydantic v2 configuration
    - Assignment validation so mutated fields keep their types
    """
    
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        validate_assignment=True,
    )
