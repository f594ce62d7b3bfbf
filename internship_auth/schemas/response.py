"""Generic API response schemas"""

from pydantic import BaseModel
from typing import Optional, Any


class APIResponse(BaseModel):
    """Generic API success response"""
    success: bool = True
    message: str
    data: Optional[Any] = None
