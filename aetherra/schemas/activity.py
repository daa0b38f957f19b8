from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime


class ActivityCategory(str, Enum):
    calculation = "calculation"
    report = "report"
    goal = "goal"
    ai_analysis = "ai_analysis"
    auth = "auth"


class ActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    action: str
    category: ActivityCategory
    details: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
