from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime


# ---------- SHARED ----------

class UserBase(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)


# ---------- CREATE ----------

class UserCreate(UserBase):
    password: str = Field(..., min_length=6)


# ---------- RESPONSE ----------

class UserOut(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None


# ---------- AUTH ----------

class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
