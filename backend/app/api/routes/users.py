from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict
from app.core.database import get_db
from app.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


class UserCreate(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserEnvelope(BaseModel):
    user: UserResponse


@router.post("", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a new user"""
    user = user_service.register(db, user_data.name, user_data.email, user_data.password)
    return {"user": user}
