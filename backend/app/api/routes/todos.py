from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict
from app.core.database import get_db
from app.core.errors import ValidationError
from app.core.validator import Validator
from app.api.dependencies import get_current_user
from app.models.user import User
from app.services.filters import Filters, validate_filters
from app.services.todo_service import TODO_SORT_SAFELIST, todo_service, validate_todo
from app.utils.query_params import read_int, read_string

router = APIRouter(prefix="/todos", tags=["todos"])


class TodoCreate(BaseModel):
    title: str = ""
    description: str = ""
    due_date: Optional[datetime] = None
    is_completed: bool = False


class TodoUpdate(BaseModel):
    # None (or omitted) leaves the stored value unchanged
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    is_completed: Optional[bool] = None


class TodoResponse(BaseModel):
    id: int
    title: str
    description: str
    due_date: datetime
    is_completed: bool

    model_config = ConfigDict(from_attributes=True)


class TodoEnvelope(BaseModel):
    todo: TodoResponse


class MetadataResponse(BaseModel):
    current_page: int
    page_size: int
    first_page: int
    last_page: int
    total_records: int

    model_config = ConfigDict(from_attributes=True)


class TodoListEnvelope(BaseModel):
    todos: List[TodoResponse]
    metadata: MetadataResponse


@router.post("", response_model=TodoEnvelope, status_code=status.HTTP_201_CREATED)
def create_todo(
    todo_in: TodoCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a todo owned by the current user"""
    v = Validator()
    validate_todo(v, todo_in.title, todo_in.due_date)
    if not v.valid():
        raise ValidationError(v.errors)

    todo = todo_service.insert_todo(
        db,
        current_user.id,
        title=todo_in.title,
        description=todo_in.description,
        due_date=todo_in.due_date,
        is_completed=todo_in.is_completed,
    )

    response.headers["Location"] = f"/v1/todos/{todo.id}"
    return {"todo": todo}


@router.get("", response_model=TodoListEnvelope)
def list_todos(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the current user's todos with search, sorting and pagination"""
    qs = request.query_params
    v = Validator()

    search = read_string(qs, "search", "")
    filters = Filters(
        page=read_int(qs, "page", 1, v),
        page_size=read_int(qs, "page_size", 10, v),
        sort=read_string(qs, "sort", "created_at"),
        order=read_string(qs, "order", "desc"),
        sort_safelist=TODO_SORT_SAFELIST,
    )

    validate_filters(v, filters)
    if not v.valid():
        raise ValidationError(v.errors)

    todos, metadata = todo_service.list_todos(db, current_user.id, search, filters)
    return {"todos": todos, "metadata": metadata}


@router.get("/{todo_id}", response_model=TodoEnvelope)
def get_todo(
    todo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a specific todo"""
    return {"todo": todo_service.get_todo(db, todo_id, current_user.id)}


@router.put("/{todo_id}", response_model=TodoEnvelope)
def update_todo(
    todo_id: int,
    todo_update: TodoUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Partially update a todo"""
    todo = todo_service.get_todo(db, todo_id, current_user.id)

    changes = todo_update.model_dump(exclude_none=True)

    # Validate the record as it will look after the update
    v = Validator()
    validate_todo(v, changes.get("title", todo.title), changes.get("due_date", todo.due_date))
    if not v.valid():
        raise ValidationError(v.errors)

    todo = todo_service.update_todo(db, todo, changes)
    return {"todo": todo}


@router.delete("/{todo_id}")
def delete_todo(
    todo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a todo"""
    todo_service.delete_todo(db, todo_id, current_user.id)
    return {"message": "todo successfully deleted"}
