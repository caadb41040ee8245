import logging
from datetime import datetime
from typing import Any, Dict, List, Tuple
from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.errors import BackendError, EditConflict, NotFound
from app.core.validator import Validator
from app.models.todo import Todo
from app.services.filters import Filters, Metadata, calculate_metadata

logger = logging.getLogger(__name__)

# Columns the list endpoint may sort by
TODO_SORT_SAFELIST: Tuple[str, ...] = ("created_at", "due_date", "is_completed", "title")

# Fields a client may change on an existing todo
UPDATABLE_FIELDS = ("title", "description", "due_date", "is_completed")


def validate_todo(v: Validator, title: str, due_date: datetime | None) -> None:
    v.check(title != "", "title", "must be provided")
    v.check(len(title) <= 500, "title", "must not be more than 500 characters long")
    v.check(due_date is not None, "due_date", "must be provided")


def search_predicate(db: Session, search: str):
    """
    Full-text match of search against title or description.

    Returns None for an empty (or whitespace-only) search, meaning every row
    passes. The search text is always a bound parameter.
    """
    terms = search.split()
    if not terms:
        return None

    if db.get_bind().dialect.name == "postgresql":
        query = func.plainto_tsquery("simple", " ".join(terms))
        return or_(
            func.to_tsvector("simple", Todo.title).bool_op("@@")(query),
            func.to_tsvector("simple", Todo.description).bool_op("@@")(query),
        )

    # Other backends have no tsvector; every term must appear in the field
    def all_terms_in(column):
        return and_(*(func.lower(column).contains(term.lower(), autoescape=True) for term in terms))

    return or_(all_terms_in(Todo.title), all_terms_in(Todo.description))


class TodoService:
    @staticmethod
    def insert_todo(db: Session, user_id: int, title: str, description: str,
                    due_date: datetime, is_completed: bool) -> Todo:
        todo = Todo(
            user_id=user_id,
            title=title,
            description=description,
            due_date=due_date,
            is_completed=is_completed,
        )
        try:
            db.add(todo)
            db.commit()
            # Refresh to load server-generated fields (id, created_at)
            db.refresh(todo)
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"inserting todo failed: {exc}") from exc
        return todo

    @staticmethod
    def get_todo(db: Session, todo_id: int, user_id: int) -> Todo:
        """Fetch a todo owned by user_id. Someone else's todo is NotFound too."""
        if todo_id < 1:
            raise NotFound(f"invalid todo id {todo_id}")

        try:
            todo = db.query(Todo).filter(
                Todo.id == todo_id,
                Todo.user_id == user_id
            ).first()
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"fetching todo failed: {exc}") from exc

        if todo is None:
            raise NotFound(f"todo {todo_id} not found for user {user_id}")
        return todo

    @staticmethod
    def list_todos(db: Session, user_id: int, search: str, filters: Filters) -> Tuple[List[Todo], Metadata]:
        """
        Return one page of the caller's todos plus paging metadata.

        filters must already have passed validate_filters().
        """
        conditions = [Todo.user_id == user_id]
        predicate = search_predicate(db, search)
        if predicate is not None:
            conditions.append(predicate)

        sort_column = getattr(Todo, filters.sort_column())
        ordering = sort_column.asc() if filters.sort_ascending() else sort_column.desc()

        try:
            total_records = db.query(func.count(Todo.id)).filter(*conditions).scalar()
            todos = (
                db.query(Todo)
                .filter(*conditions)
                # id breaks ties so pages stay stable when sort values repeat
                .order_by(ordering, Todo.id.asc())
                .limit(filters.limit())
                .offset(filters.offset())
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"listing todos failed: {exc}") from exc

        return todos, calculate_metadata(total_records, filters.page, filters.page_size)

    @staticmethod
    def update_todo(db: Session, todo: Todo, changes: Dict[str, Any]) -> Todo:
        """
        Write changes to a todo previously read with get_todo().

        The UPDATE matches on id and owner. When nothing matches, the row was
        deleted or changed hands since it was read, and EditConflict is raised.
        """
        values = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
        if not values:
            return todo

        try:
            updated = (
                db.query(Todo)
                .filter(Todo.id == todo.id, Todo.user_id == todo.user_id)
                .update(values, synchronize_session=False)
            )
            if updated == 0:
                db.rollback()
                raise EditConflict(f"todo {todo.id} changed before update")
            db.commit()
            db.refresh(todo)
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"updating todo failed: {exc}") from exc

        return todo

    @staticmethod
    def delete_todo(db: Session, todo_id: int, user_id: int) -> None:
        if todo_id < 1:
            raise NotFound(f"invalid todo id {todo_id}")

        try:
            deleted = (
                db.query(Todo)
                .filter(Todo.id == todo_id, Todo.user_id == user_id)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackendError(f"deleting todo failed: {exc}") from exc

        if deleted == 0:
            raise NotFound(f"todo {todo_id} not found for user {user_id}")
        logger.info(f"Deleted todo {todo_id} for user {user_id}")


todo_service = TodoService()
