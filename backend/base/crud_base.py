"""Base CRUD class for Flask blueprints."""
from flask import request
from typing import Type, Optional, Dict, Any, Callable
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_
from sqlalchemy.orm import DeclarativeBase
from shared.validation import ValidationError
from ..models import db, User
from ..utils import (
    api_success, api_error, not_found, forbidden, handle_api_exception,
    validation_error_response, parse_body, paginate
)
import logging


class CRUDBase:
    """Base class providing common resource operations for Flask blueprints.

    This class encapsulates common patterns for:
    - Paginated list retrieval (optionally scoped to the calling customer)
    - Single resource retrieval with ownership checks
    - Schema-validated updates
    - Resource deletion

    Subclasses should override:
    - serialize() - to customize serialization
    - apply_update() - to map validated payloads onto the model
    - get_singular_name() - to customize resource name in messages
    - get_plural_name() - to customize the list key in responses
    """

    # Enum used to validate the optional ``status`` list filter
    status_enum = None

    def __init__(self, model_class: Type[DeclarativeBase], logger_name: Optional[str] = None):
        """Initialize CRUD base class.

        Args:
            model_class: SQLAlchemy model class
            logger_name: Optional logger name (defaults to class name)
        """
        self.model = model_class
        self.logger = logging.getLogger(logger_name or self.__class__.__name__)

    def base_query(self, user=None):
        """Query for the resource, restricted to ``user`` when given."""
        query = self.model.query
        if user is not None:
            query = query.filter(self.model.user_id == user.id)
        return query

    def get_list(self, query=None, user=None):
        """Paginated list of resources, newest first.

        Args:
            query: Pre-filtered query (defaults to ``base_query(user)``)
            user: Customer to scope the list to

        Returns:
            Flask JSON response with paginated results
        """
        if query is None:
            query = self.base_query(user)
        status = request.args.get('status')
        if status and self.status_enum is not None:
            if status not in [s.value for s in self.status_enum]:
                return api_error(f"Invalid status: {status}", 400)
            query = query.filter(self.model.status == status)
        query = query.order_by(self.model.created_at.desc(), self.model.id.desc())
        return paginate(query, self.serialize, self.get_plural_name())

    def fetch(self, resource_id: int, user=None):
        """Load a resource and check ownership.

        Returns:
            tuple: (resource, None) on success, (None, error response) otherwise
        """
        resource = db.session.get(self.model, resource_id)
        if resource is None:
            return None, not_found(f'{self.get_display_name()} not found')
        if user is not None and resource.user_id != user.id:
            self.logger.warning(f"User {user.id} denied access to {self.get_singular_name()} {resource_id}")
            return None, forbidden('Access denied')
        return resource, None

    def get_detail(self, resource_id: int, user=None):
        """Get single resource by ID.

        Returns:
            Flask JSON response with resource data
        """
        resource, error = self.fetch(resource_id, user)
        if error:
            return error
        return api_success({self.get_singular_name(): self.serialize(resource, detail=True)})

    def update(self, resource_id: int, schema: Type[BaseModel], user=None,
               guard: Optional[Callable] = None):
        """Update an existing resource from a validated payload.

        Args:
            resource_id: Primary key ID of the resource
            schema: Pydantic schema for the request body
            user: Customer that must own the resource (None for admins)
            guard: Optional callable(resource) returning an error message when
                   the resource may not be changed in its current state

        Returns:
            Flask JSON response with the updated resource
        """
        resource, error = self.fetch(resource_id, user)
        if error:
            return error

        try:
            data = parse_body(schema)
        except (ValidationError, PydanticValidationError) as e:
            return validation_error_response(e)

        if guard:
            message = guard(resource)
            if message:
                return api_error(message, 400)

        try:
            self.apply_update(resource, data)
            db.session.commit()
            self.logger.info(f"Updated {self.get_singular_name()}: {resource_id}")
            return api_success(
                {self.get_singular_name(): self.serialize(resource, detail=True)},
                f'{self.get_display_name()} updated successfully'
            )
        except ValidationError as e:
            db.session.rollback()
            return api_error(str(e), 400)
        except Exception as e:
            db.session.rollback()
            return handle_api_exception(e, f'update {self.get_singular_name()}')

    def delete(self, resource_id: int, user=None, guard: Optional[Callable] = None):
        """Delete a resource.

        Returns:
            Flask JSON response with a confirmation message
        """
        resource, error = self.fetch(resource_id, user)
        if error:
            return error
        if guard:
            message = guard(resource)
            if message:
                return api_error(message, 400)

        try:
            db.session.delete(resource)
            db.session.commit()
            self.logger.info(f"Deleted {self.get_singular_name()}: {resource_id}")
            return api_success(message=f'{self.get_display_name()} deleted successfully')
        except Exception as e:
            db.session.rollback()
            return handle_api_exception(e, f'delete {self.get_singular_name()}')

    def apply_update(self, resource, data: BaseModel):
        """Copy set fields of the payload onto the resource."""
        for key, value in data.model_dump(exclude_none=True).items():
            setattr(resource, key, value)

    def serialize(self, resource: DeclarativeBase, detail: bool = False) -> Dict[str, Any]:
        """Serialize resource to dictionary.

        Subclasses should override this method to customize serialization.
        """
        result = {}
        for column in resource.__table__.columns:
            value = getattr(resource, column.name)
            if hasattr(value, 'isoformat'):
                result[column.name] = value.isoformat()
            elif hasattr(value, 'value'):
                result[column.name] = value.value
            else:
                result[column.name] = value
        return result

    def get_singular_name(self) -> str:
        """Singular resource name used as the response key (e.g. 'package')."""
        table_name = self.model.__tablename__
        if table_name.endswith('s'):
            return table_name[:-1]
        return table_name

    def get_plural_name(self) -> str:
        """Plural resource name used as the list key (e.g. 'packages')."""
        return self.model.__tablename__

    def get_display_name(self) -> str:
        """Capitalised name for messages (e.g. 'Photo request')."""
        return self.get_singular_name().replace('_', ' ').capitalize()

    def status_breakdown(self, query=None):
        """Count rows per status value, e.g. ``{'pending': 3, 'completed': 5}``."""
        query = query if query is not None else db.session.query(self.model)
        rows = (query.with_entities(self.model.status, func.count(self.model.id))
                .group_by(self.model.status)
                .all())
        return {getattr(status, 'value', status): count for status, count in rows}

    def customer_filter(self, query):
        """Apply ``user_id`` and ``search`` (customer name, email or suite) arguments."""
        user_id = request.args.get('user_id', type=int)
        if user_id:
            query = query.filter(self.model.user_id == user_id)
        search = (request.args.get('search') or '').strip()
        if search:
            pattern = f"%{search}%"
            query = query.join(User, self.model.user_id == User.id).filter(or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.suite_number.ilike(pattern),
            ))
        return query
