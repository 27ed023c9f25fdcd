"""
Pydantic input parsing with DocFlow errors.
"""

from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from docflow.engine.errors import DocFlowValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(model: Type[ModelT], data: Any, operation: str = "") -> ModelT:
    """
    Parse ``data`` into ``model``. An instance of ``model`` passes through.

    Raises DocFlowValidationError with field-level details on failure.
    """
    if isinstance(data, model):
        return data
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise DocFlowValidationError(
            f"Expected a mapping of fields for {model.__name__}",
            operation=operation,
        )
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "error": err["msg"]}
            for err in e.errors()
        ]
        raise DocFlowValidationError(
            f"Invalid input for {operation or model.__name__}",
            operation=operation,
            validation_errors=errors,
        ) from e
