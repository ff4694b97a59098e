"""
Input validation for tool arguments and sprint identifiers.

Errors raised here are descriptive on purpose: the orchestration loop
hands them back to the model, which is expected to correct its next call.
"""

from typing import Optional, List, Any, Iterable, Mapping


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


class InvalidSprintIdsError(ValidationError):
    """Raised when requested sprint ids are not on the board."""

    def __init__(self, invalid_ids: List[int]):
        self.invalid_ids = list(invalid_ids)
        super().__init__(
            f"Invalid sprint IDs: {', '.join(str(i) for i in self.invalid_ids)}. "
            "Locate the correct IDs from AVAILABLE SPRINTS list."
        )


class UnknownToolError(ValidationError):
    """Raised when a tool call names a tool that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class SprintIdValidator:
    """Validator for sprint identifiers against the board's sprint list."""

    @staticmethod
    def validate(requested: Iterable[int], available: Iterable[Any]) -> List[int]:
        """
        Check that every requested sprint id exists.

        Args:
            requested: Sprint ids the caller asked for
            available: Sprints (objects with an ``id``) or raw ids on the board

        Returns:
            The requested ids (unchanged, in request order)

        Raises:
            InvalidSprintIdsError: If any id is unknown; names all of them
        """
        requested = list(requested)
        available_ids = {getattr(s, 'id', s) for s in available}

        invalid: List[int] = []
        for sprint_id in requested:
            if sprint_id not in available_ids and sprint_id not in invalid:
                invalid.append(sprint_id)

        if invalid:
            raise InvalidSprintIdsError(invalid)

        return requested


class ArgumentValidator:
    """Coercion helpers for untyped tool-call argument maps."""

    @staticmethod
    def required_string(args: Mapping[str, Any], name: str) -> str:
        value = args.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{name} is required")
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string")
        return value.strip()

    @staticmethod
    def optional_string(args: Mapping[str, Any], name: str) -> Optional[str]:
        value = args.get(name)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string")
        value = value.strip()
        return value or None

    @staticmethod
    def optional_string_list(args: Mapping[str, Any], name: str) -> Optional[List[str]]:
        value = args.get(name)
        if value is None:
            return None
        # Models sometimes send a single string where a list is declared
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"{name} must be a list of strings")
        result = []
        for item in value:
            if not isinstance(item, str):
                raise ValidationError(f"{name} must be a list of strings")
            if item.strip():
                result.append(item.strip())
        return result

    @staticmethod
    def to_int(value: Any, name: str) -> int:
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().lstrip('-').isdigit():
            return int(value.strip())
        raise ValidationError(f"{name} must be an integer, got {value!r}")

    @staticmethod
    def optional_int(args: Mapping[str, Any], name: str) -> Optional[int]:
        value = args.get(name)
        if value is None:
            return None
        return ArgumentValidator.to_int(value, name)

    @staticmethod
    def optional_int_list(args: Mapping[str, Any], name: str) -> Optional[List[int]]:
        value = args.get(name)
        if value is None:
            return None
        if not isinstance(value, (list, tuple)):
            value = [value]
        return [ArgumentValidator.to_int(item, name) for item in value]

    @staticmethod
    def optional_number(args: Mapping[str, Any], name: str) -> Optional[float]:
        value = args.get(name)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be a number")
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            try:
                number = float(value)
            except ValueError:
                raise ValidationError(f"{name} must be a number, got {value!r}")
            return int(number) if number.is_integer() else number
        raise ValidationError(f"{name} must be a number, got {value!r}")

    @staticmethod
    def optional_bool(args: Mapping[str, Any], name: str, default: bool = False) -> bool:
        value = args.get(name)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
            return value.strip().lower() == 'true'
        raise ValidationError(f"{name} must be a boolean")


# Convenience functions for common validations

def validate_sprint_ids(requested: Iterable[int], available: Iterable[Any]) -> List[int]:
    """Validate requested sprint ids against the board's sprints."""
    return SprintIdValidator.validate(requested, available)


def validate_issue_key(issue_key: Optional[str]) -> str:
    """Validate an issue key is present and normalise it to upper case."""
    if not issue_key or not str(issue_key).strip():
        raise ValidationError("issue_key is required")
    return str(issue_key).strip().upper()
