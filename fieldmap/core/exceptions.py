"""
🚨 Error taxonomy for the mapping engine

Every error carries a category so diagnostics can tell a configuration
problem (fix the mapping/toggle setup) from a data problem (fix the input)
or a storage outage (retry later).
"""

from typing import Any, Dict, Optional


class ErrorCategory:
    CONFIGURATION = "configuration"
    DATA = "data"
    STORAGE = "storage"


class FieldMapError(Exception):
    """Base error for the engine"""

    category: str = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        """Serializable diagnostic payload"""
        return {
            "error": self.__class__.__name__,
            "category": self.category,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(FieldMapError):
    category = ErrorCategory.CONFIGURATION


class DuplicateNameError(ConfigurationError):
    """A transformer with the same name is already registered"""

    def __init__(self, name: str):
        super().__init__(f"A transformer named '{name}' is already registered", name=name)
        self.name = name


class UnknownTransformerError(ConfigurationError):
    """No transformer registered under the requested name"""

    def __init__(self, name: str):
        super().__init__(f"No transformer registered with name '{name}'", name=name)
        self.name = name


class UnresolvedTransformerError(ConfigurationError):
    """A mapping step references a transformer missing from the registry"""

    def __init__(self, integration_key: str, step_index: int, transformer_name: str,
                 source_field: Optional[str] = None, target_field: Optional[str] = None):
        super().__init__(
            f"Integration '{integration_key}' step {step_index} "
            f"({source_field} -> {target_field}) references unknown transformer '{transformer_name}'",
            integration_key=integration_key,
            step_index=step_index,
            transformer_name=transformer_name,
            source_field=source_field,
            target_field=target_field,
        )
        self.integration_key = integration_key
        self.step_index = step_index
        self.transformer_name = transformer_name


class IntegrationDisabledError(ConfigurationError):
    """The integration has no enabled toggle (fail-closed)"""

    def __init__(self, integration_key: str):
        super().__init__(
            f"Integration '{integration_key}' is not active (missing or disabled toggle)",
            integration_key=integration_key,
        )
        self.integration_key = integration_key


class IntegrationNotConfiguredError(ConfigurationError):
    """The toggle is enabled but no mapping has been authored for it"""

    def __init__(self, integration_key: str):
        super().__init__(
            f"Integration '{integration_key}' is enabled but has no mapping",
            integration_key=integration_key,
        )
        self.integration_key = integration_key


# =============================================================================
# DATA ERRORS
# =============================================================================

class DataError(FieldMapError):
    """The record handed to the pipeline is not a mapping of field -> string"""

    category = ErrorCategory.DATA


class NotFoundError(FieldMapError):
    """Requested key does not exist in the store"""

    category = ErrorCategory.DATA

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} '{key}' not found", entity=entity, key=key)
        self.entity = entity
        self.key = key


class DuplicateKeyError(FieldMapError):
    """Unique key collision rejected by the store"""

    category = ErrorCategory.DATA

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} with key '{key}' already exists", entity=entity, key=key)
        self.entity = entity
        self.key = key


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageUnavailableError(FieldMapError):
    """Repository I/O failure. Not retried internally"""

    category = ErrorCategory.STORAGE

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, cause=repr(cause) if cause else None)
        self.cause = cause


class UnitOfWorkError(FieldMapError):
    """Unit of work used outside its scope or reused after completion"""

    category = ErrorCategory.STORAGE
