from fieldmap.core.exceptions import (
    ConfigurationError,
    DataError,
    DuplicateKeyError,
    DuplicateNameError,
    IntegrationDisabledError,
    IntegrationNotConfiguredError,
    NotFoundError,
    StorageUnavailableError,
    UnknownTransformerError,
    UnresolvedTransformerError,
)


def test_configuration_errors_are_distinguishable_from_data_errors():
    config_errors = [
        DuplicateNameError("formatPhone"),
        UnknownTransformerError("toCurrency"),
        UnresolvedTransformerError("billing", 1, "toCurrency"),
        IntegrationDisabledError("billing"),
        IntegrationNotConfiguredError("billing"),
    ]
    for error in config_errors:
        assert isinstance(error, ConfigurationError)
        assert error.category == "configuration"

    assert DataError("bad record").category == "data"
    assert NotFoundError("GlobalToggle", "x").category == "data"
    assert DuplicateKeyError("GlobalToggle", "x").category == "data"
    assert StorageUnavailableError("down").category == "storage"


def test_to_dict_names_offending_step():
    payload = UnresolvedTransformerError(
        "billing", 1, "toCurrency", source_field="amount", target_field="amount"
    ).to_dict()

    assert payload["error"] == "UnresolvedTransformerError"
    assert payload["category"] == "configuration"
    assert payload["details"]["step_index"] == 1
    assert payload["details"]["transformer_name"] == "toCurrency"
    assert "toCurrency" in payload["message"]


def test_storage_error_keeps_cause():
    cause = OSError("connection refused")
    error = StorageUnavailableError("down", cause=cause)

    assert error.cause is cause
    assert "connection refused" in error.to_dict()["details"]["cause"]
