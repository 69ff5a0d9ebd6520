"""Tests for the error taxonomy."""

from __future__ import annotations

from workflows.errors import (
    CircuitOpenError,
    ConfigurationError,
    DuplicateVenueError,
    ExtractionServiceError,
    NotFoundError,
    PlacesServiceError,
    RateLimitError,
    StorageError,
    UnknownCityError,
    ValidationError,
    WeatherServiceError,
    is_client_error,
    is_system_error,
)


def test_client_errors_are_4xx():
    for exc in (ValidationError("bad", field="query"), UnknownCityError("x"), NotFoundError("Itinerary", 3)):
        assert is_client_error(exc)
        assert not is_system_error(exc)
    assert str(NotFoundError("Itinerary", 3)) == "Itinerary with ID 3 not found"
    assert is_client_error(RateLimitError())
    assert RateLimitError().to_dict() == {"error": "RateLimitError", "message": "Too many requests", "status_code": 429}


def test_upstream_errors_name_their_service():
    assert ExtractionServiceError("x").service == "nlp"
    assert PlacesServiceError("x").service == "places"
    assert WeatherServiceError("x").status_code == 503
    circuit = CircuitOpenError("places", 12.4)
    assert circuit.service == "places"
    assert circuit.retry_after == 12.4
    assert is_system_error(circuit)


def test_storage_errors_hide_details():
    payload = StorageError("connection reset by peer at 10.0.0.3").to_dict()
    assert payload["message"] == "Internal error"
    assert payload["status_code"] == 500
    assert isinstance(DuplicateVenueError("abc"), StorageError)


def test_validation_error_payload_includes_field():
    payload = ValidationError("Query must not be empty", field="query").to_dict()
    assert payload == {
        "error": "ValidationError",
        "message": "Query must not be empty",
        "status_code": 400,
        "field": "query",
    }
    assert is_system_error(ConfigurationError("missing key"))
    assert is_system_error(RuntimeError("boom"))
