import logging

from volunteer_backend.gateway.server import create_app


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_index_is_served_at_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert b"volunteer app" in response.data


def test_static_file_is_served(client):
    response = client.get("/app.js")

    assert response.status_code == 200
    assert b"console.log" in response.data


def test_client_side_route_falls_back_to_index(client):
    response = client.get("/events/some-id/details")

    assert response.status_code == 200
    assert b"volunteer app" in response.data


def test_unknown_api_path_is_json_404(client, make_user, headers_for):
    make_user("a@x")

    response = client.get("/api/nothing-here", headers=headers_for("a@x"))

    assert response.status_code == 404
    assert response.get_json()["type"] == "error"


def test_unknown_api_path_still_needs_token(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 401


def test_wrong_method_uses_error_envelope(client):
    response = client.post("/health")

    assert response.status_code == 405
    assert response.get_json()["type"] == "error"


def test_cors_preflight_skips_token_gate(client):
    response = client.options(
        "/api/events",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


def test_unhandled_error_hides_details(client, make_user, events_repo, headers_for, mocker, caplog):
    make_user("a@x")
    mocker.patch.object(events_repo, "list_all", side_effect=KeyError("registered_volunteers"))

    with caplog.at_level(logging.ERROR):
        response = client.get("/api/events", headers=headers_for("a@x"))

    assert response.status_code == 500
    assert response.get_json() == {"type": "error", "message": "Internal server error"}
    assert "registered_volunteers" not in response.get_data(as_text=True)
    assert any("Unhandled error" in record.getMessage() for record in caplog.records)


def test_create_app_uses_injected_services(services):
    app = create_app(services)

    assert app.extensions["volunteer_backend"] is services
