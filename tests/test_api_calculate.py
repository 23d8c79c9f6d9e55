import io
import json

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from outlier import __version__
from outlier.core.config import LimitSettings, Settings
from outlier.core.errors import PayloadTooLargeError
from outlier.core.metrics import get_counters, get_metrics
from outlier.main import create_app
from outlier.routers.calculate import _read_upload
from outlier.services.decoder import DataFormat
from outlier.services.orchestrator import process


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "outlier", "version": __version__}


def test_calculate_values(client):
    response = client.post("/calculate", json={"values": [1, 2, 3, 4, 5, 6, 7, 8, 9, 10], "percentile": 95})
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 10
    assert body["percentile"] == 95
    assert body["value"] == pytest.approx(9.55)


def test_calculate_defaults_to_p95(client):
    response = client.post("/calculate", json={"values": [10, 20, 30, 40, 50]})
    assert response.status_code == 200
    assert response.json()["percentile"] == 95
    assert response.json()["value"] == pytest.approx(48.0)


@pytest.mark.parametrize(
    "payload, kind, fragment",
    [
        ({"values": [], "percentile": 50}, "empty_dataset", "empty dataset"),
        ({"values": [1, 2], "percentile": 150}, "invalid_percentile", "150"),
        ({"values": [1, 2], "percentile": -1}, "invalid_percentile", "-1"),
    ],
)
def test_calculate_domain_errors(client, payload, kind, fragment):
    response = client.post("/calculate", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["kind"] == kind
    assert fragment in body["error"]


@pytest.mark.parametrize(
    "payload",
    [
        {"values": ["1", 2]},
        {"values": [True, 2]},
        {"values": "1,2,3"},
        {"percentile": 50},
        {"values": [1, 2], "percentile": "high"},
    ],
)
def test_calculate_malformed_body(client, payload):
    response = client.post("/calculate", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["kind"] == "invalid_request"
    assert body["error"].startswith("Invalid request body")


def test_calculate_rejects_too_many_values(client):
    response = client.post("/calculate", json={"values": list(range(1001)), "percentile": 50})
    assert response.status_code == 413
    assert response.json()["kind"] == "dataset_too_large"


def test_calculate_file_json(client):
    files = {"file": ("data.json", b"[1.5,2.3,4.7,8.1]", "application/json")}
    response = client.post("/calculate/file", files=files, data={"percentile": "99"})
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 4
    assert body["value"] == pytest.approx(7.998)


def test_calculate_file_csv_default_percentile(client):
    files = {"file": ("data.csv", b"value\n1\n2\n3\n4\n5\n6\n7\n8\n9\n10\n\n", "text/csv")}
    response = client.post("/calculate/file", files=files)
    assert response.status_code == 200
    assert response.json()["percentile"] == 95
    assert response.json()["value"] == pytest.approx(9.55)


def test_calculate_file_uses_content_type_without_extension(client):
    files = {"file": ("upload", b"value\n10\n20\n30\n", "text/csv")}
    response = client.post("/calculate/file", files=files, data={"percentile": "50"})
    assert response.status_code == 200
    assert response.json()["value"] == 20.0


def test_calculate_file_unsupported_format(client):
    files = {"file": ("data.txt", b"1\n2\n", "text/plain")}
    response = client.post("/calculate/file", files=files)
    assert response.status_code == 415
    assert response.json()["kind"] == "unsupported_format"


def test_calculate_file_invalid_line(client):
    files = {"file": ("data.csv", b"value\n1\nabc\n", "text/csv")}
    response = client.post("/calculate/file", files=files)
    assert response.status_code == 400
    body = response.json()
    assert body["kind"] == "invalid_number"
    assert "line 3" in body["error"]


def test_calculate_file_invalid_json(client):
    files = {"file": ("data.json", b'{"values": [1]}', "application/json")}
    response = client.post("/calculate/file", files=files)
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_format"


def test_calculate_file_bad_percentile_field(client):
    files = {"file": ("data.json", b"[1, 2]", "application/json")}
    response = client.post("/calculate/file", files=files, data={"percentile": "abc"})
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_percentile"


def test_calculate_file_missing_file(client):
    response = client.post("/calculate/file", data={"percentile": "50"})
    assert response.status_code == 400
    assert response.json()["kind"] == "missing_file"


def test_body_over_byte_ceiling_is_rejected_before_decoding():
    settings = Settings(limits=LimitSettings(max_body_bytes=64, max_dataset_values=1000))
    small_client = TestClient(create_app(settings))
    response = small_client.post("/calculate", json={"values": list(range(100)), "percentile": 50})
    assert response.status_code == 413
    assert response.json()["kind"] == "payload_too_large"


def _chunks(payload: bytes, size: int = 100):
    for start in range(0, len(payload), size):
        yield payload[start:start + size]


def test_chunked_body_over_byte_ceiling_is_rejected():
    settings = Settings(limits=LimitSettings(max_body_bytes=64, max_dataset_values=1000))
    small_client = TestClient(create_app(settings))
    payload = json.dumps({"values": list(range(300)), "percentile": 50}).encode()
    response = small_client.post(
        "/calculate",
        content=_chunks(payload),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["kind"] == "payload_too_large"
    assert get_counters()["outlier.errors.payload_too_large"] == 1.0


def test_chunked_body_under_byte_ceiling_is_processed(client):
    payload = json.dumps({"values": list(range(1, 11)), "percentile": 95}).encode()
    response = client.post(
        "/calculate",
        content=_chunks(payload, 7),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json()["value"] == pytest.approx(9.55)


def test_percentile_too_large_for_a_float_is_rejected(client):
    body = '{"values": [1, 2], "percentile": ' + "1" * 400 + "}"
    response = client.post("/calculate", content=body, headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_percentile"


def test_interpolation_between_extreme_values_stays_finite(client):
    response = client.post("/calculate", json={"values": [-1.7e308, 1.7e308], "percentile": 50})
    assert response.status_code == 200
    assert response.json() == {"percentile": 50.0, "value": 0.0, "count": 2}


def test_upload_reader_enforces_byte_ceiling():
    upload = UploadFile(file=io.BytesIO(b"x" * 10), filename="data.json")
    with pytest.raises(PayloadTooLargeError):
        _read_upload(upload, 5)
    upload = UploadFile(file=io.BytesIO(b"[1, 2]"), filename="data.json")
    assert _read_upload(upload, 64) == b"[1, 2]"


def test_request_id_is_echoed_and_reported(client):
    response = client.post("/calculate", json={"values": []}, headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["correlation_id"] == "req-123"


def test_generated_request_id(client):
    response = client.get("/health")
    assert response.headers["X-Request-ID"]


def test_all_entry_points_agree(client):
    numbers = [12.5, -3.0, 7.75, 0.001, 42.0, 7.75, 0.0, 1000.125, 3.3]
    csv_body = ("value\n" + "\n".join(repr(n) for n in numbers) + "\n").encode()
    json_body = repr(numbers).encode()
    for p in (0, 10, 33.3, 50, 90, 95, 99, 100):
        library = process(",".join(repr(n) for n in numbers), p, DataFormat.DELIMITED).value
        direct = client.post("/calculate", json={"values": numbers, "percentile": p}).json()["value"]
        from_json = client.post(
            "/calculate/file",
            files={"file": ("d.json", json_body, "application/json")},
            data={"percentile": str(p)},
        ).json()["value"]
        from_csv = client.post(
            "/calculate/file",
            files={"file": ("d.csv", csv_body, "text/csv")},
            data={"percentile": str(p)},
        ).json()["value"]
        assert library == direct == from_json == from_csv


def test_operations_are_instrumented(client):
    client.post("/calculate", json={"values": [1, 2, 3]})
    client.post("/calculate/file", files={"file": ("d.json", b"[1, 2, 3]", "application/json")})
    client.post("/calculate", json={"values": []})

    timings = get_metrics()
    assert timings["outlier.decode"]["count"] == 1.0
    assert timings["outlier.compute"]["count"] == 3.0
    counters = get_counters()
    assert counters["outlier.requests.values"] == 1
    assert counters["outlier.requests.file"] == 1
    assert counters["outlier.errors.empty_dataset"] == 1


def test_openapi_document(client):
    response = client.get("/openapi.json")
    assert response.status_code == 200
    paths = response.json()["paths"]
    assert {"/calculate", "/calculate/file", "/health"} <= set(paths)
