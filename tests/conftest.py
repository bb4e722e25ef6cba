"""Shared fixtures: in-memory database, one TestClient per service, test accounts."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import io  # noqa: E402
from dataclasses import dataclass  # noqa: E402
from urllib.parse import urlsplit  # noqa: E402

import pytest  # noqa: E402
import requests  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from urllib3._collections import HTTPHeaderDict  # noqa: E402
from urllib3.response import HTTPResponse  # noqa: E402

from healthbar.gateway.main import create_app  # noqa: E402
from healthbar.gateway.proxy import Backend  # noqa: E402
from healthbar.gateway.ratelimit import RateLimiter  # noqa: E402
from healthbar.main import auth_app, doctor_app, patient_app, prescription_app, timeline_app  # noqa: E402
from healthbar.models.database import Base, SessionLocal, engine  # noqa: E402
from healthbar.services.blobstore import BlobStore, get_blob_store  # noqa: E402

UPLOAD_LIMIT = 1 << 20


@dataclass
class Account:
    user_id: str
    email: str
    token: str
    profile_id: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store(tmp_path):
    store = BlobStore(tmp_path / "uploads", UPLOAD_LIMIT)
    prescription_app.dependency_overrides[get_blob_store] = lambda: store
    yield store
    prescription_app.dependency_overrides.clear()


@pytest.fixture
def auth_client():
    return TestClient(auth_app, raise_server_exceptions=False)


@pytest.fixture
def patient_client():
    return TestClient(patient_app, raise_server_exceptions=False)


@pytest.fixture
def doctor_client():
    return TestClient(doctor_app, raise_server_exceptions=False)


@pytest.fixture
def timeline_client():
    return TestClient(timeline_app, raise_server_exceptions=False)


@pytest.fixture
def prescription_client(blob_store):
    return TestClient(prescription_app, raise_server_exceptions=False)


@pytest.fixture
def register(auth_client):
    def _register(email: str, role: str, password: str = "s3cret-pass") -> Account:
        response = auth_client.post(
            "/api/auth/register", json={"email": email, "password": password, "role": role}
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return Account(user_id=data["user"]["id"], email=email, token=data["token"])

    return _register


@pytest.fixture
def make_patient(register, patient_client):
    def _make(email: str = "pat@example.com", full_name: str = "Pat Jones") -> Account:
        account = register(email, "patient")
        response = patient_client.post(
            "/api/patients/profile",
            json={"full_name": full_name, "date_of_birth": "1990-01-15", "gender": "female"},
            headers=account.headers,
        )
        assert response.status_code == 201, response.text
        account.profile_id = response.json()["data"]["id"]
        return account

    return _make


@pytest.fixture
def make_doctor(register, doctor_client):
    def _make(email: str = "doc@example.com", full_name: str = "Dr. Quinn") -> Account:
        account = register(email, "doctor")
        response = doctor_client.post(
            "/api/doctors/profile",
            json={"full_name": full_name, "specialization": "Cardiology"},
            headers=account.headers,
        )
        assert response.status_code == 201, response.text
        account.profile_id = response.json()["data"]["id"]
        return account

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def grant(patient_client):
    def _grant(patient: Account, doctor: Account):
        response = patient_client.post(
            "/api/patients/permissions/grant",
            json={"doctor_id": doctor.profile_id},
            headers=patient.headers,
        )
        assert response.status_code == 200, response.text

    return _grant


# ---------------------------------------------------------------------------
# Gateway wiring: requests transport that dispatches into the service apps
# ---------------------------------------------------------------------------

BACKEND_HOSTS = {
    "auth.internal": auth_app,
    "patient.internal": patient_app,
    "doctor.internal": doctor_app,
    "timeline.internal": timeline_app,
    "prescription.internal": prescription_app,
}


class InProcessAdapter(requests.adapters.BaseAdapter):
    """Serves upstream calls from the service apps; hosts in ``down`` refuse connections."""

    def __init__(self, down=()):
        super().__init__()
        self.clients = {host: TestClient(app, raise_server_exceptions=False) for host, app in BACKEND_HOSTS.items()}
        self.down = set(down)
        self.sent = []

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        host = urlsplit(request.url).netloc
        if host in self.down or host not in self.clients:
            raise requests.ConnectionError(f"Connection refused: {host}", request=request)

        body = request.body
        if body is not None and not isinstance(body, (bytes, str)):
            body = b"".join(body)
        headers = {k: v for k, v in request.headers.items() if k.lower() != "transfer-encoding"}
        self.sent.append((request.method, request.path_url, headers))

        upstream = self.clients[host].request(request.method, request.path_url, headers=headers, content=body)
        raw_headers = HTTPHeaderDict()
        for name, value in upstream.headers.multi_items():
            raw_headers.add(name, value)
        raw = HTTPResponse(
            body=io.BytesIO(upstream.content),
            headers=raw_headers,
            status=upstream.status_code,
            preload_content=False,
            decode_content=False,
        )
        return requests.adapters.HTTPAdapter().build_response(request, raw)

    def close(self):
        pass


@pytest.fixture
def backends():
    return [
        Backend("auth", "/api/auth", "http://auth.internal"),
        Backend("patient", "/api/patients", "http://patient.internal"),
        Backend("doctor", "/api/doctors", "http://doctor.internal"),
        Backend("timeline", "/api/timeline", "http://timeline.internal"),
        Backend("prescription", "/api/prescriptions", "http://prescription.internal"),
    ]


@pytest.fixture
def make_gateway(backends, blob_store):
    def _make(limiter=None, down=()):
        adapter = InProcessAdapter(down=down)
        session = requests.Session()
        session.mount("http://", adapter)
        if limiter is None:
            limiter = RateLimiter(1000, 1000)
        app = create_app(backends=backends, limiter=limiter, session=session)
        return TestClient(app, raise_server_exceptions=False), adapter

    return _make
