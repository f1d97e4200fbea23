from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from fixtures import FakeSession, StubInferenceClient  # noqa: E402

from thinkforge.auth.service import AuthSession, AuthSessionStore  # noqa: E402
from thinkforge.backend.datastore import InMemoryDatastore  # noqa: E402
from thinkforge.backend.transport import RestTransport  # noqa: E402
from thinkforge.config import default_config  # noqa: E402
from thinkforge.context import AppContext  # noqa: E402
from thinkforge.core.workspace import ensure_workspace  # noqa: E402

BACKEND_URL = "https://backend.test"


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point the workspace at a temp dir and drop host configuration."""

    monkeypatch.setenv("THINKFORGE_DATA_HOME", str(tmp_path / "home"))
    for name in ("THINKFORGE_CONFIG", "SUPABASE_URL", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def http() -> FakeSession:
    return FakeSession()


@pytest.fixture
def transport(http: FakeSession) -> RestTransport:
    return RestTransport(BACKEND_URL, "anon-key", session=http)


@pytest.fixture
def datastore() -> InMemoryDatastore:
    return InMemoryDatastore()


@pytest.fixture
def stub_client() -> StubInferenceClient:
    return StubInferenceClient()


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("thinkforge.tests")


@pytest.fixture
def user_session() -> AuthSession:
    return AuthSession(
        access_token="access-1",
        refresh_token="refresh-1",
        user_id="user-1",
        email="ada@example.com",
        expires_at=None,
    )


@pytest.fixture
def app_context(
    tmp_path: Path,
    transport: RestTransport,
    datastore: InMemoryDatastore,
    stub_client: StubInferenceClient,
    logger: logging.Logger,
) -> AppContext:
    """Context wired to fakes so commands never touch the network."""

    return AppContext(
        config=default_config(),
        workspace=ensure_workspace(path=tmp_path / "workspace"),
        logger=logger,
        env={"SUPABASE_URL": BACKEND_URL, "SUPABASE_ANON_KEY": "anon-key"},
        transport=transport,
        inference=stub_client,
        datastore=datastore,
    )


@pytest.fixture
def signed_in(app_context: AppContext, user_session: AuthSession) -> AuthSession:
    """Store ``user_session`` as the active login of ``app_context``."""

    AuthSessionStore(app_context.workspace.path_for("auth")).save(user_session)
    return user_session
