from types import SimpleNamespace

from bucketfs.config import Settings
from bucketfs.session import SessionFlagGate, check_credentials, login, logout


def test_gate_reads_session_flag():
    gate = SessionFlagGate()

    assert gate.is_authenticated({"session": {"authenticated": True}})
    assert gate.is_authenticated(SimpleNamespace(session={"authenticated": True}))
    assert not gate.is_authenticated({"session": {"authenticated": False}})
    assert not gate.is_authenticated({"session": {}})
    assert not gate.is_authenticated({})
    assert not gate.is_authenticated(None)
    assert not gate.is_authenticated(SimpleNamespace(session="garbage"))


def test_check_credentials(settings):
    assert check_credentials("admin@example.org", "s3cret", settings)
    assert not check_credentials("admin@example.org", "wrong", settings)
    assert not check_credentials("someone@example.org", "s3cret", settings)


def test_check_credentials_without_configured_admin():
    settings = Settings(_env_file=None)

    assert not check_credentials("", "", settings)


def test_login_and_logout(settings):
    session = {}
    gate = SessionFlagGate()

    assert not login(session, "admin@example.org", "nope", settings)
    assert not gate.is_authenticated({"session": session})

    assert login(session, "admin@example.org", "s3cret", settings)
    assert gate.is_authenticated({"session": session})

    logout(session)
    assert not gate.is_authenticated({"session": session})
