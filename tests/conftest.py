import pytest

from bucketfs.config import Settings
from bucketfs.logs import clear_logs
from bucketfs.memory import MemoryKeyStore


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        bucket="test-bucket",
        admin_email="admin@example.org",
        admin_password="s3cret",
        _env_file=None,
    )


@pytest.fixture
def store():
    return MemoryKeyStore()


@pytest.fixture
def tree():
    """
    A small keyspace with nested folders, a marker and root level files.
    """
    return MemoryKeyStore(
        {
            "readme.md": b"hello",
            "Zeta.txt": b"z" * 3,
            "alpha.txt": b"a" * 7,
            "docs/a.txt": b"x" * 10,
            "docs/b.txt": b"x" * 20,
            "docs/deep/c.txt": b"x" * 30,
            "docs/.placeholder": b"",
            "empty/.placeholder": b"",
            "Photos/2024/img.jpg": b"j" * 100,
        }
    )


@pytest.fixture(autouse=True)
def reset_logs():
    clear_logs()
    yield
    clear_logs()
