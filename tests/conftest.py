import pytest

from playercomm.channel import find_free_port


@pytest.fixture
def free_port():
    return find_free_port("127.0.0.1")


@pytest.fixture
def properties_file(tmp_path):
    """Write a properties file and return its path."""

    def write(text: str):
        path = tmp_path / "application.properties"
        path.write_text(text, encoding="utf-8")
        return path

    return write
