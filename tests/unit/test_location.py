"""Unit tests for location resolution."""

import os
from pathlib import Path

import pytest

from pommel.exceptions import InvalidURIError, LocationError, MissingBucketOrKeyError
from pommel.location import LOCAL_SCHEME, Location, resolve, scheme_of


def test_resolve_existing_relative_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test an existing relative path resolves as local and recombines."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "local" / "path").mkdir(parents=True)
    (tmp_path / "local" / "path" / "a.txt").write_text("a")

    location = resolve("local/path/a.txt")

    assert location == Location(LOCAL_SCHEME, "local/path", "a.txt")
    assert os.path.join(location.bucket, location.key) == "local/path/a.txt"


def test_resolve_existing_absolute_path(tmp_path: Path) -> None:
    """Test an existing absolute path resolves as local."""
    target = tmp_path / "secret.json"
    target.write_text("{}")

    location = resolve(str(target))

    assert location.scheme == "local"
    assert location.bucket == str(tmp_path)
    assert location.key == "secret.json"
    assert location.path == str(target)
    assert location.is_local


def test_resolve_file_in_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test a bare file name in the working directory has an empty bucket."""
    monkeypatch.chdir(tmp_path)
    Path("token").write_text("t")

    location = resolve("token")

    assert location == Location("local", "", "token")
    assert os.path.join(location.bucket, location.key) == "token"


def test_local_path_takes_precedence_over_remote(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test a real path containing '://' resolves as local."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "vault:").mkdir()
    (tmp_path / "vault:" / "secret").mkdir()
    (tmp_path / "vault:" / "secret" / "b").write_text("local")

    location = resolve("vault://secret/b")

    assert location.scheme == "local"
    assert location.key == "b"


def test_resolve_remote_uri() -> None:
    """Test scheme://bucket/key resolves to its parts."""
    assert resolve("vault://secret/b") == Location("vault", "secret", "b")


def test_resolve_remote_uri_nested_bucket() -> None:
    """Test everything before the final component is the bucket."""
    location = resolve("vault://secret/app/prod/db_password")

    assert location == Location("vault", "secret/app/prod", "db_password")
    assert str(location) == "vault://secret/app/prod/db_password"


@pytest.mark.parametrize("uri", ["", "noSeparatorAtAll", "a://b://c", "://bucket/key"])
def test_resolve_invalid_uri(uri: str) -> None:
    """Test malformed strings raise InvalidURIError."""
    with pytest.raises(InvalidURIError):
        resolve(uri)


@pytest.mark.parametrize("uri", ["vault://key-only", "vault://secret/", "vault://"])
def test_resolve_missing_bucket_or_key(uri: str) -> None:
    """Test remote references without both bucket and key are rejected."""
    with pytest.raises(MissingBucketOrKeyError) as exc_info:
        resolve(uri)

    assert isinstance(exc_info.value, LocationError)
    assert exc_info.value.uri == uri


def test_scheme_of() -> None:
    """Test scheme detection without full resolution."""
    assert scheme_of("vault://secret/b") == "vault"
    assert scheme_of("s3://bucket") == "s3"
    assert scheme_of("not-a-path-or-uri") is None
    assert scheme_of("") is None
    assert scheme_of("://x/y") is None


def test_scheme_of_local(tmp_path: Path) -> None:
    """Test existing paths report the local scheme."""
    assert scheme_of(str(tmp_path)) == LOCAL_SCHEME
