from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union


class TargetParseError(ValueError):
    """Raised when a destination descriptor cannot be parsed."""


def _join(base: str, filename: str) -> str:
    """Append the filename when ``base`` denotes a directory."""
    if not base or base.endswith("/"):
        return f"{base}{filename}"
    return base


@dataclass(frozen=True)
class SSHTarget:
    """Remote path on a host reachable over SSH."""

    kind: ClassVar[str] = "ssh"

    host: str
    path: str

    @property
    def spec(self) -> str:
        return f"{self.host}:{self.path}"

    def remote_path(self, filename: str) -> str:
        return _join(self.path, filename)

    def resolve(self, filename: str) -> str:
        return f"{self.host}:{self.remote_path(filename)}"


@dataclass(frozen=True)
class HTTPTarget:
    """URL accepting PUT uploads."""

    kind: ClassVar[str] = "http"

    url: str

    @property
    def spec(self) -> str:
        return self.url

    def resolve(self, filename: str) -> str:
        return _join(self.url, filename)


@dataclass(frozen=True)
class ObjectStoreTarget:
    """Key or key prefix in an S3 bucket."""

    kind: ClassVar[str] = "s3"

    bucket: str
    key_prefix: str

    @property
    def spec(self) -> str:
        return f"{self.bucket}/{self.key_prefix}"

    def resolve(self, filename: str) -> str:
        return f"{self.bucket}/{_join(self.key_prefix, filename)}"

    def resolve_url(self, filename: str) -> str:
        return f"s3://{self.resolve(filename)}"


TransferTarget = Union[SSHTarget, HTTPTarget, ObjectStoreTarget]


def split_ssh_location(location: str) -> tuple[str, str]:
    """Split ``[user@]host:path`` on the first colon.

    An ``@`` counts as the user separator only before that colon, so the
    remote path may itself contain ``@`` or ``:``.
    """
    colon = location.find(":")
    at = location.find("@", 0, colon) if colon != -1 else -1
    if colon == -1 or colon == at + 1 or colon == len(location) - 1:
        raise TargetParseError(
            f"SSH target must look like user@host:/path, got {location!r}"
        )
    return location[:colon], location[colon + 1:]


def parse_target(target: str) -> TransferTarget:
    """Parse a destination descriptor.

    Accepts formats like:
      - ssh:user@host:/remote/dir/   → SSHTarget
      - https://example.com/upload/  → HTTPTarget
      - http:https://example.com/up/ → HTTPTarget (legacy form)
      - s3:bucket/path/prefix/       → ObjectStoreTarget
    """
    if target.startswith("ssh:"):
        host, path = split_ssh_location(target[len("ssh:"):])
        return SSHTarget(host=host, path=path)

    if target.startswith(("http://", "https://")):
        return HTTPTarget(url=target)

    if target.startswith("http:"):
        url = target[len("http:"):]
        if url.startswith(("http://", "https://")):
            return HTTPTarget(url=url)
        raise TargetParseError(f"Invalid HTTP target: {target!r}")

    if target.startswith("s3:"):
        bucket, _, key_prefix = target[len("s3:"):].partition("/")
        if not bucket:
            raise TargetParseError(f"S3 target is missing a bucket: {target!r}")
        return ObjectStoreTarget(bucket=bucket, key_prefix=key_prefix)

    raise TargetParseError(
        "Unrecognized target form. Must start with ssh:, http(s):// or s3:."
    )
