"""
Server version detection.

The version decides which SQL generators are available; native upsert
(`INSERT ... ON CONFLICT`) needs 9.5 or later.
"""
import logging
import re
from collections.abc import Callable
from typing import Any, NamedTuple

from pgadapter.exceptions import QueryError, VersionDetectionError

logger = logging.getLogger(__name__)

_LEADING_VERSION = re.compile(r'^\s*(\d+(?:\.\d+)*)')


class ServerVersion(NamedTuple):
    """Dot-separated server version, compared component-wise."""
    parts: tuple[int, ...]

    def __str__(self) -> str:
        return '.'.join(str(p) for p in self.parts)


MINIMUM_VERSION = ServerVersion((9, 4))
UPSERT_VERSION = ServerVersion((9, 5))


def parse_server_version(text: str) -> ServerVersion:
    """Parse the leading dotted integers of a version string.

    Trailing text such as `(Debian 12.4-1.pgdg100+1)` or `beta2` is ignored.

    Raises
        VersionDetectionError: If the string does not start with a number
    """
    match = _LEADING_VERSION.match(text or '')
    if not match:
        raise VersionDetectionError(f'Unrecognized server version: {text!r}')
    return ServerVersion(tuple(int(p) for p in match.group(1).split('.')))


def coerce_version(version: Any) -> ServerVersion:
    if isinstance(version, ServerVersion):
        return version
    if isinstance(version, str):
        return parse_server_version(version)
    parts = tuple(int(p) for p in version)
    if not parts:
        raise VersionDetectionError('Empty server version')
    return ServerVersion(parts)


def detect_server_version(cn: Any,
                          override: tuple[int, ...] | str | Callable[[Any], Any] | None = None
                          ) -> ServerVersion:
    """Determine the server version for a connection.

    An override wins; a callable override is called with the connection.
    Without one the server is asked with `SHOW server_version`; if the
    statement fails or its answer cannot be parsed the minimum supported
    version is assumed. Transport failures still propagate.
    """
    if override is not None:
        version = coerce_version(override(cn) if callable(override) else override)
        logger.debug(f'Using configured server version {version}')
        return version

    try:
        version = parse_server_version(cn.select_scalar('SHOW server_version'))
    except (QueryError, VersionDetectionError) as e:
        logger.warning(f'{e}; assuming {MINIMUM_VERSION}')
        return MINIMUM_VERSION
    logger.debug(f'Detected server version {version}')
    return version
