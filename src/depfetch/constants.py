"""Constants used in the project."""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    USAGE_ERROR = 2
    EXIT_WARNINGS = 4


class Scopes(Enum):
    """Maven dependency scopes the resolver knows about."""

    COMPILE = "compile"
    RUNTIME = "runtime"
    TEST = "test"
    PROVIDED = "provided"
    SYSTEM = "system"
    IMPORT = "import"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REPOSITORY_URL_CENTRAL = "https://repo1.maven.org/maven2"
    REPOSITORY_URL_GOOGLE = "https://maven.google.com"
    REPOSITORY_URL_JITPACK = "https://jitpack.io"
    REPOSITORY_URL_SNAPSHOTS = "https://s01.oss.sonatype.org/content/repositories/snapshots"

    METADATA_FILE = "maven-metadata.xml"
    POM_NAMESPACE = "http://maven.apache.org/POM/4.0.0"
    DEFAULT_EXTENSION = "jar"
    # Packaging values whose binary is published under another extension
    PACKAGING_EXTENSIONS = {
        "bundle": "jar",
        "maven-plugin": "jar",
        "eclipse-plugin": "jar",
        "ejb": "jar",
        "test-jar": "jar",
    }
    EXCLUDED_SCOPES = (Scopes.TEST.value, Scopes.PROVIDED.value)

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "DEPFETCH_LOG_LEVEL"
    CONFIG_ENV = "DEPFETCH_CONFIG"
    USER_AGENT = "depfetch/1.0"

    CONNECT_TIMEOUT = 5  # seconds
    READ_TIMEOUT = 20  # seconds
    HTTP_RETRY_MAX = 2  # one attempt plus one retry on connection reset
    MAX_CONCURRENCY = 32
    MAX_CONCURRENT_DOWNLOADS = 8
    MAX_PARENT_DEPTH = 16
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    DEFAULT_CONFIG_LOCATIONS = (
        "depfetch.yml",
        "depfetch.yaml",
        os.path.join("~", ".config", "depfetch", "depfetch.yml"),
    )


def _config_candidates() -> list:
    """Return config file candidates in priority order."""
    candidates = []
    env_path = os.environ.get(Constants.CONFIG_ENV)
    if env_path:
        candidates.append(env_path)
    candidates.extend(os.path.expanduser(p) for p in Constants.DEFAULT_CONFIG_LOCATIONS)
    return candidates


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the first YAML config found.

    Args:
        path: Explicit config path; default locations are searched when omitted.

    Returns:
        Parsed mapping, empty when no file exists.
    """
    import yaml  # pylint: disable=import-outside-toplevel

    candidates = [path] if path else _config_candidates()
    for candidate in candidates:
        if not candidate or not os.path.isfile(candidate):
            continue
        with open(candidate, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: top level is not a mapping", candidate)
            return {}
        logger.debug("Loaded config from %s", candidate)
        return data
    return {}
