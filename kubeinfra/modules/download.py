"""Resolve an artifact location (URL or local path) to a local file."""
import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union
from urllib.parse import urlparse

import requests

from ..config import Config
from ..exceptions import ArtifactError
from .checksum import md5_file

logger = logging.getLogger("kubeinfra.download")


def is_url(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def download_file(url: str, cache_dir: Union[str, Path]) -> str:
    """Stream a URL into cache_dir and return the local path."""
    name = os.path.basename(urlparse(url).path) or "artifact"
    cache_dir = Path(cache_dir).expanduser()
    cache_dir.mkdir(parents=True, exist_ok=True)
    destination = cache_dir / name
    partial = destination.with_name(destination.name + ".part")

    logger.info(f"Downloading {url} to {destination}")
    try:
        with requests.get(url, stream=True, timeout=Config.API_TIMEOUT) as response:
            response.raise_for_status()
            with open(partial, 'wb') as f:
                for chunk in response.iter_content(chunk_size=Config.TRANSFER_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
    except requests.RequestException as e:
        partial.unlink(missing_ok=True)
        raise ArtifactError(f"Failed to download {url}: {e}") from e

    partial.replace(destination)
    return str(destination)


def resolve_artifact(location: str, cache_dir: Optional[Union[str, Path]] = None) -> Tuple[str, str]:
    """Return (local path, md5) for a URL or local path.

    Directories resolve with an empty md5; their files are fingerprinted one
    by one during the copy.
    """
    if is_url(location):
        path = download_file(location, cache_dir or Path(Config.STATE_DIR) / "artifacts")
    else:
        path = os.path.abspath(os.path.expanduser(location))
        if not os.path.exists(path):
            raise ArtifactError(f"Artifact not found: {location}")

    if os.path.isdir(path):
        return path, ""
    checksum = md5_file(path)
    logger.debug(f"source file md5 value is {checksum}")
    return path, checksum
