import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


def get_session(headers: Optional[Dict[str, str]] = None) -> requests.Session:
    """Create a requests session with retry logic."""
    session = requests.Session()
    retry = Retry(
        total=3,
        read=3,
        connect=3,
        backoff_factor=1,  # 1s, 2s, 4s
        status_forcelist=[429, 500, 502, 503, 504],
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    if headers:
        session.headers.update(headers)
    return session


def calculate_sha256(file_path, chunk_size=CHUNK_SIZE):
    """Calculates SHA256 hash of a file."""
    sha256 = hashlib.sha256()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            sha256.update(chunk)
    return sha256.hexdigest()


def fetch_json(url: str, session: Optional[requests.Session] = None, timeout: int = 30) -> Any:
    """
    GET a JSON document.

    Raises:
        requests.HTTPError: On a non-success response after retries
    """
    session = session or get_session()
    logger.info(f"Requesting {url}")
    response = session.get(url, timeout=timeout)
    response.raise_for_status()
    return response.json()


def metadata_path(target_path: Path) -> Path:
    return target_path.with_suffix(target_path.suffix + '.meta')


def write_metadata(target_path: Path, source: str) -> Dict[str, Any]:
    """Record sha256, size and origin of a completed download next to it."""
    target_path = Path(target_path)
    metadata = {
        "downloaded_at": datetime.now(timezone.utc).isoformat(),
        "sha256": calculate_sha256(target_path),
        "size": target_path.stat().st_size,
        "source": source
    }
    with open(metadata_path(target_path), 'w') as f:
        json.dump(metadata, f, indent=2)
    return metadata


def is_intact(target_path: Path) -> bool:
    """
    Check a previously downloaded file against its `.meta` sidecar.

    A file without a readable sidecar, or whose size or sha256 differs from
    the recorded one, is not intact.
    """
    target_path = Path(target_path)
    meta_file = metadata_path(target_path)
    if not target_path.is_file() or not meta_file.is_file():
        return False
    try:
        with open(meta_file) as f:
            metadata = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Unreadable metadata {meta_file.name}: {e}")
        return False

    if metadata.get("size") != target_path.stat().st_size:
        logger.warning(f"Size mismatch for {target_path.name}")
        return False
    if metadata.get("sha256") != calculate_sha256(target_path):
        logger.warning(f"Hash mismatch for {target_path.name}")
        return False
    return True


def download_file(
    url: str,
    target_path: Path,
    session: Optional[requests.Session] = None,
    timeout: int = 30
) -> bool:
    """
    Downloads a file, resuming a previous partial download when possible.

    The body is streamed into `<target>.part`, moved into place once complete,
    and described by a `<target>.meta` sidecar that is_intact() checks later.

    Returns:
        True if successful, False otherwise.
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    part_file = target_path.with_suffix(target_path.suffix + '.part')
    session = session or get_session()

    offset = part_file.stat().st_size if part_file.exists() else 0
    headers = {'Range': f'bytes={offset}-'} if offset else {}
    if offset:
        logger.info(f"Resuming download for {target_path.name} from byte {offset}")
    else:
        logger.info(f"Starting download for {target_path.name}")

    try:
        with session.get(url, headers=headers, stream=True, timeout=timeout) as response:
            # 416 Range Not Satisfiable: the partial file is stale
            if response.status_code == 416:
                logger.warning("Range not satisfiable. Restarting download.")
                part_file.unlink(missing_ok=True)
                return download_file(url, target_path, session, timeout)

            response.raise_for_status()
            resumed = bool(offset) and response.status_code == 206
            if offset and not resumed:
                logger.warning("Server did not accept resume. Restarting.")

            with open(part_file, 'ab' if resumed else 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)

    except requests.RequestException as e:
        logger.error(f"Download failed for {url}: {e}")
        return False

    # replace is atomic on POSIX
    part_file.replace(target_path)
    metadata = write_metadata(target_path, url)

    logger.info(f"Successfully downloaded {target_path.name} ({metadata['size']} bytes)")
    return True
