"""
Download a URL to a file with progress logging.

Used to fetch buildbot image archives, which run to several hundred MB, so
progress is logged every progress_interval_mb while streaming with requests.
"""

import time
from pathlib import Path
from typing import Optional, Tuple

import requests

from utils.file_utils import format_file_size
from utils.Logger import Logger


def _total_size(resp: requests.Response) -> Optional[int]:
    """Return the Content-Length of resp, or None if missing or malformed."""
    try:
        return int(resp.headers["Content-Length"])
    except (KeyError, ValueError):
        return None


def download_via_url(
    url: str,
    destination_path: Path,
    auth: Optional[Tuple[str, str]] = None,
    progress_interval_mb: float = 50.0,
    timeout_sec: Optional[int] = None,
    session: Optional[requests.Session] = None,
) -> Tuple[int, bool]:
    """
    Download url to destination_path, logging progress.

    Args:
        url: Download URL.
        destination_path: Full path for the output file (overwritten).
        auth: Optional (username, password) for HTTP basic auth.
        progress_interval_mb: Log progress every N MB (0 = only at the end).
        timeout_sec: Per-read timeout; None = 30 s connect / 300 s read.
        session: Optional requests.Session (uses requests.get if None).

    Returns:
        (bytes_written, success).

    Raises:
        requests.HTTPError: On an HTTP error status (e.g. 401 for bad credentials).
    """
    dest = Path(destination_path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    get = (session or requests).get
    timeout_val = (timeout_sec or 30, timeout_sec or 300)
    try:
        resp = get(url, stream=True, auth=auth, timeout=timeout_val)
    except requests.RequestException as e:
        Logger.error("Download request failed: %s", e)
        return (0, False)

    # Streamed responses hold their pooled connection until closed
    try:
        # Caller reports 401/403/404 with the URI it asked for
        resp.raise_for_status()
        return _write_body(resp, dest, progress_interval_mb)
    finally:
        resp.close()


def _write_body(resp: requests.Response, dest: Path, progress_interval_mb: float) -> Tuple[int, bool]:
    total = _total_size(resp)
    written = 0
    last_log_mb = 0.0
    chunk_size = 1024 * 1024  # 1 MB
    start_time = time.perf_counter()

    try:
        with open(dest, "wb") as f:
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if not chunk:
                    break
                f.write(chunk)
                written += len(chunk)
                mb = written / (1024 * 1024)
                if progress_interval_mb > 0 and (mb - last_log_mb) >= progress_interval_mb:
                    last_log_mb = mb
                    if total:
                        Logger.info(
                            "Download progress: %s / %s (%.1f%%)",
                            format_file_size(written),
                            format_file_size(total),
                            100.0 * written / total,
                        )
                    else:
                        Logger.info("Download progress: %s received", format_file_size(written))
    except OSError as e:
        Logger.error("Download write failed: %s", e)
        return (written, False)
    except requests.RequestException as e:
        Logger.error("Download interrupted after %s: %s", format_file_size(written), e)
        return (written, False)

    elapsed = time.perf_counter() - start_time
    rate = written / (1024 * 1024) / elapsed if elapsed > 0 else 0
    Logger.info(
        "Download complete: %s in %.1f s (%.2f MB/s)",
        format_file_size(written),
        elapsed,
        rate,
    )
    if total is not None and written != total:
        Logger.error("Download truncated: got %s of %s", format_file_size(written), format_file_size(total))
        return (written, False)
    return (written, True)
