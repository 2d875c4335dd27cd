"""
GitHub file fetcher.
Downloads one repository file at its latest commit and caches it by commit SHA.
"""
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

import requests
import structlog

from ec2_catalog.core.robust_downloader import fetch_json, get_session

logger = structlog.get_logger()

API_BASE = "https://api.github.com"
RAW_BASE = "https://raw.githubusercontent.com"


class GithubFile:
    """One file of a GitHub repository, cached locally per commit."""

    def __init__(
        self,
        repo_path: str,
        file_path: str,
        cache_dir: Path,
        api_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 30
    ):
        """
        Initialize file handle.

        Args:
            repo_path: Repository as "owner/name"
            file_path: Path of the file inside the repository
            cache_dir: Directory for cached file contents
            api_token: Optional GitHub token for higher rate limits
            session: Optional requests session to reuse
            timeout: Request timeout in seconds
        """
        self.repo_path = repo_path
        self.file_path = file_path
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.logger = logger.bind(component="github_file", repo=repo_path, file=file_path)

        headers = {"Accept": "application/vnd.github.v3+json"}
        if api_token:
            headers["Authorization"] = f"token {api_token}"
        else:
            self.logger.warning("github_token_missing")
        self.session = session or get_session(headers)
        self._latest_sha: Optional[str] = None

    @property
    def commits_url(self) -> str:
        query = urlencode({"path": self.file_path, "page": 1, "per_page": 1})
        return f"{API_BASE}/repos/{self.repo_path}/commits?{query}"

    def latest_sha(self) -> str:
        """SHA of the latest commit touching the file."""
        if self._latest_sha is None:
            commits = fetch_json(self.commits_url, self.session, timeout=self.timeout)
            if not commits:
                raise FileNotFoundError(f"No commits found for {self.repo_path}:{self.file_path}")
            self._latest_sha = commits[0]["sha"]
            self.logger.debug("latest_commit", sha=self._latest_sha)
        return self._latest_sha

    @property
    def content_url(self) -> str:
        return f"{RAW_BASE}/{self.repo_path}/{self.latest_sha()}/{self.file_path}"

    def cache_file(self) -> Path:
        name = Path(f"{self.repo_path.replace('/', '___')}___{self.file_path.replace('/', '__')}")
        return self.cache_dir / f"{name.stem}.{self.latest_sha()}{name.suffix}"

    def content(self) -> str:
        """File text at its latest commit."""
        cache_file = self.cache_file()
        if cache_file.is_file():
            self.logger.info("using_cached_file", path=str(cache_file))
            return cache_file.read_text(encoding="utf-8")

        self.logger.info("downloading_file", url=self.content_url)
        response = self.session.get(self.content_url, timeout=self.timeout)
        response.raise_for_status()
        text = response.text

        cache_file.parent.mkdir(parents=True, exist_ok=True)
        cache_file.write_text(text, encoding="utf-8")
        return text
