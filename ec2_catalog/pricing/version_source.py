"""
AWS bulk price-list version source.

Lists the published versions of a service's offer file and reads the
product records of each version. Raw offer files are cached on disk under a
name derived from the hash of the requested version URL, so a version is
downloaded once. The products collected from every version are cached too,
keyed by the set of published versions, so an unchanged index skips
re-reading the offer files.
"""
import hashlib
import json
from pathlib import Path
from typing import Dict, List, Optional

import ijson
import requests
import structlog

from ec2_catalog.config import Settings
from ec2_catalog.core.robust_downloader import download_file, fetch_json, get_session, is_intact
from ec2_catalog.pricing.errors import OfferDownloadError, OfferIndexError
from ec2_catalog.pricing.models import RawProduct

logger = structlog.get_logger()


class OfferVersionSource:
    """
    Versioned offer files of one AWS service.

    Index layout:
        {"versions": {"20170224022054": {"offerVersionUrl": "/offers/v1.0/aws/AmazonEC2/20170224022054/index.json"}}}
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or get_session()
        self.cache_dir = Path(settings.cache_dir)
        self.logger = logger.bind(component="offer_version_source", service=settings.pricing_service_code)
        self._versions: Optional[Dict[str, Dict]] = None

    def offer_versions(self) -> Dict[str, Dict]:
        """Version name -> version data, sorted oldest first."""
        if self._versions is None:
            url = self.settings.offers_index_url
            index = fetch_json(url, self.session, timeout=self.settings.request_timeout)
            versions = index.get("versions") if isinstance(index, dict) else None
            if not versions:
                raise OfferIndexError(url, "no 'versions' listed")
            self._versions = dict(sorted(versions.items()))
            self.logger.info("offer_versions_listed", count=len(self._versions))
        return self._versions

    def list_versions(self) -> List[str]:
        """Version identifiers, oldest first."""
        return list(self.offer_versions())

    def versions_cache_key(self) -> str:
        """Digest identifying the current set of versions."""
        digest = hashlib.sha1()
        for version in self.list_versions():
            digest.update(version.encode("utf-8"))
        return digest.hexdigest()

    def version_url(self, version: str) -> str:
        try:
            path = self.offer_versions()[version]["offerVersionUrl"]
        except KeyError:
            raise OfferIndexError(self.settings.offers_index_url, f"no offer URL for version {version}")
        return f"{self.settings.pricing_base_url}{path}"

    def cache_file(self, version: str) -> Path:
        url_hash = hashlib.sha1(self.version_url(version).encode("utf-8")).hexdigest()
        service = self.settings.pricing_service_code.lower()
        return self.cache_dir / f"{service}_offers.{version}.{url_hash[:12]}.json"

    def fetch_to_cache(self, version: str) -> Path:
        """Download one version's offer file unless it is already cached."""
        cache_file = self.cache_file(version)
        if is_intact(cache_file):
            self.logger.info("using_cached_offer", version=version, path=str(cache_file))
            return cache_file
        if cache_file.exists():
            self.logger.warning("discarding_corrupt_offer_cache", version=version, path=str(cache_file))
            cache_file.unlink()

        url = self.version_url(version)
        self.logger.info("downloading_offer", version=version, url=url)
        if not download_file(url, cache_file, session=self.session, timeout=self.settings.request_timeout):
            raise OfferDownloadError(url)
        return cache_file

    def fetch(self, version: str) -> bytes:
        """Raw offer JSON of one version."""
        return self.fetch_to_cache(version).read_bytes()

    def fetch_products(self, version: str) -> List[RawProduct]:
        """
        Read the products of one version.

        Streams the `products` object so multi-gigabyte offer files are
        never loaded whole.
        """
        cache_file = self.fetch_to_cache(version)
        products = []
        with open(cache_file, "rb") as f:
            for sku, product in ijson.kvitems(f, "products"):
                products.append(RawProduct.from_offer(version, sku, product))

        self.logger.info("offer_products_read", version=version, products=len(products))
        return products

    def summary_file(self) -> Path:
        service = self.settings.pricing_service_code.lower()
        return self.cache_dir / f"{service}_offers_summary.{self.versions_cache_key()}.json"

    def collect_products(self) -> List[RawProduct]:
        """
        Products of every version, oldest version first.

        Reuses the summary written by a previous run over the same versions;
        otherwise reads each version and writes a new summary.
        """
        summary_file = self.summary_file()
        if summary_file.is_file():
            self.logger.info("using_cached_summary", path=str(summary_file))
            with open(summary_file) as f:
                return [RawProduct.from_dict(entry) for entry in json.load(f)]

        products = []
        for version in self.list_versions():
            products.extend(self.fetch_products(version))

        summary_file.parent.mkdir(parents=True, exist_ok=True)
        part_file = summary_file.with_suffix(".json.part")
        with open(part_file, "w") as f:
            json.dump([product.to_dict() for product in products], f)
        part_file.replace(summary_file)
        self.logger.info("summary_written", path=str(summary_file), products=len(products))
        return products
