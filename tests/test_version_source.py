"""
Unit tests for OfferVersionSource.
HTTP is mocked; offer files are served from the on-disk cache.
"""
import json
from unittest.mock import MagicMock, patch

import pytest

from ec2_catalog.core.robust_downloader import write_metadata
from ec2_catalog.pricing.errors import OfferDownloadError, OfferIndexError
from ec2_catalog.pricing.version_source import OfferVersionSource

INDEX = {
    "versions": {
        "20180101000000": {"offerVersionUrl": "/offers/v1.0/aws/AmazonEC2/20180101000000/index.json"},
        "20170224022054": {"offerVersionUrl": "/offers/v1.0/aws/AmazonEC2/20170224022054/index.json"},
    }
}

OFFER = {
    "formatVersion": "v1.0",
    "products": {
        "SKU1": {
            "sku": "SKU1",
            "productFamily": "Compute Instance",
            "attributes": {"instanceType": "m5.large", "memory": "8 GiB"},
        },
        "SKU2": {
            "sku": "SKU2",
            "productFamily": "Storage",
            "attributes": {"volumeType": "Magnetic"},
        },
    },
    "terms": {},
}


def cache_offer(source, version, offer=OFFER):
    cache_file = source.cache_file(version)
    cache_file.parent.mkdir(parents=True, exist_ok=True)
    cache_file.write_text(json.dumps(offer))
    write_metadata(cache_file, source.version_url(version))
    return cache_file


@pytest.fixture
def source(settings):
    with patch("ec2_catalog.pricing.version_source.fetch_json", return_value=INDEX) as mock_fetch:
        src = OfferVersionSource(settings, session=MagicMock())
        src.mock_fetch = mock_fetch
        yield src


class TestVersions:
    """Test version listing."""

    def test_versions_sorted_oldest_first(self, source):
        assert source.list_versions() == ["20170224022054", "20180101000000"]

    def test_index_fetched_once(self, source):
        source.list_versions()
        source.list_versions()

        assert source.mock_fetch.call_count == 1
        assert source.mock_fetch.call_args[0][0] == (
            "https://pricing.us-east-1.amazonaws.com/offers/v1.0/aws/AmazonEC2/index.json"
        )

    def test_versions_cache_key_stable(self, source):
        assert source.versions_cache_key() == source.versions_cache_key()
        assert len(source.versions_cache_key()) == 40

    def test_version_url(self, source):
        assert source.version_url("20170224022054") == (
            "https://pricing.us-east-1.amazonaws.com/offers/v1.0/aws/AmazonEC2/20170224022054/index.json"
        )

    def test_unknown_version(self, source):
        with pytest.raises(OfferIndexError):
            source.version_url("19990101000000")

    def test_index_without_versions(self, settings):
        with patch("ec2_catalog.pricing.version_source.fetch_json", return_value={}):
            with pytest.raises(OfferIndexError):
                OfferVersionSource(settings, session=MagicMock()).list_versions()


class TestProducts:
    """Test product reading."""

    def test_fetch_products_from_cache(self, source):
        cache_offer(source, "20170224022054")

        products = source.fetch_products("20170224022054")

        assert [p.sku for p in products] == ["SKU1", "SKU2"]
        assert products[0].version == "20170224022054"
        assert products[0].product_family == "Compute Instance"
        assert products[0].attributes["memory"] == "8 GiB"

    def test_fetch_returns_raw_bytes(self, source):
        cache_offer(source, "20170224022054")

        assert json.loads(source.fetch("20170224022054")) == OFFER

    def test_cache_file_differs_per_version(self, source):
        assert source.cache_file("20170224022054") != source.cache_file("20180101000000")

    def test_downloads_missing_version(self, source):
        def fake_download(url, target, **kwargs):
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(OFFER))
            write_metadata(target, url)
            return True

        with patch("ec2_catalog.pricing.version_source.download_file", side_effect=fake_download) as mock_dl:
            products = source.fetch_products("20180101000000")
            source.fetch_products("20180101000000")

        assert len(products) == 2
        assert mock_dl.call_count == 1

    def test_failed_download_raises(self, source):
        with patch("ec2_catalog.pricing.version_source.download_file", return_value=False):
            with pytest.raises(OfferDownloadError) as exc_info:
                source.fetch_products("20180101000000")

        assert "20180101000000" in exc_info.value.url

    def test_corrupt_cache_is_downloaded_again(self, source):
        cache_file = cache_offer(source, "20170224022054")
        cache_file.write_text(json.dumps({"products": {}}))

        def fake_download(url, target, **kwargs):
            target.write_text(json.dumps(OFFER))
            write_metadata(target, url)
            return True

        with patch("ec2_catalog.pricing.version_source.download_file", side_effect=fake_download) as mock_dl:
            products = source.fetch_products("20170224022054")

        assert mock_dl.call_count == 1
        assert [p.sku for p in products] == ["SKU1", "SKU2"]

    def test_cache_without_metadata_is_not_trusted(self, source):
        cache_file = cache_offer(source, "20170224022054")
        cache_file.with_suffix(".json.meta").unlink()

        with patch("ec2_catalog.pricing.version_source.download_file", return_value=False):
            with pytest.raises(OfferDownloadError):
                source.fetch_products("20170224022054")


class TestSummary:
    """Test the collected products summary cache."""

    def test_collects_every_version_oldest_first(self, source):
        cache_offer(source, "20170224022054")
        cache_offer(source, "20180101000000")

        products = source.collect_products()

        assert [p.version for p in products] == ["20170224022054"] * 2 + ["20180101000000"] * 2
        assert source.summary_file().is_file()
        assert source.versions_cache_key() in source.summary_file().name

    def test_second_run_reads_summary_only(self, source, settings):
        cache_offer(source, "20170224022054")
        cache_offer(source, "20180101000000")
        first = source.collect_products()

        with patch("ec2_catalog.pricing.version_source.fetch_json", return_value=INDEX):
            rerun = OfferVersionSource(settings, session=MagicMock())
            with patch.object(OfferVersionSource, "fetch_products") as mock_fetch:
                second = rerun.collect_products()

        mock_fetch.assert_not_called()
        assert second == first
        assert second[0].attributes["memory"] == "8 GiB"

    def test_new_version_invalidates_summary(self, source, settings):
        cache_offer(source, "20170224022054")
        cache_offer(source, "20180101000000")
        source.collect_products()

        index = {"versions": dict(INDEX["versions"], **{
            "20190101000000": {"offerVersionUrl": "/offers/v1.0/aws/AmazonEC2/20190101000000/index.json"},
        })}
        with patch("ec2_catalog.pricing.version_source.fetch_json", return_value=index):
            rerun = OfferVersionSource(settings, session=MagicMock())
            cache_offer(rerun, "20190101000000")
            products = rerun.collect_products()

        assert rerun.summary_file() != source.summary_file()
        assert len(products) == 6
