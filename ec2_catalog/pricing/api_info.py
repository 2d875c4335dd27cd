"""
Canonical instance type order.

The EC2 API model enumerates every instance type in the `InstanceType`
shape; that enum drives the catalog ordering.
"""
import json
from pathlib import Path
from typing import Dict, List, Optional

import botocore.session
import structlog

from ec2_catalog.config import Settings
from ec2_catalog.core.github_file import GithubFile
from ec2_catalog.pricing.errors import EmptyCanonicalOrderError

logger = structlog.get_logger()

INSTANCE_TYPE_SHAPE = "InstanceType"


class BotocoreApiInfo:
    """Instance type order from the EC2 model bundled with botocore."""

    source_name = "botocore"

    def __init__(self, service_name: str = "ec2", session: Optional[botocore.session.Session] = None):
        self.service_name = service_name
        self.session = session or botocore.session.get_session()

    def instance_type_order(self) -> List[str]:
        model = self.session.get_service_model(self.service_name)
        order = list(model.shape_for(INSTANCE_TYPE_SHAPE).enum)
        if not order:
            raise EmptyCanonicalOrderError(self.source_name)
        logger.info("instance_type_order_loaded", source=self.source_name, count=len(order))
        return order


class AwsApiInfo:
    """
    Instance type order from the aws-sdk-ruby API models on GitHub.

    services.json maps service names to model directories, e.g.
    {"EC2": {"models": "ec2/2016-11-15"}} -> apis/ec2/2016-11-15/api-2.json
    """

    source_name = "github"

    def __init__(self, settings: Settings, service_name: str = "EC2"):
        self.settings = settings
        self.service_name = service_name
        self.cache_dir = Path(settings.cache_dir) / "gh_data"
        self._services_data: Optional[Dict] = None
        self._api_data: Optional[Dict] = None

    def _get_data(self, file_path: str) -> Dict:
        gh_file = GithubFile(
            self.settings.aws_sdk_repo,
            file_path,
            cache_dir=self.cache_dir,
            api_token=self.settings.github_api_token,
            timeout=self.settings.request_timeout,
        )
        return json.loads(gh_file.content())

    def services_data(self) -> Dict:
        if self._services_data is None:
            self._services_data = self._get_data(self.settings.aws_sdk_services_path)
        return self._services_data

    def models_path(self) -> str:
        return f"apis/{self.services_data()[self.service_name]['models']}/api-2.json"

    def api_data(self) -> Dict:
        if self._api_data is None:
            self._api_data = self._get_data(self.models_path())
        return self._api_data

    def instance_type_order(self) -> List[str]:
        shape = self.api_data().get("shapes", {}).get(INSTANCE_TYPE_SHAPE, {})
        order = list(shape.get("enum", []))
        if not order:
            raise EmptyCanonicalOrderError(f"{self.source_name}:{self.models_path()}")
        logger.info("instance_type_order_loaded", source=self.source_name, count=len(order))
        return order


def get_order_source(settings: Settings):
    """Order source selected by settings.order_source."""
    if settings.order_source == "github":
        return AwsApiInfo(settings)
    return BotocoreApiInfo()
