"""
Unit tests for canonical instance type order sources.
"""
import json
from unittest.mock import MagicMock, patch

import pytest

from ec2_catalog.pricing.api_info import AwsApiInfo, BotocoreApiInfo, get_order_source
from ec2_catalog.pricing.errors import EmptyCanonicalOrderError


def botocore_session(enum):
    session = MagicMock()
    session.get_service_model.return_value.shape_for.return_value.enum = enum
    return session


class TestBotocoreApiInfo:
    def test_instance_type_order(self):
        session = botocore_session(["t1.micro", "t2.nano", "m5.large"])

        order = BotocoreApiInfo(session=session).instance_type_order()

        assert order == ["t1.micro", "t2.nano", "m5.large"]
        session.get_service_model.assert_called_once_with("ec2")
        session.get_service_model.return_value.shape_for.assert_called_once_with("InstanceType")

    def test_empty_enum_raises(self):
        with pytest.raises(EmptyCanonicalOrderError):
            BotocoreApiInfo(session=botocore_session([])).instance_type_order()


class TestAwsApiInfo:
    SERVICES = {"EC2": {"models": "ec2/2016-11-15"}}
    API = {"shapes": {"InstanceType": {"type": "string", "enum": ["t1.micro", "m5.large"]}}}

    def _files(self, api):
        contents = {
            "services.json": json.dumps(self.SERVICES),
            "apis/ec2/2016-11-15/api-2.json": json.dumps(api),
        }

        def make_file(repo_path, file_path, **kwargs):
            gh_file = MagicMock()
            gh_file.content.return_value = contents[file_path]
            return gh_file
        return make_file

    def test_instance_type_order(self, settings):
        with patch("ec2_catalog.pricing.api_info.GithubFile", side_effect=self._files(self.API)) as mock_file:
            info = AwsApiInfo(settings)

            assert info.instance_type_order() == ["t1.micro", "m5.large"]
            assert info.models_path() == "apis/ec2/2016-11-15/api-2.json"

        repos = {call.args[0] for call in mock_file.call_args_list}
        assert repos == {"aws/aws-sdk-ruby"}

    def test_missing_shape_raises(self, settings):
        with patch("ec2_catalog.pricing.api_info.GithubFile", side_effect=self._files({"shapes": {}})):
            with pytest.raises(EmptyCanonicalOrderError):
                AwsApiInfo(settings).instance_type_order()


class TestOrderSourceSelection:
    def test_github(self, settings):
        settings.order_source = "github"

        assert isinstance(get_order_source(settings), AwsApiInfo)

    def test_botocore(self, settings):
        with patch("ec2_catalog.pricing.api_info.botocore.session.get_session"):
            assert isinstance(get_order_source(settings), BotocoreApiInfo)
