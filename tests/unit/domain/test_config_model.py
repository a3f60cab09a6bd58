import pytest

from compassone.domain.errors import ConfigurationError
from compassone.domain.models.config import ClientConfig


def test_valid_config_passes():
    config = ClientConfig(endpoint="https://api.example.com/").validate()
    assert config.base_url == "https://api.example.com"


@pytest.mark.parametrize("endpoint", [
    "not-a-url",
    "",
    "ftp://api.example.com",
    "https://",
    "https://api.example.com\n",
])
def test_malformed_endpoint_is_rejected(endpoint):
    with pytest.raises(ConfigurationError) as exc_info:
        ClientConfig(endpoint=endpoint).validate()
    assert exc_info.value.field_name == "endpoint"


def test_plain_http_requires_opt_in():
    with pytest.raises(ConfigurationError):
        ClientConfig(endpoint="http://localhost:8080").validate()
    ClientConfig(endpoint="http://localhost:8080", allow_insecure_http=True).validate()


def test_bad_api_version():
    with pytest.raises(ConfigurationError) as exc_info:
        ClientConfig(endpoint="https://api.example.com", api_version="v1").validate()
    assert exc_info.value.field_name == "api_version"


@pytest.mark.parametrize("field_name,value", [
    ("timeout", 0),
    ("timeout", 301),
    ("max_retries", 11),
    ("retry_delay", 0),
    ("max_concurrent_operations", 0),
    ("default_page_size", 1001),
])
def test_out_of_range_fields(field_name, value):
    config = ClientConfig(endpoint="https://api.example.com", **{field_name: value})
    problems = dict(config.problems())
    assert field_name in problems


def test_retry_policy_is_derived_from_settings():
    config = ClientConfig(endpoint="https://api.example.com", max_retries=5, retry_delay=1, max_retry_delay=8)
    policy = config.retry_policy()
    assert (policy.max_attempts, policy.initial_delay, policy.max_delay) == (5, 1, 8)


def test_from_mapping_requires_endpoint_and_ignores_unknown_keys():
    with pytest.raises(ConfigurationError):
        ClientConfig.from_mapping({"timeout": 10})
    config = ClientConfig.from_mapping({"endpoint": "https://a.example.com", "unrelated": 1})
    assert config.endpoint == "https://a.example.com"


@pytest.mark.parametrize("field_name,value", [
    ("max_retries", 2.5),
    ("bulk_operation_limit", 10.1),
    ("default_page_size", 25.5),
])
def test_fractional_counts_are_rejected(field_name, value):
    config = ClientConfig(endpoint="https://api.example.com", **{field_name: value})
    with pytest.raises(ConfigurationError) as exc_info:
        config.validate()
    assert exc_info.value.field_name == field_name


def test_whole_number_floats_are_accepted():
    config = ClientConfig(endpoint="https://api.example.com", max_retries=3.0).validate()
    assert config.retry_policy().max_attempts == 3
