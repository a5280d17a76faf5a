"""Shared fixtures for the injector unit tests."""

import pytest

from cain.models.policy import CASecretRef
from cain.utils.metadata import PolicyExtractor
from cain.utils.ownership import OwnerChainResolver

from .factories import DOMAIN, StaticFetcher, deployment_chain


@pytest.fixture
def extractor() -> PolicyExtractor:
    return PolicyExtractor(DOMAIN, "changeit")


@pytest.fixture
def ca_secret() -> CASecretRef:
    return CASecretRef(name="my-ca", keys=("ca.crt",))


@pytest.fixture
def fetcher() -> StaticFetcher:
    """Fetcher serving a Pod -> ReplicaSet -> Deployment chain."""
    return deployment_chain()


@pytest.fixture
def resolver(fetcher) -> OwnerChainResolver:
    return OwnerChainResolver(fetcher)
