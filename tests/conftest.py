import pytest

from tests.providers import PROVIDER_IDS, PROVIDERS


@pytest.fixture(params=PROVIDERS, ids=PROVIDER_IDS)
def repo(request, tmp_path):
    provider = request.param()
    repo = provider.create(tmp_path)
    yield repo
    provider.cleanup(repo)
