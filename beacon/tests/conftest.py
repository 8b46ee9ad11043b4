import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))
from beacon.tests.helpers import INDEX_BUCKET, INDEX_KEY, VCF_BUCKET, VCF_KEY, MemoryStore, build_vcf, scenario_blocks

_ENV_VARS = (
    "BEACON_STORE",
    "BEACON_FETCH_TIMEOUT",
    "BEACON_MAX_CONCURRENCY",
    "BEACON_MERGE_GAP",
    "BEACON_HTTP_ENDPOINT",
    "BEACON_LOCAL_ROOT",
    "BEACON_LOG_LEVEL",
    "BEACON_PROGRESS",
    "GOOGLE_PROJECT",
    "AWS_REGION",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def payload():
    return {
        "vcf_bucket": VCF_BUCKET,
        "vcf_key": VCF_KEY,
        "vcf_index_bucket": INDEX_BUCKET,
        "vcf_index_key": INDEX_KEY,
        "reference_name": "chr1",
        "start": 1220751,
        "reference_bases": "T",
        "alternate_bases": "C",
    }


@pytest.fixture
def scenario_vcf():
    return build_vcf(scenario_blocks())


def store_for(fixture, **kwargs) -> MemoryStore:
    store = MemoryStore(**kwargs)
    store.put(VCF_BUCKET, VCF_KEY, fixture.data)
    store.put(INDEX_BUCKET, INDEX_KEY, fixture.index)
    return store


@pytest.fixture
def scenario_store(scenario_vcf):
    return store_for(scenario_vcf)


@pytest.fixture
def scenario_root(tmp_path, scenario_vcf):
    """Scenario files laid out for the local blob store."""
    (tmp_path / VCF_BUCKET).mkdir()
    (tmp_path / INDEX_BUCKET).mkdir()
    (tmp_path / VCF_BUCKET / VCF_KEY).write_bytes(scenario_vcf.data)
    (tmp_path / INDEX_BUCKET / INDEX_KEY).write_bytes(scenario_vcf.index)
    return tmp_path


@pytest.fixture
def make_store():
    """Factory for a memory store holding a built VCF and its index."""
    return store_for
