"""
Shared test fixtures for the docsearch test suite.

Provides a real generated shard, a manifest, a search directory and a
settings file on disk (no mocking of the filesystem), plus an in-memory
loader that stands in for the store's I/O.
"""

import asyncio

import pytest
import toml

from docsearch.config import create_router
from docsearch.services.loaders import ShardLoader
from docsearch.services.shard_store import ShardStore

# Shard "t" of the "all" section as written by the generator
SAMPLE_SHARD = r"""var searchData=
[
  ['tatami_0',['tatami',['https://tatami-inc.github.io/tatami/namespacetatami.html',1,'']]],
  ['tatami_2ehpp_1',['tatami.hpp',['https://tatami-inc.github.io/tatami/tatami_8hpp.html',1,'']]],
  ['tatami_3a_3asomenumericarray_2',['SomeNumericArray',['https://tatami-inc.github.io/tatami/structtatami_1_1SomeNumericArray_1_1Iterator.html',1,'tatami']]],
  ['top_3',['top',['../structsinglepp_1_1TrainSingleOptions.html#aa72f6c9937301bd90c2fec19f523479',1,'singlepp::TrainSingleOptions']]],
  ['total_4',['total',['https://tatami-inc.github.io/tatami/classtatami_1_1Oracle.html#a611f0c44f1b3de3ec065c91ada017808',1,'tatami::Oracle::total()'],['https://tatami-inc.github.io/tatami/classtatami_1_1FixedViewOracle.html#aa858ead22df2b721fd723a9509ac28f9',1,'tatami::FixedViewOracle::total()'],['https://tatami-inc.github.io/tatami/classtatami_1_1FixedVectorOracle.html#aee8f5bfa07d50e1b1689652543342572',1,'tatami::FixedVectorOracle::total()'],['https://tatami-inc.github.io/tatami/classtatami_1_1ConsecutiveOracle.html#aade9b656fa50f1b41f52486a70591d58',1,'tatami::ConsecutiveOracle::total()']]],
  ['train_5fintegrated_5',['train_integrated',['../namespacesinglepp.html#a82e0dfffaed84685432ad2a39cc12a97',1,'singlepp::train_integrated(std::vector&lt; TrainIntegratedInput&lt; Value_, Index_, Label_ &gt; &gt; &amp;&amp;inputs, const TrainIntegratedOptions &amp;options)'],['../namespacesinglepp.html#af198ad22e020701691c9bb8326401a46',1,'singlepp::train_integrated(const std::vector&lt; TrainIntegratedInput&lt; Value_, Index_, Label_ &gt; &gt; &amp;inputs, const TrainIntegratedOptions &amp;options)']]],
  ['train_5fintegrated_2ehpp_6',['train_integrated.hpp',['../train__integrated_8hpp.html',1,'']]],
  ['train_5fsingle_7',['train_single',['../namespacesinglepp.html#abcea821671f9339e4e933be2ed123c6e',1,'singlepp']]],
  ['train_5fsingle_2ehpp_8',['train_single.hpp',['../train__single_8hpp.html',1,'']]],
  ['train_5fsingle_5fintersect_9',['train_single_intersect',['../namespacesinglepp.html#a606d38abb5608efdfdb0c3bdb945ef23',1,'singlepp::train_single_intersect(const Intersection&lt; Index_ &gt; &amp;intersection)'],['../namespacesinglepp.html#a11341bf58d0086e0ec03a5bafb91bcf3',1,'singlepp::train_single_intersect(Index_ test_nrow, const Id_ *test_id)']]],
  ['trainedintegrated_10',['TrainedIntegrated',['../classsinglepp_1_1TrainedIntegrated.html',1,'singlepp']]],
  ['trainedsingle_11',['TrainedSingle',['../classsinglepp_1_1TrainedSingle.html',1,'singlepp']]],
  ['trainedsingleintersect_12',['TrainedSingleIntersect',['../classsinglepp_1_1TrainedSingleIntersect.html',1,'singlepp']]],
  ['trainer_13',['trainer',['../structsinglepp_1_1TrainSingleOptions.html#a36a62c8abfc04a46be71e2ba9e179a60',1,'singlepp::TrainSingleOptions']]],
  ['trainintegratedinput_14',['TrainIntegratedInput',['../structsinglepp_1_1TrainIntegratedInput.html',1,'singlepp']]],
  ['trainintegratedoptions_15',['TrainIntegratedOptions',['../structsinglepp_1_1TrainIntegratedOptions.html',1,'singlepp']]],
  ['trainsingleoptions_16',['TrainSingleOptions',['../structsinglepp_1_1TrainSingleOptions.html',1,'singlepp']]],
  ['transpose_17',['transpose',['https://tatami-inc.github.io/tatami/namespacetatami.html#a07c1d1f96ea3a59d9f6106b17873d494',1,'tatami::transpose(const Input_ *input, size_t nrow, size_t ncol, Output_ *output)'],['https://tatami-inc.github.io/tatami/namespacetatami.html#a86be7b06c9d13b25f9ff04eed87430a7',1,'tatami::transpose(const Input_ *input, size_t nrow, size_t ncol, Output_ *output)']]],
  ['transpose_2ehpp_18',['transpose.hpp',['https://tatami-inc.github.io/tatami/transpose_8hpp.html',1,'']]]
];
"""

# Five plain keys, no disambiguator suffix
SMALL_SHARD = """var searchData=
[
  ['tatami',['tatami',['https://tatami-inc.github.io/tatami/namespacetatami.html',1,'']]],
  ['top',['top',['../structsinglepp_1_1TrainSingleOptions.html#aa72f',1,'singlepp::TrainSingleOptions']]],
  ['total',['total',['https://tatami-inc.github.io/tatami/classtatami_1_1Oracle.html#a611f',1,'tatami::Oracle::total()']]],
  ['train_5fintegrated',['train_integrated',['../namespacesinglepp.html#a82e0',1,'singlepp::train_integrated(int)']]],
  ['transpose',['transpose',['https://tatami-inc.github.io/tatami/namespacetatami.html#a07c1',1,'tatami::transpose(int)']]]
];
"""

SINGLEPP_SHARD = """var searchData=
[
  ['singlepp_0',['singlepp',['../namespacesinglepp.html',1,'']]],
  ['singlepp_3a_3atrainedsingle_1',['TrainedSingle',['../classsinglepp_1_1TrainedSingle.html',1,'singlepp']]]
];
"""

SAMPLE_MANIFEST = """var indexSectionsWithContent =
{
  0: "abcdefgilmnotw",
  1: "ist"
};

var indexSectionNames =
{
  0: "all",
  1: "classes"
};

var indexSectionLabels =
{
  0: "All",
  1: "Classes"
};
"""


class StubLoader(ShardLoader):
    """
    In-memory loader.

    Payloads are keyed by bucket. A bucket with a gate waits for the gate
    event before answering; a bucket in `failures` raises that exception.
    """

    def __init__(self, payloads=None, failures=None):
        self.payloads = dict(payloads or {})
        self.failures = dict(failures or {})
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self.closed = False

    def gate(self, bucket: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[bucket] = event
        return event

    async def fetch(self, bucket):
        self.calls.append(bucket)
        gate = self.gates.get(bucket)
        if gate is not None:
            await gate.wait()
        if bucket in self.failures:
            raise self.failures[bucket]
        if bucket not in self.payloads:
            return []
        return [(f"stub:{bucket}", self.payloads[bucket])]

    async def aclose(self):
        self.closed = True


@pytest.fixture
def stub_loader():
    """Loader serving the sample "t" shard and the "s" shard."""
    return StubLoader({"t": SAMPLE_SHARD, "s": SINGLEPP_SHARD})


@pytest.fixture
def store(stub_loader):
    return ShardStore(stub_loader, load_timeout=1.0)


@pytest.fixture
def router(store):
    return create_router(store, min_query_length=2)


@pytest.fixture
def tmp_search_dir(tmp_path):
    """Create a generated search/ directory with a manifest and one shard."""
    search_dir = tmp_path / "search"
    search_dir.mkdir()
    (search_dir / "searchdata.js").write_text(SAMPLE_MANIFEST)
    (search_dir / "all_12.js").write_text(SAMPLE_SHARD)
    return search_dir


@pytest.fixture
def tmp_settings(tmp_path):
    """Create a real settings TOML file with all sections."""
    settings_path = tmp_path / "settings.toml"
    data = {
        "search": {"max_results": 5, "min_query_length": 2},
        "session": {"debounce_ms": 0},
        "shards": {"root": str(tmp_path / "search"), "section": "all", "load_timeout_ms": 250},
    }
    settings_path.write_text(toml.dumps(data))
    return settings_path
