import os as _os
import sys

import pytest

# Ensure project root is importable (so `import cli` works without installing)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from dhp import journal  # noqa: E402
from dhp.kube_ops import ServiceRegistry  # noqa: E402
from dhp.reconciler import Reconciler  # noqa: E402
from dhp.runtime import NodeIPCache, RuntimeState  # noqa: E402

from kube_fakes import FakeCoreV1Api  # noqa: E402


@pytest.fixture(autouse=True)
def journal_off():
    """Each test starts without a journal; tests that want one enable it."""
    journal.init_db("")
    journal.logger.handlers = []
    journal.logger.propagate = True
    yield
    journal.init_db("")


@pytest.fixture
def api():
    return FakeCoreV1Api()


@pytest.fixture
def registry(api):
    return ServiceRegistry(api)


@pytest.fixture
def reconciler(api, registry):
    return Reconciler(registry, NodeIPCache(api), RuntimeState())
