import sys, pytest
from pathlib import Path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path: sys.path.insert(0, str(ROOT))
from .channel_utils import FakeKernel, make_channels


@pytest.fixture
def channels(): return make_channels()


@pytest.fixture
def kernel(channels): return FakeKernel(channels.shell)
