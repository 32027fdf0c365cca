import bistro
from bistro.core.config import get_settings


def test_package_metadata():
    assert bistro.__version__ == get_settings().app_version
    assert bistro.__author__ == "Your Name"
