import secrets
import shutil
from pathlib import Path

import h5py
import pytest

from odim_core.h5 import Handle


@pytest.fixture(scope="session")
def h5_dir(tmpdir_factory):
    """Create a fresh temporary directory for files created in the tests."""
    return tmpdir_factory.mktemp("odim_tests")


@pytest.fixture
def tmp_h5_path_factory(h5_dir):
    """Return a file name generator to be used for creating files.

    All files will be cleaned up after completing the test.
    """
    names = []

    def fresh_name() -> Path:
        name = secrets.token_hex(4)
        names.append(name)
        return Path(h5_dir / f"{name}.h5")

    yield fresh_name

    # clean up
    for name in names:
        for path in Path(h5_dir).glob(f"{name}*"):
            if path.is_file() or path.is_symlink():
                path.unlink()
            elif path.is_dir():
                shutil.rmtree(path)


@pytest.fixture
def tmp_h5_path(tmp_h5_path_factory):
    """Generate a file name to be used for creating a file.

    The file will be cleaned up after completing the test.
    """
    return tmp_h5_path_factory()


@pytest.fixture
def h5_group(tmp_h5_path):
    """Writable h5py group (root of a fresh file) wrapped in a handle."""
    hnd = Handle(h5py.File(tmp_h5_path, "w"))
    yield hnd
    hnd.close()
