"""
Shared fixtures.
"""

import stat
from pathlib import Path

import pytest


@pytest.fixture
def fake_mysqldump(tmp_path):
    """Factory writing a /bin/sh script that stands in for mysqldump.

    The script records its arguments in ``args.txt`` next to it, one per
    line, then runs ``body``.
    """
    def make(body: str, name: str = "mysqldump") -> Path:
        script = tmp_path / name
        script.write_text(
            "#!/bin/sh\n"
            f"printf '%s\\n' \"$@\" > '{tmp_path / 'args.txt'}'\n"
            f"{body}\n"
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return make
