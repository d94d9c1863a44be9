# Shared fixtures for the service registry tests.
# Every test starts from the process-wide background context; anything a
# test binds lives on derived contexts and is dropped with them.

import pytest

from ctxservice import background


@pytest.fixture
def ctx0():
    return background()
