"""Test isolation for CLI tests.

``--verbose`` reconfigures structlog and loguru onto the stderr stream that
CliRunner swaps in for the invocation and closes afterwards; restore the
import-time logging configuration so later tests don't write to a closed file.
"""

import pytest

from compliance_linker.config.logging import configure_logging
from compliance_linker.utils.logging import configure_structured_logging


@pytest.fixture(autouse=True)
def _restore_logging_configuration():
    yield
    configure_logging()
    configure_structured_logging()
