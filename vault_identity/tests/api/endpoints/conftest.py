from unittest.mock import AsyncMock, Mock

import pytest


@pytest.fixture
def mock_http() -> Mock:
    http = Mock()
    http.request = AsyncMock(return_value=None)
    return http
