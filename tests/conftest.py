"""Shared fixtures."""

from __future__ import annotations

from typing import Any

import pytest
from helpers import make_kubeconfig


@pytest.fixture()
def kubeconfig() -> dict[str, Any]:
    return make_kubeconfig()
