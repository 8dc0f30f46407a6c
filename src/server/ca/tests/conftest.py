"""
测试公共夹具：隔离序列号状态目录，提供预先生成的根 CA 与 CSR。
"""

import pytest

from src.server.ca import core
from src.server.ca.profiles import select_profile
from src.server.ca.subject import Role, build_subject
from src.server.config import config


@pytest.fixture(autouse=True)
def isolated_serial_state(tmp_path, monkeypatch):
    state_dir = tmp_path / "serial_state"
    monkeypatch.setattr(config, "serial_state_dir", str(state_dir))
    monkeypatch.setattr(config, "serial_strategy", "counter")
    return state_dir


@pytest.fixture(scope="session")
def root_ca():
    """一个默认主体的根 CA（PEM 私钥, PEM 证书）。"""
    return core.issue_root_ca(None, {})


@pytest.fixture(scope="session")
def client_csr():
    subject = build_subject(
        Role.CLIENT,
        {
            "common_name": "device-001",
            "organization": "Acme",
            "country": "US",
            "state": "CA",
            "locality": "SF",
        },
    )
    return core.generate_key_and_csr(Role.CLIENT, None, subject, select_profile(Role.CLIENT))
