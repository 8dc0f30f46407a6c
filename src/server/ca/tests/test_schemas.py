"""
测试 schemas.py 模块。
"""

import pytest
from pydantic import ValidationError

from src.server.ca.schemas import (
    BrokerCSRRequest,
    ClientCSRRequest,
    CSRResponse,
    SignBrokerCertRequest,
)


def test_client_csr_request_camel_case():
    """接受 camelCase 字段并转换为身份字段字典"""
    req = ClientCSRRequest(
        commonName="device-001",
        organizationalUnit="IoT",
        serialNumber="SN-1",
        curve="secp384r1",
    )
    identity = req.identity()
    assert identity["common_name"] == "device-001"
    assert identity["organizational_unit"] == "IoT"
    assert identity["serial_number"] == "SN-1"
    assert identity["country"] is None
    assert req.curve == "secp384r1"


def test_client_csr_request_accepts_field_names():
    req = ClientCSRRequest(common_name="device-001")
    assert req.common_name == "device-001"


def test_broker_csr_request_san_defaults():
    req = BrokerCSRRequest(commonName="broker", subjectAltNames=[{"type": "DNS"}, {"value": "x"}])
    assert [(s.type, s.value) for s in req.subject_alt_names] == [("DNS", ""), ("", "x")]
    assert BrokerCSRRequest(commonName="broker").subject_alt_names == []


def test_sign_request_validity_must_be_int():
    with pytest.raises(ValidationError):
        SignBrokerCertRequest(csr="c", caKey="k", caCert="p", validityDays="forever")


def test_csr_response_dumps_by_alias():
    resp = CSRResponse(private_key="k", public_key="p", csr="c", csr_details="d")
    assert resp.model_dump(by_alias=True) == {
        "success": True,
        "privateKey": "k",
        "publicKey": "p",
        "csr": "c",
        "csrDetails": "d",
    }
