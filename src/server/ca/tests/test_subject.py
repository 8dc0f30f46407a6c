"""
测试 subject.py 模块。
"""

import pytest
from cryptography.x509.oid import NameOID

from src.server.ca.errors import ValidationError
from src.server.ca.subject import Role, build_subject


def _oids(name):
    return [attr.oid for attr in name]


def test_client_subject_canonical_order():
    """字段按 C, ST, L, O, OU, CN, serialNumber, emailAddress 排列"""
    name = build_subject(
        Role.CLIENT,
        {
            "email": "ops@acme.io",
            "common_name": "device-001",
            "serial_number": "SN-42",
            "organizational_unit": "IoT",
            "organization": "Acme",
            "locality": "SF",
            "state": "CA",
            "country": "US",
        },
    )
    assert _oids(name) == [
        NameOID.COUNTRY_NAME,
        NameOID.STATE_OR_PROVINCE_NAME,
        NameOID.LOCALITY_NAME,
        NameOID.ORGANIZATION_NAME,
        NameOID.ORGANIZATIONAL_UNIT_NAME,
        NameOID.COMMON_NAME,
        NameOID.SERIAL_NUMBER,
        NameOID.EMAIL_ADDRESS,
    ]


def test_client_subject_omits_absent_fields():
    name = build_subject(
        Role.CLIENT,
        {
            "common_name": "device-001",
            "organization": "Acme",
            "country": "US",
            "state": "CA",
            "locality": "SF",
            "organizational_unit": "   ",
            "email": None,
        },
    )
    assert len(name) == 5
    assert NameOID.ORGANIZATIONAL_UNIT_NAME not in _oids(name)
    assert NameOID.EMAIL_ADDRESS not in _oids(name)


@pytest.mark.parametrize("missing", ["common_name", "organization", "country", "state", "locality"])
def test_client_subject_requires_fields(missing):
    fields = {
        "common_name": "device-001",
        "organization": "Acme",
        "country": "US",
        "state": "CA",
        "locality": "SF",
    }
    fields[missing] = ""
    with pytest.raises(ValidationError, match=missing):
        build_subject(Role.CLIENT, fields)


def test_broker_subject_only_needs_common_name():
    name = build_subject(Role.BROKER, {"common_name": " broker.local "})
    assert _oids(name) == [NameOID.COMMON_NAME]
    assert name.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "broker.local"


@pytest.mark.parametrize("role", [Role.BROKER, Role.CA])
def test_missing_common_name_rejected(role):
    with pytest.raises(ValidationError):
        build_subject(role, {"organization": "Acme"})


def test_invalid_country_code_is_validation_error():
    with pytest.raises(ValidationError, match="country"):
        build_subject(Role.BROKER, {"common_name": "broker", "country": "USA"})


def test_role_accepts_plain_string():
    name = build_subject("ca", {"common_name": "Root CA"})
    assert len(name) == 1
