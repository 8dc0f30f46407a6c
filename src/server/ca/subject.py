"""
证书主体（Distinguished Name）构造。

公开接口：
- Role: 证书角色（client / broker / ca）
- IDENTITY_FIELDS: 支持的身份字段名
- build_subject: 按角色规则把身份字段转换为有序的 x509.Name
"""

from enum import Enum
from typing import Mapping

from cryptography import x509
from cryptography.x509.oid import NameOID

from .errors import ValidationError


class Role(str, Enum):
    CLIENT = "client"
    BROKER = "broker"
    CA = "ca"


# 固定的 DN 顺序：C, ST, L, O, OU, CN, serialNumber, emailAddress
_CANONICAL_ORDER = (
    ("country", NameOID.COUNTRY_NAME),
    ("state", NameOID.STATE_OR_PROVINCE_NAME),
    ("locality", NameOID.LOCALITY_NAME),
    ("organization", NameOID.ORGANIZATION_NAME),
    ("organizational_unit", NameOID.ORGANIZATIONAL_UNIT_NAME),
    ("common_name", NameOID.COMMON_NAME),
    ("serial_number", NameOID.SERIAL_NUMBER),
    ("email", NameOID.EMAIL_ADDRESS),
)

IDENTITY_FIELDS = tuple(name for name, _ in _CANONICAL_ORDER)

_REQUIRED_FIELDS = {
    Role.CLIENT: ("common_name", "organization", "country", "state", "locality"),
    Role.BROKER: ("common_name",),
    Role.CA: ("common_name",),
}


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_subject(role: Role, fields: Mapping[str, str | None]) -> x509.Name:
    """
    按角色规则构造证书主体。
    :param role: 证书角色。
    :param fields: 身份字段（键见 IDENTITY_FIELDS），空值或纯空白视为未提供。
    :return: 只包含已提供字段、按固定顺序排列的 x509.Name。
    :raises ValidationError: 缺少角色要求的必填字段，或字段值无法编码（如国家代码不是两位）。
    """
    role = Role(role)
    values = {name: _clean(fields.get(name)) for name in IDENTITY_FIELDS}

    missing = [name for name in _REQUIRED_FIELDS[role] if values[name] is None]
    if missing:
        raise ValidationError(f"缺少必填字段: {', '.join(missing)}")

    attributes = []
    for name, oid in _CANONICAL_ORDER:
        value = values[name]
        if value is None:
            continue
        try:
            attributes.append(x509.NameAttribute(oid, value))
        except ValueError as e:
            raise ValidationError(f"字段 {name} 的值无效: {e}")
    return x509.Name(attributes)
