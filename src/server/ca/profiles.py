"""
按证书角色选择 X.509v3 扩展集合。

三种固定的扩展配置：
- client: digitalSignature, keyAgreement；clientAuth；非 CA
- broker: digitalSignature, keyEncipherment, keyAgreement；serverAuth；非 CA；可携带 SAN
- ca: digitalSignature, cRLSign, keyCertSign；无 EKU；CA
"""

import ipaddress
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Mapping, NamedTuple, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from .errors import ValidationError
from .subject import Role

SAN_TYPES = ("DNS", "IP")

_KEY_USAGE_BITS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
    "encipher_only",
    "decipher_only",
)


class SanEntry(NamedTuple):
    type: str
    value: str


@dataclass(frozen=True)
class ExtensionProfile:
    name: str
    key_usage: frozenset
    extended_key_usage: Tuple[x509.ObjectIdentifier, ...]
    is_ca: bool
    subject_alt_names: Tuple[SanEntry, ...] = field(default=())

    def extensions(self) -> List[Tuple[x509.ExtensionType, bool]]:
        """返回 (扩展, 是否关键) 列表，可直接交给 CSR/证书构造器。"""
        exts: List[Tuple[x509.ExtensionType, bool]] = [
            (x509.BasicConstraints(ca=self.is_ca, path_length=None), True),
            (x509.KeyUsage(**{bit: bit in self.key_usage for bit in _KEY_USAGE_BITS}), True),
        ]
        if self.extended_key_usage:
            exts.append((x509.ExtendedKeyUsage(list(self.extended_key_usage)), False))
        if self.subject_alt_names:
            exts.append((x509.SubjectAlternativeName(_to_general_names(self.subject_alt_names)), False))
        return exts

    def apply(self, builder):
        for ext, critical in self.extensions():
            builder = builder.add_extension(ext, critical=critical)
        return builder


CLIENT_PROFILE = ExtensionProfile(
    name="client",
    key_usage=frozenset({"digital_signature", "key_agreement"}),
    extended_key_usage=(ExtendedKeyUsageOID.CLIENT_AUTH,),
    is_ca=False,
)

BROKER_PROFILE = ExtensionProfile(
    name="broker",
    key_usage=frozenset({"digital_signature", "key_encipherment", "key_agreement"}),
    extended_key_usage=(ExtendedKeyUsageOID.SERVER_AUTH,),
    is_ca=False,
)

CA_PROFILE = ExtensionProfile(
    name="ca",
    key_usage=frozenset({"digital_signature", "crl_sign", "key_cert_sign"}),
    extended_key_usage=(),
    is_ca=True,
)

_PROFILES = {
    Role.CLIENT: CLIENT_PROFILE,
    Role.BROKER: BROKER_PROFILE,
    Role.CA: CA_PROFILE,
}


def normalize_alt_names(entries: Iterable | None) -> Tuple[SanEntry, ...]:
    """
    清洗 SAN 列表：去掉值为空/纯空白的条目，丢弃类型不是 DNS 或 IP 的条目。
    条目可以是 SanEntry、(type, value) 元组或带 type/value 属性的对象。
    """
    result = []
    for entry in entries or ():
        if isinstance(entry, tuple):
            san_type, value = entry
        elif isinstance(entry, Mapping):
            san_type, value = entry.get("type"), entry.get("value")
        else:
            san_type, value = getattr(entry, "type", None), getattr(entry, "value", None)
        if san_type not in SAN_TYPES:
            continue
        value = str(value or "").strip()
        if not value:
            continue
        result.append(SanEntry(san_type, value))
    return tuple(result)


def index_alt_names(entries: Iterable[SanEntry]) -> List[str]:
    """
    按类型分别从 1 开始编号，例如 ["DNS.1=a", "IP.1=10.0.0.1", "DNS.2=b"]。
    用于 CSR 生成日志以及 inspector 输出的 SAN 编号行。
    """
    counters = {t: 0 for t in SAN_TYPES}
    labels = []
    for entry in entries:
        counters[entry.type] += 1
        labels.append(f"{entry.type}.{counters[entry.type]}={entry.value}")
    return labels


def _to_general_names(entries: Iterable[SanEntry]) -> List[x509.GeneralName]:
    names: List[x509.GeneralName] = []
    for entry in entries:
        try:
            if entry.type == "DNS":
                names.append(x509.DNSName(entry.value))
            else:
                names.append(x509.IPAddress(ipaddress.ip_address(entry.value)))
        except ValueError:
            raise ValidationError(f"无效的 {entry.type} 名称: {entry.value}")
    return names


def select_profile(role: Role, alt_names: Iterable | None = None) -> ExtensionProfile:
    """
    根据角色返回固定的扩展配置。仅 broker 角色在有有效 SAN 时附带 SAN 扩展。
    :raises ValidationError: IP 类型的 SAN 值不是合法地址。
    """
    role = Role(role)
    profile = _PROFILES[role]
    if role is not Role.BROKER:
        return profile
    sans = normalize_alt_names(alt_names)
    if not sans:
        return profile
    # 提前校验，避免在签名阶段才暴露错误
    _to_general_names(sans)
    return replace(profile, subject_alt_names=sans)
