"""
将 CSR 或证书解码为便于阅读的文本（布局参考 `openssl x509/req -text`），供界面展示与人工核对。
"""

from datetime import datetime
from typing import List

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, ExtensionOID, NameOID, SignatureAlgorithmOID

from .errors import ValidationError
from .profiles import SanEntry, index_alt_names

_NAME_LABELS = {
    NameOID.COUNTRY_NAME: "C",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.LOCALITY_NAME: "L",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.COMMON_NAME: "CN",
    NameOID.SERIAL_NUMBER: "serialNumber",
    NameOID.EMAIL_ADDRESS: "emailAddress",
}

_EKU_LABELS = {
    ExtendedKeyUsageOID.SERVER_AUTH: "TLS Web Server Authentication",
    ExtendedKeyUsageOID.CLIENT_AUTH: "TLS Web Client Authentication",
    ExtendedKeyUsageOID.CODE_SIGNING: "Code Signing",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "E-mail Protection",
    ExtendedKeyUsageOID.TIME_STAMPING: "Time Stamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSP Signing",
}

_EXTENSION_LABELS = {
    ExtensionOID.BASIC_CONSTRAINTS: "X509v3 Basic Constraints",
    ExtensionOID.KEY_USAGE: "X509v3 Key Usage",
    ExtensionOID.EXTENDED_KEY_USAGE: "X509v3 Extended Key Usage",
    ExtensionOID.SUBJECT_ALTERNATIVE_NAME: "X509v3 Subject Alternative Name",
    ExtensionOID.SUBJECT_KEY_IDENTIFIER: "X509v3 Subject Key Identifier",
    ExtensionOID.AUTHORITY_KEY_IDENTIFIER: "X509v3 Authority Key Identifier",
}

_SIGNATURE_LABELS = {
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ecdsa-with-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ecdsa-with-SHA384",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "ecdsa-with-SHA512",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "sha256WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "sha384WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "sha512WithRSAEncryption",
    SignatureAlgorithmOID.ED25519: "ED25519",
    SignatureAlgorithmOID.ED448: "ED448",
}

# (属性名, 显示名)，顺序与 openssl 输出一致
_KEY_USAGE_LABELS = (
    ("digital_signature", "Digital Signature"),
    ("content_commitment", "Non Repudiation"),
    ("key_encipherment", "Key Encipherment"),
    ("data_encipherment", "Data Encipherment"),
    ("key_agreement", "Key Agreement"),
    ("key_cert_sign", "Certificate Sign"),
    ("crl_sign", "CRL Sign"),
)

_NIST_CURVES = {"secp256r1": "P-256", "secp384r1": "P-384", "secp521r1": "P-521"}


def format_name(name: x509.Name) -> str:
    """按 DN 中的原始顺序输出，如 C=US, ST=CA, O=Acme, CN=device-001。"""
    parts = []
    for attr in name:
        label = _NAME_LABELS.get(attr.oid) or attr.rfc4514_attribute_name
        parts.append(f"{label}={attr.value}")
    return ", ".join(parts)


def _format_time(value: datetime) -> str:
    return f"{value:%b} {value.day:2d} {value:%H:%M:%S %Y} GMT"


def _format_serial(serial: int) -> str:
    if serial.bit_length() <= 64:
        return f"{serial} ({serial:#x})"
    raw = serial.to_bytes((serial.bit_length() + 7) // 8, "big")
    return ":".join(f"{b:02x}" for b in raw)


def _colon_hex(data: bytes) -> str:
    return ":".join(f"{b:02X}" for b in data)


def _key_usage_text(ku: x509.KeyUsage) -> str:
    labels = [label for attr, label in _KEY_USAGE_LABELS if getattr(ku, attr)]
    if ku.key_agreement:
        if ku.encipher_only:
            labels.append("Encipher Only")
        if ku.decipher_only:
            labels.append("Decipher Only")
    return ", ".join(labels)


def _general_name_text(gn: x509.GeneralName) -> str:
    if isinstance(gn, x509.DNSName):
        return f"DNS:{gn.value}"
    if isinstance(gn, x509.IPAddress):
        return f"IP Address:{gn.value}"
    if isinstance(gn, x509.RFC822Name):
        return f"email:{gn.value}"
    if isinstance(gn, x509.UniformResourceIdentifier):
        return f"URI:{gn.value}"
    if isinstance(gn, x509.DirectoryName):
        return f"DirName:{format_name(gn.value)}"
    return str(gn.value)


def _extension_value_text(value: x509.ExtensionType) -> str:
    if isinstance(value, x509.BasicConstraints):
        text = "CA:TRUE" if value.ca else "CA:FALSE"
        if value.path_length is not None:
            text += f", pathlen:{value.path_length}"
        return text
    if isinstance(value, x509.KeyUsage):
        return _key_usage_text(value)
    if isinstance(value, x509.ExtendedKeyUsage):
        return ", ".join(_EKU_LABELS.get(oid, oid.dotted_string) for oid in value)
    if isinstance(value, x509.SubjectAlternativeName):
        return ", ".join(_general_name_text(gn) for gn in value)
    if isinstance(value, x509.SubjectKeyIdentifier):
        return _colon_hex(value.digest)
    if isinstance(value, x509.AuthorityKeyIdentifier):
        return _colon_hex(value.key_identifier) if value.key_identifier else ""
    return repr(value)


def _extension_lines(extensions: x509.Extensions, indent: str) -> List[str]:
    lines = []
    for ext in extensions:
        label = _EXTENSION_LABELS.get(ext.oid, ext.oid.dotted_string)
        lines.append(f"{indent}{label}:{' critical' if ext.critical else ''}")
        lines.append(f"{indent}    {_extension_value_text(ext.value)}")
        if isinstance(ext.value, x509.SubjectAlternativeName):
            labels = index_alt_names(_san_entries(ext.value))
            if labels:
                lines.append(f"{indent}    [{', '.join(labels)}]")
    return lines


def _san_entries(san: x509.SubjectAlternativeName) -> List[SanEntry]:
    entries = []
    for gn in san:
        if isinstance(gn, x509.DNSName):
            entries.append(SanEntry("DNS", gn.value))
        elif isinstance(gn, x509.IPAddress):
            entries.append(SanEntry("IP", str(gn.value)))
    return entries


def _public_key_lines(public_key, indent: str) -> List[str]:
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        lines = [
            f"{indent}Public Key Algorithm: id-ecPublicKey",
            f"{indent}    Public-Key: ({public_key.curve.key_size} bit)",
            f"{indent}    ASN1 OID: {'prime256v1' if public_key.curve.name == 'secp256r1' else public_key.curve.name}",
        ]
        nist = _NIST_CURVES.get(public_key.curve.name)
        if nist:
            lines.append(f"{indent}    NIST CURVE: {nist}")
        return lines
    if isinstance(public_key, rsa.RSAPublicKey):
        return [
            f"{indent}Public Key Algorithm: rsaEncryption",
            f"{indent}    Public-Key: ({public_key.key_size} bit)",
        ]
    if isinstance(public_key, ed25519.Ed25519PublicKey):
        return [f"{indent}Public Key Algorithm: ED25519"]
    if isinstance(public_key, ed448.Ed448PublicKey):
        return [f"{indent}Public Key Algorithm: ED448"]
    return [f"{indent}Public Key Algorithm: {type(public_key).__name__}"]


def _signature_label(oid: x509.ObjectIdentifier) -> str:
    return _SIGNATURE_LABELS.get(oid, oid.dotted_string)


def describe_csr(csr: x509.CertificateSigningRequest) -> str:
    lines = [
        "Certificate Request:",
        "    Data:",
        "        Version: 1 (0x0)",
        f"        Subject: {format_name(csr.subject)}",
        "        Subject Public Key Info:",
        *_public_key_lines(csr.public_key(), "            "),
        "        Attributes:",
        "            Requested Extensions:",
        *_extension_lines(csr.extensions, "                "),
        f"    Signature Algorithm: {_signature_label(csr.signature_algorithm_oid)}",
    ]
    return "\n".join(lines) + "\n"


def describe_certificate(cert: x509.Certificate) -> str:
    version = 3 if cert.version is x509.Version.v3 else 1
    lines = [
        "Certificate:",
        "    Data:",
        f"        Version: {version} ({version - 1:#x})",
        f"        Serial Number: {_format_serial(cert.serial_number)}",
        f"        Signature Algorithm: {_signature_label(cert.signature_algorithm_oid)}",
        f"        Issuer: {format_name(cert.issuer)}",
        "        Validity",
        f"            Not Before: {_format_time(cert.not_valid_before_utc)}",
        f"            Not After : {_format_time(cert.not_valid_after_utc)}",
        f"        Subject: {format_name(cert.subject)}",
        "        Subject Public Key Info:",
        *_public_key_lines(cert.public_key(), "            "),
        "        X509v3 extensions:",
        *_extension_lines(cert.extensions, "            "),
        f"    Signature Algorithm: {_signature_label(cert.signature_algorithm_oid)}",
    ]
    return "\n".join(lines) + "\n"


def describe(pem: str | None) -> str:
    """
    解码 PEM 格式的 CSR 或证书并渲染为文本。
    :raises ValidationError: 输入为空或无法解析。
    """
    if not pem or not pem.strip():
        raise ValidationError("缺少待解析的 PEM 内容")
    try:
        data = pem.strip().encode("utf-8")
        # 扩展与公钥是惰性解析的，渲染过程中也可能抛出解析错误
        if b"-----BEGIN CERTIFICATE REQUEST-----" in data or b"-----BEGIN NEW CERTIFICATE REQUEST-----" in data:
            return describe_csr(x509.load_pem_x509_csr(data))
        if b"-----BEGIN CERTIFICATE-----" in data:
            return describe_certificate(x509.load_pem_x509_certificate(data))
    except (ValueError, UnsupportedAlgorithm, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
        raise ValidationError(f"无法解析 PEM 内容: {e}")
    raise ValidationError("输入既不是 PEM 格式的 CSR 也不是证书")
