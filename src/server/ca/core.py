"""
证书签发服务的核心逻辑实现。
包括生成 EC 密钥与 CSR、签发自签根 CA、使用调用方提供的 CA 对 CSR 签名。
所有操作都在内存中的构造器对象上完成，不落盘任何密钥材料。
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping, NamedTuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PrivateFormat,
    PublicFormat,
    NoEncryption,
)
from loguru import logger

from src.server.config import config
from . import serials
from .errors import CryptoError, ValidationError
from .profiles import ExtensionProfile, index_alt_names, select_profile
from .subject import Role, build_subject

_CURVES = {
    "prime256v1": ec.SECP256R1,
    "secp256r1": ec.SECP256R1,
    "p-256": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "p-384": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
    "p-521": ec.SECP521R1,
    "secp256k1": ec.SECP256K1,
}


_MAX_NOT_AFTER = datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


class KeyAndCSR(NamedTuple):
    private_key: str
    public_key: str
    csr: str


class RootCA(NamedTuple):
    ca_key: str
    ca_cert: str


def resolve_curve(name: str | None) -> ec.EllipticCurve:
    """
    将曲线名称（OpenSSL 名称或 NIST 名称，大小写不敏感）解析为曲线对象。
    :raises CryptoError: 不支持的曲线。
    """
    key = (name or config.default_curve).strip().lower()
    curve_cls = _CURVES.get(key)
    if curve_cls is None:
        raise CryptoError(f"不支持的椭圆曲线: {name}")
    return curve_cls()


def _generate_private_key(curve: str | None) -> ec.EllipticCurvePrivateKey:
    curve_obj = resolve_curve(curve)
    try:
        return ec.generate_private_key(curve_obj)
    except (UnsupportedAlgorithm, ValueError) as e:
        raise CryptoError(f"生成 {curve_obj.name} 密钥失败: {e}")


def _private_key_pem(key) -> str:
    return key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption(),
    ).decode("utf-8")


def _public_key_pem(public_key) -> str:
    return public_key.public_bytes(
        encoding=Encoding.PEM,
        format=PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def _signing_hash(private_key):
    # Ed25519/Ed448 不接受独立的摘要算法
    if isinstance(private_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    return hashes.SHA256()


def _validity_days(value: int | None, default: int) -> int:
    days = default if value is None else value
    if days <= 0:
        raise ValidationError(f"有效期天数必须为正整数: {days}")
    # X.509 的 GeneralizedTime 最晚只能表示到 9999-12-31
    limit = (_MAX_NOT_AFTER - datetime.now(timezone.utc)).days
    if days > limit:
        raise ValidationError(f"有效期天数过大，最多 {limit} 天: {days}")
    return days


def generate_key_and_csr(
    role: Role,
    curve: str | None,
    subject: x509.Name,
    profile: ExtensionProfile,
) -> KeyAndCSR:
    """
    生成新的 EC 密钥对并构造携带主体与请求扩展的 CSR。
    公钥总是从新生成的私钥推导。要么返回完整的三元组，要么抛出异常。
    :param role: 证书角色，仅用于日志。
    :param curve: 曲线名称，None 时使用配置中的默认曲线。
    :param subject: build_subject 的输出。
    :param profile: select_profile 的输出。
    :return: PEM 文本形式的 (私钥, 公钥, CSR)。
    :raises CryptoError: 曲线不支持或签名失败。
    """
    private_key = _generate_private_key(curve)
    builder = profile.apply(x509.CertificateSigningRequestBuilder().subject_name(subject))
    try:
        csr = builder.sign(private_key, hashes.SHA256())
    except (UnsupportedAlgorithm, ValueError, TypeError) as e:
        logger.error(f"CSR 签名失败: {e}")
        raise CryptoError(f"CSR 生成失败: {e}")

    if profile.subject_alt_names:
        logger.debug(f"CSR SAN: {', '.join(index_alt_names(profile.subject_alt_names))}")
    logger.info(f"已生成 {Role(role).value} CSR: {subject.rfc4514_string()}")

    return KeyAndCSR(
        private_key=_private_key_pem(private_key),
        public_key=_public_key_pem(private_key.public_key()),
        csr=csr.public_bytes(Encoding.PEM).decode("utf-8"),
    )


def root_ca_identity(fields: Mapping[str, str | None]) -> dict:
    """为未提供（None）的根 CA 主体字段补上配置中的默认值，显式给出的值（包括空值）保持不变。"""
    defaults = {
        "common_name": config.ca_root_common_name,
        "organization": config.ca_root_organization_name,
        "country": config.ca_root_country_name,
        "state": config.ca_root_state_name,
        "locality": config.ca_root_locality_name,
    }
    identity = dict(fields)
    for name, default in defaults.items():
        if identity.get(name) is None:
            identity[name] = default
    return identity


def issue_root_ca(
    curve: str | None,
    fields: Mapping[str, str | None],
    validity_days: int | None = None,
) -> RootCA:
    """
    生成 CA 密钥与自签根证书（issuer == subject，使用 ca 扩展配置）。
    :param curve: 曲线名称。
    :param fields: 根 CA 身份字段，缺省字段按 root_ca_identity 补齐。
    :param validity_days: 有效期天数，默认取配置 ca_validity_days。
    :return: PEM 文本形式的 (CA 私钥, CA 证书)。
    :raises ValidationError: 主体字段无效或有效期非法。
    :raises CryptoError: 曲线不支持或签名失败。
    """
    subject = build_subject(Role.CA, root_ca_identity(fields))
    days = _validity_days(validity_days, config.ca_validity_days)
    ca_key = _generate_private_key(curve)

    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=days))
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(ca_key.public_key()), critical=False)
    )
    builder = select_profile(Role.CA).apply(builder)
    try:
        ca_cert = builder.sign(private_key=ca_key, algorithm=hashes.SHA256())
    except (UnsupportedAlgorithm, ValueError, TypeError) as e:
        logger.error(f"根 CA 签名失败: {e}")
        raise CryptoError(f"根 CA 签发失败: {e}")

    logger.info(f"已签发根 CA: {subject.rfc4514_string()}，有效期 {days} 天")
    return RootCA(
        ca_key=_private_key_pem(ca_key),
        ca_cert=ca_cert.public_bytes(Encoding.PEM).decode("utf-8"),
    )


def _require(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"缺少必填字段: {name}")
    return value.strip()


def load_csr(csr_pem: str) -> x509.CertificateSigningRequest:
    """
    解析 PEM CSR 并校验其自签名。
    :raises CryptoError: CSR 格式无效或签名校验失败。
    """
    try:
        csr = x509.load_pem_x509_csr(csr_pem.encode("utf-8"))
        # 公钥与签名都是惰性解析的，在这里提前触发
        csr.public_key()
        signature_valid = csr.is_signature_valid
    except (ValueError, UnsupportedAlgorithm) as e:
        logger.error(f"解析 CSR 失败: {e}")
        raise CryptoError("无效的 CSR 格式")
    if not signature_valid:
        raise CryptoError("CSR 签名校验失败")
    return csr


def _load_ca(ca_key_pem: str, ca_cert_pem: str):
    try:
        ca_key = serialization.load_pem_private_key(ca_key_pem.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        logger.error(f"解析 CA 私钥失败: {e}")
        raise CryptoError("无效的 CA 私钥格式")
    try:
        ca_cert = x509.load_pem_x509_certificate(ca_cert_pem.encode("utf-8"))
        ca_cert.public_key()
        ca_extensions = ca_cert.extensions
    except (ValueError, UnsupportedAlgorithm, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
        logger.error(f"解析 CA 证书失败: {e}")
        raise CryptoError("无效的 CA 证书格式")

    if not isinstance(
        ca_key,
        (ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey, ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey),
    ):
        raise ValidationError("不支持的 CA 私钥类型")
    if _public_key_pem(ca_key.public_key()) != _public_key_pem(ca_cert.public_key()):
        raise ValidationError("CA 私钥与 CA 证书不匹配")
    try:
        constraints = ca_extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        constraints = None
    if constraints is None or not constraints.ca:
        raise ValidationError("提供的 CA 证书不是 CA（缺少 CA:TRUE）")
    return ca_key, ca_cert


def _authority_key_identifier(ca_cert: x509.Certificate) -> x509.AuthorityKeyIdentifier:
    try:
        ski = ca_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
        return x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski)
    except x509.ExtensionNotFound:
        return x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_cert.public_key())


def sign_certificate(
    role: Role,
    csr_pem: str | None,
    ca_key_pem: str | None,
    ca_cert_pem: str | None,
    validity_days: int | None = None,
    alt_names: Iterable | None = None,
) -> str:
    """
    使用调用方提供的 CA 对 CSR 签名，返回 PEM 证书。
    证书主体原样复制自 CSR；扩展完全由 role 决定，CSR 中请求的扩展一律忽略。
    :param role: client 或 broker。
    :param alt_names: 仅 broker 使用的 SAN 列表。
    :raises ValidationError: 缺少 csr/ca_key/ca_cert，角色不可签发，或 CA 材料不一致。
    :raises CryptoError: CSR/CA 解析失败或签名失败。
    :raises ResourceError: 序列号状态读写失败。
    """
    csr_pem = _require(csr_pem, "csr")
    ca_key_pem = _require(ca_key_pem, "caKey")
    ca_cert_pem = _require(ca_cert_pem, "caCert")
    role = Role(role)
    if role is Role.CA:
        raise ValidationError("只能签发 client 或 broker 证书")
    profile = select_profile(role, alt_names)
    days = _validity_days(validity_days, config.leaf_validity_days)

    csr = load_csr(csr_pem)
    ca_key, ca_cert = _load_ca(ca_key_pem, ca_cert_pem)
    serial = serials.next_serial(ca_cert)

    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(csr.subject)
        .issuer_name(ca_cert.subject)
        .public_key(csr.public_key())
        .serial_number(serial)
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=days))
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(csr.public_key()), critical=False)
        .add_extension(_authority_key_identifier(ca_cert), critical=False)
    )
    builder = profile.apply(builder)
    try:
        cert = builder.sign(private_key=ca_key, algorithm=_signing_hash(ca_key))
    except (UnsupportedAlgorithm, ValueError, TypeError) as e:
        logger.error(f"证书签名失败: {e}")
        raise CryptoError(f"证书签发失败: {e}")

    logger.info(
        f"已签发 {role.value} 证书: {csr.subject.rfc4514_string()}，序列号 {serial}，有效期 {days} 天"
    )
    return cert.public_bytes(Encoding.PEM).decode("utf-8")
