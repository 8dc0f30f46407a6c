"""
证书签发服务的业务逻辑层。
此模块封装了核心逻辑，提供更清晰的接口供路由层调用。
"""

from . import core, inspector
from .profiles import select_profile
from .schemas import (
    BrokerCSRRequest,
    ClientCSRRequest,
    CSRResponse,
    DescribeRequest,
    DescribeResponse,
    RootCARequest,
    RootCAResponse,
    SignBrokerCertRequest,
    SignClientCertRequest,
    SignedCertResponse,
)
from .subject import Role, build_subject


def _generate_csr(role: Role, req, alt_names=None) -> CSRResponse:
    # 先做主体与扩展校验，失败时不会生成任何密钥
    subject = build_subject(role, req.identity())
    profile = select_profile(role, alt_names)
    result = core.generate_key_and_csr(role, req.curve, subject, profile)
    return CSRResponse(
        private_key=result.private_key,
        public_key=result.public_key,
        csr=result.csr,
        csr_details=inspector.describe(result.csr),
    )


def generate_client_csr_service(req: ClientCSRRequest) -> CSRResponse:
    """
    生成 client 密钥对与 CSR（请求扩展：digitalSignature, keyAgreement；clientAuth）。
    :raises ValidationError: 缺少 CN/O/C/ST/L 或字段值无效。
    :raises CryptoError: 曲线不支持或签名失败。
    """
    return _generate_csr(Role.CLIENT, req)


def generate_broker_csr_service(req: BrokerCSRRequest) -> CSRResponse:
    """
    生成 broker 密钥对与 CSR（serverAuth，可携带 SAN）。
    :raises ValidationError: 缺少 CN、字段值无效或 IP SAN 无效。
    :raises CryptoError: 曲线不支持或签名失败。
    """
    return _generate_csr(Role.BROKER, req, req.subject_alt_names)


def generate_root_ca_service(req: RootCARequest) -> RootCAResponse:
    """
    生成自签根 CA。CA 私钥只随响应返回，服务端不保存。
    """
    result = core.issue_root_ca(req.curve, req.identity(), req.validity_days)
    return RootCAResponse(
        ca_key=result.ca_key,
        ca_cert=result.ca_cert,
        cert_details=inspector.describe(result.ca_cert),
    )


def sign_client_cert_service(req: SignClientCertRequest) -> SignedCertResponse:
    """
    使用请求中的 CA 签发 client 证书。
    :raises ValidationError: 缺少 csr/caKey/caCert 或 CA 材料不一致。
    :raises CryptoError: CSR 或 CA 解析失败、CSR 签名无效。
    :raises ResourceError: 序列号状态读写失败。
    """
    cert = core.sign_certificate(Role.CLIENT, req.csr, req.ca_key, req.ca_cert, req.validity_days)
    return SignedCertResponse(signed_cert=cert, cert_details=inspector.describe(cert))


def sign_broker_cert_service(req: SignBrokerCertRequest) -> SignedCertResponse:
    """
    使用请求中的 CA 签发 broker 证书，SAN 取自本次请求而不是 CSR。
    """
    cert = core.sign_certificate(
        Role.BROKER,
        req.csr,
        req.ca_key,
        req.ca_cert,
        req.validity_days,
        req.subject_alt_names,
    )
    return SignedCertResponse(signed_cert=cert, cert_details=inspector.describe(cert))


def describe_artifact_service(req: DescribeRequest) -> DescribeResponse:
    return DescribeResponse(details=inspector.describe(req.pem))
