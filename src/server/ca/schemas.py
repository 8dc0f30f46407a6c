"""
证书签发服务的数据模型定义。
对外 JSON 字段使用 camelCase（如 commonName、caCert），Python 侧使用 snake_case。
身份字段在此处均为可选，按角色的必填规则由 subject.build_subject 校验。
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubjectAltName(_CamelModel):
    """
    SAN 条目。type 只接受 DNS 或 IP，其他类型与空值在选择扩展时被丢弃。
    """
    type: str = ""
    value: str = ""


class IdentityFields(_CamelModel):
    """
    证书主体的身份字段。
    """
    common_name: str | None = None
    organization: str | None = None
    organizational_unit: str | None = None
    country: str | None = None
    state: str | None = None
    locality: str | None = None
    email: str | None = None
    serial_number: str | None = None  # 主体中的 serialNumber 属性，不是证书序列号

    def identity(self) -> dict:
        return {
            "common_name": self.common_name,
            "organization": self.organization,
            "organizational_unit": self.organizational_unit,
            "country": self.country,
            "state": self.state,
            "locality": self.locality,
            "email": self.email,
            "serial_number": self.serial_number,
        }


class ClientCSRRequest(IdentityFields):
    """
    客户端请求生成 client CSR 时的数据模型。
    """
    curve: str | None = None


class BrokerCSRRequest(IdentityFields):
    """
    客户端请求生成 broker CSR 时的数据模型。
    """
    curve: str | None = None
    subject_alt_names: List[SubjectAltName] = Field(default_factory=list)


class RootCARequest(IdentityFields):
    """
    请求签发自签根 CA 时的数据模型，未提供的主体字段使用配置中的默认值。
    """
    curve: str | None = None
    validity_days: int | None = None


class SignClientCertRequest(_CamelModel):
    """
    使用调用方提供的 CA 签发 client 证书的数据模型。
    """
    csr: str | None = None
    ca_key: str | None = None
    ca_cert: str | None = None
    validity_days: int | None = None


class SignBrokerCertRequest(SignClientCertRequest):
    """
    使用调用方提供的 CA 签发 broker 证书的数据模型。
    """
    subject_alt_names: List[SubjectAltName] = Field(default_factory=list)


class DescribeRequest(_CamelModel):
    pem: str | None = None


class CSRResponse(_CamelModel):
    """
    返回新生成的密钥对与 CSR。私钥只出现在本次响应中，服务端不保留。
    """
    success: bool = True
    private_key: str
    public_key: str
    csr: str
    csr_details: str


class RootCAResponse(_CamelModel):
    success: bool = True
    ca_key: str
    ca_cert: str
    cert_details: str


class SignedCertResponse(_CamelModel):
    success: bool = True
    signed_cert: str
    cert_details: str


class DescribeResponse(_CamelModel):
    success: bool = True
    details: str
