"""Typed models for CloudHSM clusters and HSMs, and their mapping to state."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from .state import ResourceData
from .status import ClusterState

HSM_TYPE = "hsm1.medium"

_CSR_FIELDS = {
    "cluster_csr": "ClusterCsr",
    "aws_hardware_certificate": "AwsHardwareCertificate",
    "hsm_certificate": "HsmCertificate",
    "manufacturer_hardware_certificate": "ManufacturerHardwareCertificate",
}


class Timeouts(BaseModel):
    """Per-operation convergence timeouts, in seconds."""

    create: float = 120 * 60.0
    update: float = 120 * 60.0
    delete: float = 120 * 60.0


class _Config(BaseModel):
    @classmethod
    def from_data(cls, data: ResourceData) -> Self:
        """Build the desired configuration from an attribute bag."""
        values = {name: data.get(name) for name in cls.model_fields}
        return cls(**{k: v for k, v in values.items() if v is not None})


class ClusterConfig(_Config):
    """User-declared cluster fields; everything but `tags` is immutable."""

    hsm_type: str
    subnet_ids: list[str]
    backup_identifier: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("hsm_type")
    @classmethod
    def _check_hsm_type(cls, value: str) -> str:
        if value != HSM_TYPE:
            raise ValueError(f"there is only {HSM_TYPE} HSM type available")
        return value

    @field_validator("subnet_ids")
    @classmethod
    def _check_subnets(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one subnet id is required")
        return sorted(set(value))

    @field_validator("backup_identifier")
    @classmethod
    def _blank_backup(cls, value: str | None) -> str | None:
        return value or None


class HsmConfig(_Config):
    """User-declared HSM fields; all are immutable."""

    cluster_id: str
    availability_zone: str | None = None
    subnet_id: str | None = None
    ip_address: str | None = None

    @model_validator(mode="after")
    def _check_placement(self) -> Self:
        if not self.availability_zone and not self.subnet_id:
            raise ValueError("one of availability_zone or subnet_id is required")
        return self


class ClusterCertificates(BaseModel):
    """Certificates exposed by a cluster; which ones depends on its state."""

    cluster_csr: str = ""
    aws_hardware_certificate: str = ""
    hsm_certificate: str = ""
    manufacturer_hardware_certificate: str = ""
    cluster_certificate: str = ""

    @classmethod
    def project(cls, state: str, certificates: Mapping[str, Any] | None) -> ClusterCertificates:
        """Project raw certificates: the CSR bundle while UNINITIALIZED, the signed cert once ACTIVE."""
        if not certificates:
            return cls()
        if state == ClusterState.UNINITIALIZED:
            return cls(**{name: certificates.get(key) or "" for name, key in _CSR_FIELDS.items()})
        if state == ClusterState.ACTIVE:
            return cls(cluster_certificate=certificates.get("ClusterCertificate") or "")
        return cls()


class Cluster(BaseModel):
    """A cluster as observed through DescribeClusters."""

    cluster_id: str
    cluster_state: str = ""
    hsm_type: str = ""
    subnet_ids: list[str] = Field(default_factory=list)
    subnet_mapping: dict[str, str] = Field(default_factory=dict)
    backup_identifier: str | None = None
    vpc_id: str = ""
    security_group_id: str = ""
    cluster_certificates: ClusterCertificates = Field(default_factory=ClusterCertificates)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> Cluster:
        state = raw.get("State") or ""
        mapping = dict(raw.get("SubnetMapping") or {})
        return cls(
            cluster_id=raw["ClusterId"],
            cluster_state=state,
            hsm_type=raw.get("HsmType") or "",
            subnet_ids=sorted(mapping.values()),
            subnet_mapping=mapping,
            backup_identifier=raw.get("SourceBackupId") or None,
            vpc_id=raw.get("VpcId") or "",
            security_group_id=raw.get("SecurityGroup") or "",
            cluster_certificates=ClusterCertificates.project(state, raw.get("Certificates")),
        )

    def write(self, data: ResourceData) -> None:
        """Copy every observed field into the attribute bag."""
        for key, value in self.model_dump().items():
            data.set(key, value)


class Hsm(BaseModel):
    """An HSM as listed under its cluster."""

    hsm_id: str
    cluster_id: str
    hsm_state: str = ""
    availability_zone: str = ""
    subnet_id: str = ""
    ip_address: str = ""
    hsm_eni_id: str = ""

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> Hsm:
        return cls(
            hsm_id=raw["HsmId"],
            cluster_id=raw.get("ClusterId") or "",
            hsm_state=raw.get("State") or "",
            availability_zone=raw.get("AvailabilityZone") or "",
            subnet_id=raw.get("SubnetId") or "",
            ip_address=raw.get("EniIp") or "",
            hsm_eni_id=raw.get("EniId") or "",
        )

    def write(self, data: ResourceData) -> None:
        for key, value in self.model_dump().items():
            data.set(key, value)
