"""
OLT Gateway - Schemas OLT
Cada request trae las credenciales del equipo (no hay inventario guardado).
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from olt_gateway.services.olt.olt_base import OltCredentials, OnuInfo


class OltConnection(BaseModel):
    """Credenciales de conexión a una OLT."""
    host: str
    brand: str                       # "zte", "vsol", etc.
    protocol: str = ""               # "cli" / "snmp"; vacío = primario de la marca
    ssh_port: int = 22
    ssh_username: str = "admin"
    ssh_password: str = ""
    enable_password: str = ""
    snmp_port: int = 161
    snmp_community: Optional[str] = None
    snmp_version: str = "2c"
    model: str = ""
    timeout: float = Field(30.0, gt=0)
    secondary_port: Optional[int] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    def to_credentials(self) -> OltCredentials:
        return OltCredentials(**self.model_dump())


class OltRequest(BaseModel):
    olt: OltConnection


class PortRequest(OltRequest):
    """Sin slot/pon_port se listan todas las ONUs de la OLT."""
    slot: Optional[int] = None
    pon_port: Optional[int] = None


class OnuRequest(OltRequest):
    slot: int
    pon_port: int
    onu_id: int


class AuthorizeOnuRequest(OltRequest):
    """Request para autorizar ONU directamente en la OLT."""
    serial_number: str
    slot: int
    pon_port: int
    onu_id: Optional[int] = None
    onu_type: str = ""
    line_profile: str = ""
    remote_profile: str = ""
    vlan: str = "100"
    description: str = ""


class ConfigureServiceRequest(OnuRequest):
    """Request para configurar VLAN de servicio en ONU."""
    vlan: str = "100"
    service_port: int = 1


class ExecuteCommandRequest(OltRequest):
    """Request para ejecutar comandos CLI raw (en orden, en la misma sesión)."""
    commands: List[str] = Field(min_length=1)
    timeout: float = Field(60.0, gt=0)


class RestartOnuRequest(OnuRequest):
    require_verified: bool = False   # True = 409 si el reinicio no se pudo confirmar


class PonPortRequest(OltRequest):
    slot: int = 0
    pon_port: int


class PortStateRequest(PonPortRequest):
    enabled: bool


class SerialRequest(OltRequest):
    serial_number: str


class VlanRequest(OltRequest):
    vlan_id: int


class CreateVlanRequest(VlanRequest):
    name: str = ""
    description: str = ""


class DeleteVlanRequest(VlanRequest):
    force: bool = False              # True = borrar aunque tenga service-ports


class AddServicePortRequest(OnuRequest):
    """Mapeo VLAN ↔ ONU. Sin user_vlan se usa la misma VLAN."""
    vlan: int
    gemport: int = 1
    user_vlan: Optional[int] = None


class OnuResponse(BaseModel):
    serial_number: str
    onu_id: Optional[int] = None
    slot: Optional[int] = None
    pon_port: Optional[int] = None
    status: str
    admin_state: str = ""
    rx_power: Optional[float] = None
    distance: Optional[int] = None
    model: str = ""

    @classmethod
    def from_onu(cls, onu: OnuInfo) -> "OnuResponse":
        return cls(
            serial_number=onu.serial_number,
            onu_id=onu.onu_id,
            slot=onu.slot,
            pon_port=onu.pon_port,
            status=onu.status,
            admin_state=onu.admin_state,
            rx_power=onu.rx_power,
            distance=onu.distance,
            model=onu.model,
        )
