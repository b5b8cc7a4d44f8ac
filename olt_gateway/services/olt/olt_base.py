"""
OLT Gateway - OLT Base (Clases Abstractas)
Define los tipos compartidos por drivers y adaptadores:
credenciales del equipo, errores, capacidades y la interfaz base de driver.

Comunicación: SSH (puerto 22) para comandos, SNMP (puerto 161) para monitoreo.
Un driver puede ofrecer una o ambas capacidades (CliExecutor / SnmpExecutor).
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple
from dataclasses import dataclass, field
import logging

logger = logging.getLogger("olt_base")


class Capability(str, Enum):
    """Superficies de operación abstractas que un driver puede ofrecer."""
    CLI = "cli"
    SNMP = "snmp"


@dataclass
class OltCredentials:
    """Credenciales de conexión a una OLT. Solo lectura para el core."""
    host: str
    ssh_port: int = 22
    ssh_username: str = "admin"
    ssh_password: str = field(default="", repr=False)
    enable_password: str = field(default="", repr=False)
    snmp_port: int = 161
    snmp_community: Optional[str] = field(default=None, repr=False)
    snmp_version: str = "2c"
    brand: str = ""
    model: str = ""
    protocol: str = ""               # "cli" o "snmp"; vacío = protocolo primario de la marca
    timeout: float = 30.0
    secondary_port: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class OnuInfo:
    """Información de una ONU detectada o registrada."""
    serial_number: str
    onu_id: Optional[int] = None
    slot: Optional[int] = None
    pon_port: Optional[int] = None
    status: str = "unknown"          # online, offline, unauthorized
    admin_state: str = ""            # enabled, disabled
    rx_power: Optional[float] = None  # dBm recepción en OLT
    tx_power: Optional[float] = None  # dBm transmisión de ONU
    distance: Optional[int] = None    # metros
    model: str = ""
    description: str = ""
    line_profile: str = ""
    remote_profile: str = ""
    vlan: str = ""


# ================================================================
# ERRORES
# ================================================================

class OltError(Exception):
    """Error de comunicación con OLT."""
    pass


class CliSessionError(OltError):
    """
    Error de la sesión interactiva.
    Incluye el comando involucrado y el último fragmento de salida del equipo
    (útil para depurar peculiaridades del CLI). Nunca incluye contraseñas.
    """

    def __init__(self, message: str, command: str = "", last_output: str = ""):
        super().__init__(message)
        self.command = command
        self.last_output = last_output

    def __str__(self) -> str:
        text = super().__str__()
        if self.last_output:
            text += f" | última salida: {self.last_output!r}"
        return text


class InitializationError(CliSessionError):
    """No se detectó prompt ni login al iniciar la sesión."""


class AuthenticationError(CliSessionError):
    """Falló el login secundario o la elevación de privilegios."""


class CommandTimeoutError(CliSessionError):
    """El prompt no volvió después de enviar un comando."""

    def __init__(self, message: str, command: str = "", last_output: str = "",
                 partial_output: str = ""):
        super().__init__(message, command=command, last_output=last_output)
        self.partial_output = partial_output


class SessionClosedError(CliSessionError):
    """La sesión no está lista o el canal se cerró durante la espera."""

    def __init__(self, message: str, command: str = "", last_output: str = "",
                 partial_output: str = ""):
        super().__init__(message, command=command, last_output=last_output)
        self.partial_output = partial_output


class CommandSequenceError(CliSessionError):
    """
    Falló un comando dentro de una secuencia.
    `outputs` contiene las salidas de los comandos que sí terminaron.
    """

    def __init__(self, message: str, command: str = "", last_output: str = "",
                 outputs: Optional[List[str]] = None):
        super().__init__(message, command=command, last_output=last_output)
        self.outputs = list(outputs or [])


class CapabilityUnavailableError(OltError):
    """Ninguna capacidad declarada para la operación está disponible."""

    def __init__(self, operation: str, missing: List[Capability]):
        if missing:
            names = ", ".join(c.value for c in missing)
            message = f"Operación '{operation}' requiere una capacidad no disponible: {names}"
        else:
            message = f"Operación '{operation}' no soportada por esta marca"
        super().__init__(message)
        self.operation = operation
        self.missing = list(missing)


class OperationFailedError(OltError):
    """Todas las capacidades intentadas para la operación fallaron."""

    def __init__(self, operation: str, attempts: List[Tuple[Capability, Exception]]):
        detail = "; ".join(f"{cap.value}: {exc}" for cap, exc in attempts)
        super().__init__(f"Operación '{operation}' falló en todas las capacidades ({detail})")
        self.operation = operation
        self.attempts = list(attempts)


class OltConfigError(OltError):
    """
    El equipo rechazó (o rechazaría) un cambio de configuración.
    `code` identifica el motivo: invalid_vlan_id, vlan_exists, vlan_not_found,
    vlan_has_service_ports, onu_not_found. `hint` sugiere qué hacer.
    """

    def __init__(self, code: str, message: str, hint: str = "", raw_output: str = ""):
        super().__init__(message)
        self.code = code
        self.hint = hint
        self.raw_output = raw_output


class VerifiedOperationError(OltError):
    """Falló el envío de un paso de una operación verificada. `result` trae el avance."""

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result


class VerificationInconclusive(OltError):
    """La acción se envió sin error pero su efecto nunca se confirmó."""

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result


# ================================================================
# CAPACIDADES
# ================================================================

class CliExecutor(ABC):
    """Capacidad de ejecución interactiva (CLI sobre SSH)."""

    @abstractmethod
    async def exec_command(self, command: str) -> str:
        """Ejecuta un comando CLI y retorna la salida limpia."""

    @abstractmethod
    async def exec_commands(self, commands: List[str]) -> List[str]:
        """
        Ejecuta comandos en secuencia.
        Se detiene en el primer error (CommandSequenceError con salidas parciales).
        """


class SnmpExecutor(ABC):
    """Capacidad de consulta masiva/telemetría (SNMP)."""

    @abstractmethod
    async def get_snmp(self, oid: str) -> Any:
        """Obtiene un valor por OID."""

    @abstractmethod
    async def walk_snmp(self, oid: str) -> Dict[str, Any]:
        """Recorre un subárbol. Retorna {índice relativo: valor}."""

    @abstractmethod
    async def bulk_get_snmp(self, oids: List[str]) -> Dict[str, Any]:
        """Obtiene varios OIDs en una sola petición. Retorna {oid: valor}."""


# ================================================================
# DRIVER BASE
# ================================================================

class OltDriverBase(ABC):
    """
    Clase base abstracta para drivers de protocolo y adaptadores de OLT.

    Uso:
        driver = get_olt_driver(credentials)
        async with driver:
            onus = await driver.list_unauthorized_onus()
    """

    def __init__(self, credentials: OltCredentials):
        self.credentials = credentials

    @property
    def brand(self) -> str:
        return self.credentials.brand

    @property
    def model(self) -> str:
        return self.credentials.model

    # ================================================================
    # CONEXIÓN
    # ================================================================

    @abstractmethod
    async def connect(self) -> bool:
        """Establece la conexión con la OLT."""

    @abstractmethod
    async def disconnect(self):
        """Cierra la conexión."""

    @abstractmethod
    def is_connected(self) -> bool:
        """True si la conexión está activa."""

    @abstractmethod
    async def health_check(self):
        """Consulta liviana; lanza OltError si el equipo no responde."""

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    # ================================================================
    # HELPERS
    # ================================================================

    def parse_frame_slot_port(self, fsp: str) -> tuple:
        """
        Parsea formato Frame/Slot/Port (ej: "0/4/1" → (0, 4, 1))
        """
        parts = fsp.strip().split("/")
        try:
            if len(parts) == 3:
                return int(parts[0]), int(parts[1]), int(parts[2])
            elif len(parts) == 2:
                return 0, int(parts[0]), int(parts[1])
        except ValueError:
            pass
        raise OltError(f"Formato Frame/Slot/Port inválido: {fsp}")
