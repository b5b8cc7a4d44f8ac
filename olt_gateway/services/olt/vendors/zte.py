"""
OLT Gateway - Adaptador ZTE (ZXA10 C300, C320, C600)

Comandos principales:
  - show gpon onu uncfg → ONUs no autorizadas
  - show gpon onu state gpon-olt_1/X/X → Estado ONUs
  - show gpon onu optical-info gpon-onu_1/X/X:X → Señal óptica
  - conf t → modo configuración
  - interface gpon-olt_1/X/X → seleccionar puerto PON
  - onu X type Y sn Z → autorizar ONU
  - pon-onu-mng gpon-onu_1/X/X:X → reboot / service-port
"""
import logging
import re
from typing import Any, Dict, List, Optional

from olt_gateway.services.olt.olt_adapter import OltAdapter
from olt_gateway.services.olt.olt_base import Capability, CliExecutor, OnuInfo
from olt_gateway.services.olt.verified_operation import (
    RestartResult,
    VerificationPhase,
    run_verified_operation,
)

logger = logging.getLogger("olt_zte")

# gpon-onu_1/2/3:4  enable  enable  working  1(GPON)
_STATE_ROW = re.compile(r'gpon-onu_\d+/(\d+)/(\d+):(\d+)\s+(\S+)\s+(\S+)\s+(\S+)')


def olt_ref(slot: int, pon_port: int) -> str:
    return f"gpon-olt_1/{slot}/{pon_port}"


def onu_ref(slot: int, pon_port: int, onu_id: int) -> str:
    return f"gpon-onu_1/{slot}/{pon_port}:{onu_id}"


class ZteAdapter(OltAdapter):
    """
    Adaptador para OLTs ZTE.
    Todo lo de ONUs va por CLI; SNMP (si hay community) solo cubre el estado de la OLT.
    """

    vendor_name = "zte"
    display_name = "ZTE"
    default_pon_ports = [(1, port) for port in range(1, 17)]

    async def _olt_status_cli(self, cli: CliExecutor) -> Dict[str, Any]:
        status = await super()._olt_status_cli(cli)
        hostname_output = await cli.exec_command("show hostname")
        status["hostname"] = self._parse_hostname(hostname_output)
        return status

    # ================================================================
    # ONUs NO AUTORIZADAS
    # ================================================================

    async def list_unauthorized_onus(self) -> List[OnuInfo]:
        """
        Lista ONUs no autorizadas.
        Comando ZTE: show gpon onu uncfg
        """
        cli = self.require(Capability.CLI, "list_unauthorized_onus")
        output = await cli.exec_command("show gpon onu uncfg")
        return self._parse_uncfg_onus(output)

    # ================================================================
    # AUTORIZAR ONU
    # ================================================================

    async def authorize_onu(
        self,
        serial_number: str,
        slot: int,
        pon_port: int,
        onu_id: Optional[int] = None,
        onu_type: str = "",
        line_profile: str = "",
        remote_profile: str = "",
        vlan: str = "",
        description: str = ""
    ) -> Dict[str, Any]:
        """
        Autoriza una ONU en la OLT ZTE.

        Secuencia de comandos:
        1. conf t
        2. interface gpon-olt_1/{slot}/{pon_port}
        3. onu {onu_id} type {onu_type} sn {serial}
        4. exit
        5. (Opcional, requiere onu_id) tcont/gemport y service-port
        6. exit
        """
        cli = self.require(Capability.CLI, "authorize_onu")

        if onu_id:
            cmd = f"onu {onu_id} type {onu_type} sn {serial_number}"
        else:
            cmd = f"onu auto type {onu_type} sn {serial_number}"
        if description:
            cmd += f" desc \"{description}\""

        commands = ["configure terminal", f"interface {olt_ref(slot, pon_port)}", cmd, "exit"]
        if onu_id:
            commands += self._profile_commands(onu_ref(slot, pon_port, onu_id), line_profile, vlan)
        commands.append("exit")

        outputs = await cli.exec_commands(commands)
        auth_output = outputs[2]
        assigned_id = onu_id or self._parse_assigned_onu_id(auth_output)

        logger.info(
            f"ONU autorizada en ZTE: SN={serial_number}, "
            f"Slot={slot}, PON={pon_port}, ID={assigned_id}"
        )

        return {
            "status": "authorized",
            "serial_number": serial_number,
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": assigned_id,
            "onu_type": onu_type,
            "line_profile": line_profile,
            "remote_profile": remote_profile,
            "vlan": vlan,
            "raw_output": auth_output[:300]
        }

    def _profile_commands(self, ref: str, line_profile: str, vlan: str) -> List[str]:
        """Perfiles y VLAN de una ONU recién autorizada."""
        commands = []
        if line_profile:
            commands += [
                f"interface {ref}",
                f"tcont 1 profile {line_profile}",
                "gemport 1 tcont 1",
                "exit",
            ]
        if vlan:
            commands += [
                f"pon-onu-mng {ref}",
                f"service-port 1 vport 1 user-vlan {vlan} vlan {vlan}",
                "exit",
            ]
        return commands

    async def deauthorize_onu(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        """Elimina una ONU de la OLT ZTE."""
        cli = self.require(Capability.CLI, "deauthorize_onu")
        outputs = await cli.exec_commands([
            "configure terminal",
            f"interface {olt_ref(slot, pon_port)}",
            f"no onu {onu_id}",
            "exit",
            "exit",
        ])

        logger.info(f"ONU eliminada de ZTE: Slot={slot}, PON={pon_port}, ID={onu_id}")

        return {
            "status": "deauthorized",
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": onu_id,
            "raw_output": outputs[2][:300]
        }

    # ================================================================
    # ESTADO Y SEÑAL
    # ================================================================

    async def get_onu_status(self, slot: int, pon_port: int, onu_id: int) -> OnuInfo:
        """
        Estado de una ONU.
        Comando: show gpon onu state gpon-olt_1/{slot}/{pon_port}
        """
        cli = self.require(Capability.CLI, "get_onu_status")
        output = await cli.exec_command(f"show gpon onu state {olt_ref(slot, pon_port)}")
        return self._parse_onu_state(output, onu_id)

    async def get_onu_optical_info(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        """
        Información óptica de una ONU.
        Comando: show gpon onu optical-info gpon-onu_1/{slot}/{pon_port}:{onu_id}
        """
        cli = self.require(Capability.CLI, "get_onu_optical_info")
        output = await cli.exec_command(f"show gpon onu optical-info {onu_ref(slot, pon_port, onu_id)}")
        return self._parse_optical_info(output)

    async def list_onus_on_port(self, slot: int, pon_port: int) -> List[OnuInfo]:
        """
        Lista ONUs registradas en un puerto PON.
        Comando: show gpon onu state gpon-olt_1/{slot}/{pon_port}
        """
        cli = self.require(Capability.CLI, "list_onus_on_port")
        output = await cli.exec_command(f"show gpon onu state {olt_ref(slot, pon_port)}")
        return self._parse_all_onu_states(output, slot, pon_port)

    async def list_onus(self) -> List[OnuInfo]:
        """Recorre los puertos PON configurados (metadata["pon_ports"])."""
        cli = self.require(Capability.CLI, "list_onus")
        onus = []
        for slot, pon_port in self._pon_ports():
            output = await cli.exec_command(f"show gpon onu state {olt_ref(slot, pon_port)}")
            onus.extend(self._parse_all_onu_states(output, slot, pon_port))
        return onus

    # ================================================================
    # CONFIGURACIÓN DE SERVICIO
    # ================================================================

    async def configure_onu_service(
        self,
        slot: int,
        pon_port: int,
        onu_id: int,
        vlan: str,
        service_port: int = 1
    ) -> Dict[str, Any]:
        """
        Configura servicio VLAN en ONU ZTE.

        Comandos:
        1. conf t
        2. pon-onu-mng gpon-onu_1/{slot}/{pon_port}:{onu_id}
        3. service-port {sp} vport {sp} user-vlan {vlan} vlan {vlan}
        4. exit / exit
        """
        cli = self.require(Capability.CLI, "configure_onu_service")
        ref = onu_ref(slot, pon_port, onu_id)
        outputs = await cli.exec_commands([
            "configure terminal",
            f"pon-onu-mng {ref}",
            f"service-port {service_port} vport {service_port} user-vlan {vlan} vlan {vlan}",
            "exit",
            "exit",
        ])

        logger.info(f"Servicio configurado en ONU {ref}: VLAN {vlan}")

        return {
            "status": "configured",
            "onu_ref": ref,
            "vlan": vlan,
            "service_port": service_port,
            "raw_output": outputs[2][:300]
        }

    # ================================================================
    # REINICIO DE ONU
    # ================================================================

    async def restart_onu(self, slot: int, pon_port: int, onu_id: int) -> RestartResult:
        """
        Reinicia una ONU con 'reboot' desde pon-onu-mng.
        Se verifica que la ONU se caiga y luego que vuelva a 'working'.
        La segunda fase no envía nada: solo espera a que la ONU regrese.
        """
        cli = self.require(Capability.CLI, "restart_onu")
        ref = onu_ref(slot, pon_port, onu_id)

        async def poll_status():
            output = await cli.exec_command(f"show gpon onu state {olt_ref(slot, pon_port)}")
            return self._parse_onu_state(output, onu_id).status

        deactivate_schedule, activate_schedule = self._restart_schedules()
        phases = [
            VerificationPhase(
                name="deactivate",
                action=lambda: cli.exec_commands(
                    ["configure terminal", f"pon-onu-mng {ref}", "reboot", "exit", "exit"]
                ),
                poll=poll_status,
                predicate=lambda status: status == "offline",
                schedule=deactivate_schedule,
            ),
            VerificationPhase(
                name="activate",
                action=None,
                poll=poll_status,
                predicate=lambda status: status == "online",
                schedule=activate_schedule,
            ),
        ]

        result = await run_verified_operation(
            phases, result_factory=RestartResult.from_outcomes, sleep=self.verify_sleep
        )
        logger.info(f"Reinicio ONU {ref}: {result.status.value} (reintentos={result.retry_count})")
        return result

    # ================================================================
    # PARSERS - Interpretan la salida del CLI ZTE
    # ================================================================

    def _parse_hostname(self, output: str) -> str:
        for line in output.strip().split("\n"):
            line = line.strip()
            if line and not line.startswith("#") and "hostname" not in line.lower():
                return line
        return "ZTE-OLT"

    def _parse_uncfg_onus(self, output: str) -> List[OnuInfo]:
        """
        Parsea salida de 'show gpon onu uncfg'.
        Formato típico ZTE:
        OnuIndex                 Sn                  State
        gpon-onu_1/4/1:1         ZTEG12345678        unknown
        """
        onus = []
        for line in output.split("\n"):
            match = re.search(r'gpon-(?:olt|onu)_\d+/(\d+)/(\d+)(?::\d+)?\s+(\S+)\s+(\S+)', line.strip())
            if match:
                onus.append(OnuInfo(
                    serial_number=match.group(3),
                    slot=int(match.group(1)),
                    pon_port=int(match.group(2)),
                    status="unauthorized",
                    model=match.group(4)
                ))
        return onus

    def _parse_assigned_onu_id(self, output: str) -> Optional[int]:
        """Parsea el ID asignado a una ONU recién autorizada."""
        match = re.search(r'onu\s+(\d+)\s+type', output, re.IGNORECASE)
        if match:
            return int(match.group(1))

        match = re.search(r'ONU\s*ID\s*[=:]\s*(\d+)', output, re.IGNORECASE)
        if match:
            return int(match.group(1))

        return None

    def _state_onu(self, match: re.Match) -> OnuInfo:
        admin, phase = match.group(4).lower(), match.group(6).lower()
        return OnuInfo(
            serial_number="",
            onu_id=int(match.group(3)),
            slot=int(match.group(1)),
            pon_port=int(match.group(2)),
            status="online" if phase == "working" else "offline",
            admin_state="enabled" if admin == "enable" else "disabled"
        )

    def _parse_onu_state(self, output: str, onu_id: int) -> OnuInfo:
        """Estado de una ONU específica en 'show gpon onu state'."""
        for line in output.split("\n"):
            match = _STATE_ROW.search(line)
            if match and int(match.group(3)) == onu_id:
                return self._state_onu(match)

        return OnuInfo(serial_number="", onu_id=onu_id, status="unknown")

    def _parse_all_onu_states(self, output: str, slot: int, pon_port: int) -> List[OnuInfo]:
        onus = []
        for line in output.split("\n"):
            match = _STATE_ROW.search(line)
            if match:
                onus.append(self._state_onu(match))
        return onus

    def _parse_optical_info(self, output: str) -> Dict[str, Any]:
        """
        Parsea información óptica de 'show gpon onu optical-info'.
        Busca Rx Power, Tx Power, Temperature, Voltage, Bias Current.
        """
        info = {
            "rx_power": None,
            "tx_power": None,
            "temperature": None,
            "voltage": None,
            "bias_current": None,
            "distance": None,
            "raw_output": output[:500]
        }

        # Rx/Tx optical power (dBm)
        match = re.search(r'Rx\s*(?:optical\s*)?power[:\s]+(-?\d+\.?\d*)', output, re.IGNORECASE)
        if match:
            info["rx_power"] = float(match.group(1))

        match = re.search(r'Tx\s*(?:optical\s*)?power[:\s]+(-?\d+\.?\d*)', output, re.IGNORECASE)
        if match:
            info["tx_power"] = float(match.group(1))

        match = re.search(r'[Tt]emperature[:\s]+(-?\d+\.?\d*)', output)
        if match:
            info["temperature"] = float(match.group(1))

        match = re.search(r'[Vv]oltage[:\s]+(\d+\.?\d*)', output)
        if match:
            info["voltage"] = float(match.group(1))

        match = re.search(r'[Bb]ias\s*[Cc]urrent[:\s]+(\d+\.?\d*)', output)
        if match:
            info["bias_current"] = float(match.group(1))

        return info
