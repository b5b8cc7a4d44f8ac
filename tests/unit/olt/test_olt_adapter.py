# tests/unit/olt/test_olt_adapter.py
"""
Pruebas del adaptador base: drivers secundarios, conexión y despacho por capacidad.
"""
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from olt_gateway.services.olt.olt_adapter import (
    OID_SYS_NAME,
    OID_SYS_UPTIME,
    OltAdapter,
)
from olt_gateway.services.olt.drivers.snmp_driver import OID_SYS_DESCR
from olt_gateway.services.olt.olt_base import (
    Capability,
    CapabilityUnavailableError,
    OltError,
    OperationFailedError,
)


# ================================================================
# FIXTURES
# ================================================================

@pytest.fixture
def adapter_class(fake_snmp_class, fake_cli_class):
    """Adaptador de prueba cuyos secundarios son drivers en memoria."""

    class DemoAdapter(OltAdapter):
        vendor_name = "demo"
        display_name = "Demo"
        default_pon_ports = [(0, 1), (0, 2)]
        snmp_driver_class = fake_snmp_class
        cli_driver_class = fake_cli_class

    return DemoAdapter


@pytest.fixture
def snmp_credentials(credentials):
    return replace(credentials, protocol="snmp", snmp_community="public")


@pytest.fixture
def cli_adapter(adapter_class, fake_cli_class, credentials):
    """CLI primario + SNMP secundario."""
    creds = replace(credentials, snmp_community="public")
    return adapter_class(fake_cli_class(creds, {"show version": "V1600G1"}), creds)


async def ok(executor):
    return ("ok", executor)


async def boom(executor):
    raise OltError("falló")


# ================================================================
# DRIVERS SECUNDARIOS
# ================================================================

class TestSecondaryDriver:

    def test_cli_con_community_crea_snmp(self, adapter_class, fake_cli_class, fake_snmp_class, credentials):
        """POR QUÉ: con community configurada el monitoreo puede ir por SNMP."""
        creds = replace(credentials, snmp_community="public", secondary_port=1161)

        adapter = adapter_class(fake_cli_class(creds), creds)

        (snmp,) = fake_snmp_class.instances
        assert adapter.secondary_driver is snmp
        assert adapter.snmp_executor is snmp
        assert snmp.credentials.snmp_port == 1161
        assert snmp.credentials.protocol == "snmp"
        assert snmp.credentials.host == "10.0.0.1"

    def test_community_desde_metadata(self, adapter_class, fake_cli_class, fake_snmp_class, credentials):
        creds = replace(credentials, metadata={"snmp_community": "private"})

        adapter_class(fake_cli_class(creds), creds)

        (snmp,) = fake_snmp_class.instances
        assert snmp.credentials.snmp_community == "private"
        assert snmp.credentials.snmp_port == 161

    def test_cli_sin_community_no_crea_secundario(self, adapter_class, fake_cli_class, fake_snmp_class, credentials):
        adapter = adapter_class(fake_cli_class(credentials), credentials)

        assert adapter.secondary_driver is None
        assert adapter.snmp_executor is None
        assert fake_snmp_class.instances == []

    def test_snmp_con_credenciales_crea_cli(self, adapter_class, fake_snmp_class, fake_cli_class, snmp_credentials):
        creds = replace(snmp_credentials, metadata={"cli_host": "10.0.0.2", "cli_port": "2222"})

        adapter = adapter_class(fake_snmp_class(creds), creds)

        cli = adapter.secondary_driver
        assert isinstance(cli, fake_cli_class)
        assert adapter.cli_executor is cli
        assert cli.credentials.host == "10.0.0.2"
        assert cli.credentials.ssh_port == 2222
        assert cli.credentials.protocol == "cli"

    def test_snmp_sin_credenciales_cli(self, adapter_class, fake_snmp_class, snmp_credentials):
        creds = replace(snmp_credentials, ssh_password="")

        adapter = adapter_class(fake_snmp_class(creds), creds)

        assert adapter.secondary_driver is None
        assert adapter.cli_executor is None


# ================================================================
# CONEXIÓN
# ================================================================

class TestConnection:

    @pytest.mark.asyncio
    async def test_conecta_primario_y_secundario(self, cli_adapter):
        await cli_adapter.connect()

        assert cli_adapter.base_driver.is_connected()
        assert cli_adapter.secondary_driver.is_connected()
        assert cli_adapter.capabilities() == [Capability.CLI, Capability.SNMP]

    @pytest.mark.asyncio
    async def test_error_del_primario_se_propaga(self, cli_adapter):
        cli_adapter.base_driver.fail_connect = OltError("SSH rechazado")

        with pytest.raises(OltError):
            await cli_adapter.connect()

        assert not cli_adapter.secondary_driver.is_connected()

    @pytest.mark.asyncio
    async def test_error_del_secundario_no_es_fatal(self, cli_adapter):
        """POR QUÉ: sin SNMP solo fallan las operaciones que lo necesitan."""
        cli_adapter.secondary_driver.fail_connect = OltError("UDP bloqueado")

        await cli_adapter.connect()

        assert cli_adapter.is_connected()
        assert cli_adapter.capabilities() == [Capability.CLI]

    @pytest.mark.asyncio
    async def test_desconecta_primero_el_secundario(self, cli_adapter):
        order = []
        cli_adapter.secondary_driver.disconnect = AsyncMock(
            side_effect=lambda: order.append("snmp")
        )
        cli_adapter.base_driver.disconnect = AsyncMock(
            side_effect=lambda: order.append("cli")
        )

        await cli_adapter.disconnect()

        assert order == ["snmp", "cli"]

    @pytest.mark.asyncio
    async def test_error_del_secundario_al_desconectar_se_ignora(self, cli_adapter):
        await cli_adapter.connect()
        cli_adapter.secondary_driver.disconnect = AsyncMock(side_effect=OltError("x"))

        await cli_adapter.disconnect()

        assert not cli_adapter.base_driver.is_connected()


# ================================================================
# DESPACHO
# ================================================================

class TestDispatch:

    @pytest.mark.asyncio
    async def test_usa_la_primera_capacidad_disponible(self, cli_adapter):
        await cli_adapter.connect()

        result = await cli_adapter.dispatch(
            "op", [(Capability.SNMP, ok), (Capability.CLI, ok)]
        )

        assert result == ("ok", cli_adapter.secondary_driver)

    @pytest.mark.asyncio
    async def test_fallback_a_la_siguiente(self, cli_adapter):
        """POR QUÉ: si SNMP falla, la misma operación se intenta por CLI."""
        await cli_adapter.connect()

        result = await cli_adapter.dispatch(
            "op", [(Capability.SNMP, boom), (Capability.CLI, ok)]
        )

        assert result == ("ok", cli_adapter.base_driver)

    @pytest.mark.asyncio
    async def test_todas_fallan(self, cli_adapter):
        await cli_adapter.connect()

        with pytest.raises(OperationFailedError) as exc_info:
            await cli_adapter.dispatch("op", [(Capability.SNMP, boom), (Capability.CLI, boom)])

        assert [cap for cap, _ in exc_info.value.attempts] == [Capability.SNMP, Capability.CLI]

    @pytest.mark.asyncio
    async def test_ninguna_disponible(self, adapter_class, fake_cli_class, credentials):
        adapter = adapter_class(fake_cli_class(credentials), credentials)
        await adapter.connect()

        with pytest.raises(CapabilityUnavailableError) as exc_info:
            await adapter.dispatch("op", [(Capability.SNMP, ok)])

        assert exc_info.value.missing == [Capability.SNMP]

    @pytest.mark.asyncio
    async def test_executor_no_conectado_no_esta_disponible(self, cli_adapter):
        """POR QUÉ: un driver presente pero desconectado no debe recibir operaciones."""
        with pytest.raises(CapabilityUnavailableError):
            await cli_adapter.dispatch("op", [(Capability.CLI, ok)])

    @pytest.mark.asyncio
    async def test_require(self, adapter_class, fake_cli_class, credentials):
        adapter = adapter_class(fake_cli_class(credentials), credentials)
        await adapter.connect()

        assert adapter.require(Capability.CLI, "op") is adapter.base_driver
        with pytest.raises(CapabilityUnavailableError):
            adapter.require(Capability.SNMP, "op")


# ================================================================
# OPERACIONES COMUNES
# ================================================================

class TestCommonOperations:

    @pytest.mark.asyncio
    async def test_estado_por_snmp(self, cli_adapter):
        await cli_adapter.connect()
        cli_adapter.secondary_driver.values = {
            OID_SYS_DESCR: "V1600G1",
            OID_SYS_NAME: "olt-centro",
            OID_SYS_UPTIME: 12345600,
        }

        status = await cli_adapter.get_olt_status()

        assert status["source"] == "snmp"
        assert status["hostname"] == "olt-centro"
        assert status["uptime_seconds"] == 123456
        assert cli_adapter.base_driver.commands == []

    @pytest.mark.asyncio
    async def test_estado_cae_a_cli(self, cli_adapter):
        await cli_adapter.connect()
        cli_adapter.secondary_driver.fail_all = OltError("timeout")

        status = await cli_adapter.get_olt_status()

        assert status["source"] == "cli"
        assert status["description"] == "V1600G1"

    @pytest.mark.asyncio
    async def test_health_check(self, cli_adapter):
        await cli_adapter.connect()
        cli_adapter.secondary_driver.fail_all = OltError("timeout")

        await cli_adapter.health_check()

        assert cli_adapter.base_driver.commands == ["show version"]

    @pytest.mark.asyncio
    async def test_execute_commands(self, cli_adapter):
        await cli_adapter.connect()

        outputs = await cli_adapter.execute_commands(["show version", "show clock"])

        assert outputs == ["V1600G1", ""]

    @pytest.mark.asyncio
    async def test_test_connection_ok(self, cli_adapter):
        result = await cli_adapter.test_connection()

        assert result["connected"] is True
        assert result["capabilities"] == ["cli", "snmp"]
        assert result["brand"] == "Demo"
        assert not cli_adapter.is_connected()

    @pytest.mark.asyncio
    async def test_test_connection_fallida(self, cli_adapter):
        cli_adapter.base_driver.fail_connect = OltError("SSH rechazado")

        result = await cli_adapter.test_connection()

        assert result["connected"] is False
        assert "SSH rechazado" in result["error"]

    @pytest.mark.asyncio
    async def test_pon_ports_no_soportado_en_la_base(self, cli_adapter):
        with pytest.raises(CapabilityUnavailableError):
            await cli_adapter.get_pon_ports()


class TestPonPortsMetadata:

    @pytest.mark.parametrize("raw,expected", [
        ("", [(0, 1), (0, 2)]),
        ("0/1,0/3", [(0, 1), (0, 3)]),
        ("1/1-3", [(1, 1), (1, 2), (1, 3)]),
        ("0/0/4", [(0, 4)]),
    ])
    def test_parseo(self, adapter_class, fake_cli_class, credentials, raw, expected):
        creds = replace(credentials, metadata={"pon_ports": raw})
        adapter = adapter_class(fake_cli_class(creds), creds)

        assert adapter._pon_ports() == expected

    def test_invalido(self, adapter_class, fake_cli_class, credentials):
        creds = replace(credentials, metadata={"pon_ports": "a/b"})
        adapter = adapter_class(fake_cli_class(creds), creds)

        with pytest.raises(OltError):
            adapter._pon_ports()
