# tests/unit/olt/test_snmp_driver.py
"""Pruebas de conversión de valores SNMP y construcción del driver."""
import pytest
from pysnmp.proto.rfc1902 import (
    Counter64,
    Integer32,
    IpAddress,
    OctetString,
    TimeTicks,
)
from pysnmp.proto.rfc1905 import NoSuchInstance, NoSuchObject

from olt_gateway.services.olt.drivers.snmp_driver import (
    SnmpDriver,
    convert_snmp_value,
    oid_suffix,
)
from olt_gateway.services.olt.olt_base import OltCredentials, OltError


class TestConvertSnmpValue:

    def test_octet_string_utf8(self):
        assert convert_snmp_value(OctetString("VSOL00A1B2C3")) == "VSOL00A1B2C3"

    def test_octet_string_binario_usa_hex(self):
        assert convert_snmp_value(OctetString(b"\xff\xfe")).startswith("0x")

    @pytest.mark.parametrize("value,expected", [
        (Integer32(-5), -5),
        (TimeTicks(12345), 12345),
        (Counter64(2 ** 40), 2 ** 40),
    ])
    def test_enteros(self, value, expected):
        assert convert_snmp_value(value) == expected

    def test_ip(self):
        assert convert_snmp_value(IpAddress("10.0.0.1")) == "10.0.0.1"

    @pytest.mark.parametrize("value", [NoSuchObject(""), NoSuchInstance("")])
    def test_sin_valor(self, value):
        """POR QUÉ: un OID inexistente se reporta como None, no como texto."""
        assert convert_snmp_value(value) is None


class TestOidSuffix:

    def test_indice_relativo(self):
        assert oid_suffix("1.3.6.1.4.1.37950.1", "1.3.6.1.4.1.37950.1.5.12") == "5.12"

    def test_ignora_puntos_iniciales(self):
        assert oid_suffix(".1.3.6", "1.3.6.7") == "7"

    def test_fuera_del_subarbol(self):
        assert oid_suffix("1.3.6.1", "1.3.6.10.2") == "1.3.6.10.2"


class TestSnmpDriver:

    def test_version_invalida(self):
        with pytest.raises(OltError):
            SnmpDriver(OltCredentials(host="10.0.0.1", snmp_version="5"))

    def test_metadata_tiene_prioridad(self):
        creds = OltCredentials(
            host="10.0.0.1",
            snmp_community="public",
            metadata={"snmp_community": "private", "snmp_version": "1"},
        )

        driver = SnmpDriver(creds)

        assert driver.community == "private"
        assert driver.version == "1"

    @pytest.mark.asyncio
    async def test_sin_conectar_no_consulta(self):
        driver = SnmpDriver(OltCredentials(host="10.0.0.1", snmp_community="public"))

        assert not driver.is_connected()
        with pytest.raises(OltError):
            await driver.bulk_get_snmp(["1.3.6.1.2.1.1.1.0"])
        with pytest.raises(OltError):
            await driver.walk_snmp("1.3.6.1.2.1.1")
