# tests/unit/olt/test_olt_factory.py
"""Pruebas de la fábrica de adaptadores (sin I/O: solo construcción)."""
from dataclasses import replace

import pytest

from olt_gateway.services.olt import (
    OltError,
    get_olt_driver,
    get_supported_brands,
    get_vendor_capabilities,
)
from olt_gateway.services.olt.drivers import SnmpDriver, SshCliDriver
from olt_gateway.services.olt.olt_factory import normalize_brand
from olt_gateway.services.olt.vendors import VsolAdapter, ZteAdapter


class TestGetOltDriver:

    @pytest.mark.parametrize("brand,expected", [
        ("zte", ZteAdapter),
        ("ZXA10", ZteAdapter),
        ("c320", ZteAdapter),
        ("V-SOL", VsolAdapter),
        ("v1600", VsolAdapter),
    ])
    def test_alias_de_marca(self, credentials, brand, expected):
        adapter = get_olt_driver(replace(credentials, brand=brand, protocol=""))

        assert isinstance(adapter, expected)

    def test_protocolo_por_defecto_es_el_primario(self, credentials):
        """POR QUÉ: sin protocolo pedido se usa el primero de la matriz (CLI)."""
        creds = replace(credentials, brand="ZXA10", protocol="")

        adapter = get_olt_driver(creds)

        assert isinstance(adapter.base_driver, SshCliDriver)
        assert adapter.credentials.brand == "zte"
        assert adapter.credentials.protocol == "cli"
        # Las credenciales del llamador no se modifican
        assert creds.brand == "ZXA10"

    def test_alias_ssh(self, credentials):
        adapter = get_olt_driver(replace(credentials, protocol="SSH"))

        assert isinstance(adapter.base_driver, SshCliDriver)

    def test_cli_con_community_arma_snmp_secundario(self, credentials):
        adapter = get_olt_driver(replace(credentials, snmp_community="public"))

        assert isinstance(adapter.secondary_driver, SnmpDriver)

    def test_snmp_primario_arma_cli_secundario(self, credentials):
        adapter = get_olt_driver(replace(credentials, protocol="snmp", snmp_community="public"))

        assert isinstance(adapter.base_driver, SnmpDriver)
        assert isinstance(adapter.secondary_driver, SshCliDriver)

    def test_marca_desconocida(self, credentials):
        with pytest.raises(OltError) as exc_info:
            get_olt_driver(replace(credentials, brand="huawei"))

        assert "huawei" in str(exc_info.value)

    def test_protocolo_no_soportado(self, credentials):
        with pytest.raises(OltError):
            get_olt_driver(replace(credentials, protocol="telnet"))


class TestBrandInfo:

    def test_marcas_soportadas(self):
        assert set(get_supported_brands()) == {"zte", "vsol"}

    def test_capacidades(self):
        assert get_vendor_capabilities("V-SOL") == {
            "brand": "vsol",
            "primary": "cli",
            "protocols": ["cli", "snmp"],
        }

    def test_capacidades_marca_desconocida(self):
        with pytest.raises(OltError):
            get_vendor_capabilities("acme")

    def test_normalize_brand(self):
        assert normalize_brand("  C600 ") == "zte"
        assert normalize_brand("") == ""
