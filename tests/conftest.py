# tests/conftest.py
"""
Fixtures compartidos: canal de terminal guionado y drivers falsos.
"""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from olt_gateway.services.olt.olt_base import (
    CliExecutor,
    OltCredentials,
    OltDriverBase,
    OltError,
    SnmpExecutor,
)


class FakeShell:
    """
    Canal stdin/stdout falso.

    El banner se entrega al inicio; cada write() encola la siguiente respuesta
    del guion (un str, una lista de trozos, o None para no responder nada).
    close() entrega EOF a la lectura pendiente.
    """

    def __init__(self, banner: str = "", replies: Optional[List[Any]] = None):
        self.sent: List[str] = []
        self.closed = False
        self._replies = list(replies or [])
        self._queue: asyncio.Queue = asyncio.Queue()
        if banner:
            self._queue.put_nowait(banner)

    # stdin
    def write(self, data: str):
        if self.closed:
            raise BrokenPipeError("canal cerrado")
        self.sent.append(data)
        if not self._replies:
            return
        reply = self._replies.pop(0)
        if reply is None:
            return
        for chunk in reply if isinstance(reply, list) else [reply]:
            self._queue.put_nowait(chunk)

    def close(self):
        if not self.closed:
            self.closed = True
            self._queue.put_nowait("")

    # stdout
    async def read(self, n: int = -1) -> str:
        return await self._queue.get()


class FakeCliDriver(OltDriverBase, CliExecutor):
    """Driver CLI en memoria: responde según un dict comando → salida."""

    def __init__(self, credentials: OltCredentials, outputs: Optional[Dict[str, Any]] = None):
        super().__init__(credentials)
        self.outputs = dict(outputs or {})
        self.commands: List[str] = []
        self.connected = False
        self.fail_connect: Optional[Exception] = None

    async def connect(self) -> bool:
        if self.fail_connect:
            raise self.fail_connect
        self.connected = True
        return True

    async def disconnect(self):
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    async def health_check(self):
        await self.exec_command("show version")

    async def exec_command(self, command: str) -> str:
        self.commands.append(command)
        output = self.outputs.get(command, "")
        if isinstance(output, Exception):
            raise output
        if isinstance(output, list):
            # Salidas sucesivas para el mismo comando; la última se repite
            return output.pop(0) if len(output) > 1 else output[0]
        return output

    async def exec_commands(self, commands: List[str]) -> List[str]:
        return [await self.exec_command(c) for c in commands]


class FakeSnmpDriver(OltDriverBase, SnmpExecutor):
    """Driver SNMP en memoria: values = {oid: valor}, tables = {oid_base: {índice: valor}}."""

    instances: List["FakeSnmpDriver"] = []

    def __init__(self, credentials: OltCredentials):
        super().__init__(credentials)
        self.values: Dict[str, Any] = {}
        self.tables: Dict[str, Dict[str, Any]] = {}
        self.connected = False
        self.fail_connect: Optional[Exception] = None
        self.fail_all: Optional[Exception] = None
        FakeSnmpDriver.instances.append(self)

    async def connect(self) -> bool:
        if self.fail_connect:
            raise self.fail_connect
        self.connected = True
        return True

    async def disconnect(self):
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    async def health_check(self):
        await self.get_snmp("1.3.6.1.2.1.1.1.0")

    async def get_snmp(self, oid: str) -> Any:
        return (await self.bulk_get_snmp([oid]))[oid]

    async def bulk_get_snmp(self, oids: List[str]) -> Dict[str, Any]:
        if self.fail_all:
            raise self.fail_all
        return {oid: self.values.get(oid) for oid in oids}

    async def walk_snmp(self, oid: str) -> Dict[str, Any]:
        if self.fail_all:
            raise self.fail_all
        if oid not in self.tables:
            raise OltError(f"sin tabla {oid}")
        return dict(self.tables[oid])


@pytest.fixture
def credentials():
    return OltCredentials(
        host="10.0.0.1",
        ssh_username="admin",
        ssh_password="s3cret",
        brand="vsol",
        protocol="cli",
    )


@pytest.fixture
def fake_snmp_class():
    FakeSnmpDriver.instances = []
    yield FakeSnmpDriver
    FakeSnmpDriver.instances = []


@pytest.fixture
def make_shell():
    """Fábrica de FakeShell (crear dentro del test async)."""
    return FakeShell


@pytest.fixture
def fake_cli_class():
    return FakeCliDriver
