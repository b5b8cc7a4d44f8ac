"""
OLT Gateway - Driver CLI (SSH)
Abre la conexión SSH con asyncssh y entrega el canal a CliSession,
que se encarga del prompt, login secundario, enable y paginador.

Implementa la capacidad CliExecutor.
"""
import asyncio
import logging
from typing import List, Optional

import asyncssh

from olt_gateway.config import get_settings
from olt_gateway.services.olt.cli_session import CliSession
from olt_gateway.services.olt.olt_base import (
    CliExecutor,
    CliSessionError,
    OltCredentials,
    OltDriverBase,
    OltError,
)

logger = logging.getLogger("olt_cli")


class SshCliDriver(OltDriverBase, CliExecutor):
    """
    Driver de protocolo CLI sobre SSH.
    No conoce comandos de ninguna marca: eso lo ponen los adaptadores.
    """

    def __init__(self, credentials: OltCredentials):
        if not credentials.host:
            raise OltError("El driver CLI requiere host")
        super().__init__(credentials)
        self._connection = None
        self._session: Optional[CliSession] = None

    # ================================================================
    # CONEXIÓN SSH
    # ================================================================

    async def connect(self) -> bool:
        """Conecta por SSH y deja la sesión interactiva lista."""
        settings = get_settings()
        creds = self.credentials
        try:
            # asyncssh responde keyboard-interactive con la misma contraseña
            self._connection = await asyncio.wait_for(
                asyncssh.connect(
                    host=creds.host,
                    port=creds.ssh_port,
                    username=creds.ssh_username,
                    password=creds.ssh_password,
                    known_hosts=settings.OLT_KNOWN_HOSTS,
                    connect_timeout=settings.OLT_CONNECT_TIMEOUT,
                ),
                timeout=settings.OLT_CONNECT_TIMEOUT + 5
            )

            stdin, stdout, _ = await self._connection.open_session(term_type="vt100")

            self._session = await CliSession.open(
                stdin,
                stdout,
                vendor=creds.brand,
                timeout=creds.timeout or settings.OLT_CLI_TIMEOUT,
                username=creds.ssh_username,
                password=creds.ssh_password,
                enable_password=creds.enable_password,
                disable_pager=settings.OLT_DISABLE_PAGER,
            )
            logger.info(f"Conectado por SSH a OLT {creds.brand} {creds.host}:{creds.ssh_port}")
            return True

        except CliSessionError:
            self._close_connection()
            raise
        except asyncio.TimeoutError as e:
            self._close_connection()
            raise OltError(f"Timeout conectando por SSH a {creds.host}") from e
        except (asyncssh.Error, OSError) as e:
            self._close_connection()
            raise OltError(f"Error conectando por SSH a {creds.host}: {e}") from e

    async def disconnect(self):
        """Cierra la sesión y la conexión SSH."""
        if self._session:
            self._session.close()
            self._session = None
        if self._connection:
            self._close_connection()
            logger.info(f"Desconectado de OLT {self.credentials.host}")

    def is_connected(self) -> bool:
        return self._connection is not None and self._session is not None and self._session.ready

    async def health_check(self):
        await self.exec_command("show version")

    def _close_connection(self):
        if self._connection:
            self._connection.close()
            self._connection = None

    # ================================================================
    # CliExecutor
    # ================================================================

    async def exec_command(self, command: str) -> str:
        if not self._session:
            raise OltError("No hay conexión SSH activa")
        return await self._session.execute(command)

    async def exec_commands(self, commands: List[str]) -> List[str]:
        if not self._session:
            raise OltError("No hay conexión SSH activa")
        return await self._session.execute_all(commands)
