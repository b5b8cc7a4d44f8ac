"""
OLT Gateway - Sesión CLI interactiva
Convierte la conversación de terminal de una OLT (canal SSH ya autenticado)
en un ejecutor de comandos request/response.

Estados:
  Unauthenticated → [Login secundario] → [enable] → [modo inicial] → Ready → Closed

Cada espera de patrón tiene un único timeout. La sesión no reintenta nada:
los reintentos, si se quieren, son responsabilidad del llamador.

Uso:
    stdin, stdout, _ = await conn.open_session(term_type="vt100")
    session = await CliSession.open(stdin, stdout, vendor="vsol", timeout=30)
    output = await session.execute("show version")
    session.close()
"""
import asyncio
import logging
import re
from typing import Dict, List, NamedTuple, Optional, Pattern, Tuple

import asyncssh

from olt_gateway.services.olt.olt_base import (
    AuthenticationError,
    CliSessionError,
    CommandSequenceError,
    CommandTimeoutError,
    InitializationError,
    SessionClosedError,
)
from olt_gateway.services.olt.vendor_profiles import (
    LOGIN_PROMPT,
    PASSWORD_PROMPT,
    VendorProfile,
    lookup_vendor_profile,
)

logger = logging.getLogger("olt_session")

CMD_TIMEOUT = 30
READ_SIZE = 4096
LINE_END = "\n"
FRAGMENT_SIZE = 200
RESYNC_QUIET = 0.5   # segundos sin datos para dar por limpio el canal

_ANSI_CURSOR_LEFT = re.compile(r"\x1b\[\d*D")
_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b[()][A-Za-z0-9]")
# Lo que el paginador deja al borrar "--More--": retrocesos, \r y espacios
_PAGER_ERASE = re.compile(r"^(?:\x08|\r(?!\n))+[ \t]*(?:\x08|\r(?!\n))*")
_DENIED = re.compile(
    r"(access denied|permission denied|authentication failed|bad password|incorrect)",
    re.IGNORECASE,
)


def _strip_ansi(text: str) -> str:
    """Quita secuencias de terminal; el cursor a la izquierda cuenta como retroceso."""
    text = _ANSI_CURSOR_LEFT.sub("\x08", text)
    return _ANSI_ESCAPE.sub("", text)


class _Match(NamedTuple):
    name: str      # patrón que coincidió
    text: str      # todo lo leído hasta el match (incluye la línea del match)
    before: str    # lo leído antes del inicio del match


class CliSession:
    """
    Una conversación CLI serializada con una OLT.
    No compartir entre tareas concurrentes: un execute() a la vez.
    """

    def __init__(
        self,
        stdin,
        stdout,
        profile: VendorProfile,
        timeout: float = CMD_TIMEOUT,
        secrets: Tuple[str, ...] = (),
    ):
        self._stdin = stdin
        self._stdout = stdout
        self._buffer = ""
        self._secrets = tuple(s for s in secrets if s)
        self.profile = profile
        self.timeout = timeout
        self.state = "unauthenticated"
        self._channel_open = True

    # ================================================================
    # CONSTRUCCIÓN
    # ================================================================

    @classmethod
    async def open(
        cls,
        stdin,
        stdout,
        vendor: str = "",
        timeout: float = CMD_TIMEOUT,
        username: str = "",
        password: str = "",
        enable_password: str = "",
        disable_pager: bool = True,
        custom_prompt: Optional[Pattern] = None,
    ) -> "CliSession":
        """
        Abre la sesión sobre un canal ya autenticado y la deja lista.

        Si el equipo pide un segundo login (ej: V-SOL), usa username/password.
        Si la marca requiere "enable" y el equipo pide contraseña, usa
        enable_password (o password si no hay una específica).

        Raises:
            InitializationError: no apareció prompt ni login
            AuthenticationError: login secundario o enable rechazados
        """
        profile = lookup_vendor_profile(vendor, custom_prompt)
        session = cls(
            stdin,
            stdout,
            profile=profile,
            timeout=timeout,
            secrets=(password, enable_password),
        )

        ready = False
        try:
            await session._negotiate(username, password, enable_password)
            ready = True
        finally:
            if not ready:
                session.close()

        if disable_pager:
            await session._disable_pager()

        return session

    async def _negotiate(self, username: str, password: str, enable_password: str):
        prompt = self.profile.prompt

        try:
            first = await self._expect({"login": LOGIN_PROMPT, "prompt": prompt})
        except CliSessionError as e:
            raise InitializationError(
                "No se detectó prompt ni login inicial",
                last_output=e.last_output,
            ) from e

        if first.name == "login":
            await self._secondary_login(username, password)

        if self.profile.escalation_command:
            await self._escalate(enable_password or password)

        if self.profile.mode_entry_command:
            self.state = "mode_entry"
            command = self.profile.mode_entry_command
            self._send(command + LINE_END, command=command)
            try:
                await self._expect({"prompt": prompt}, command=command)
            except CliSessionError as e:
                raise InitializationError(
                    f"No se pudo entrar al modo inicial con {command!r}",
                    command=command,
                    last_output=e.last_output,
                ) from e

        self.state = "ready"
        logger.info(f"Sesión CLI lista (perfil {self.profile.name})")

    async def _secondary_login(self, username: str, password: str):
        """Segundo login que algunos equipos piden después del SSH."""
        self.state = "secondary_login"
        if not username:
            raise AuthenticationError("El equipo pidió login pero no hay usuario configurado")

        self._send(username + LINE_END)
        try:
            await self._expect({"password": PASSWORD_PROMPT})
        except CliSessionError as e:
            raise AuthenticationError(
                "No apareció el prompt de contraseña tras enviar el usuario",
                last_output=e.last_output,
            ) from e

        self._send(password + LINE_END)
        try:
            reply = await self._expect({"login": LOGIN_PROMPT, "prompt": self.profile.prompt})
        except CliSessionError as e:
            raise AuthenticationError(
                "No se alcanzó el prompt después del login",
                last_output=e.last_output,
            ) from e

        if reply.name == "login":
            raise AuthenticationError(
                "Login secundario rechazado",
                last_output=self._fragment(reply.text),
            )
        logger.debug("Login secundario completado")

    async def _escalate(self, secret: str):
        """Elevación de privilegios (ej: enable). Puede o no pedir contraseña."""
        self.state = "privilege_escalation"
        command = self.profile.escalation_command
        prompt = self.profile.prompt

        self._send(command + LINE_END, command=command)
        try:
            reply = await self._expect({"password": PASSWORD_PROMPT, "prompt": prompt}, command=command)
            if reply.name == "password":
                self._send(secret + LINE_END)
                reply = await self._expect({"password": PASSWORD_PROMPT, "prompt": prompt}, command=command)
        except CliSessionError as e:
            raise AuthenticationError(
                f"Falló la elevación de privilegios con {command!r}",
                command=command,
                last_output=e.last_output,
            ) from e

        if reply.name == "password" or _DENIED.search(reply.text):
            raise AuthenticationError(
                f"Contraseña de {command!r} rechazada",
                command=command,
                last_output=self._fragment(reply.text),
            )

    async def _disable_pager(self):
        """
        Desactiva la paginación. Si falla, se registra y se sigue,
        salvo que la sesión haya quedado cerrada.
        """
        command = self.profile.pager_disable_command
        try:
            await self.execute(command)
        except CliSessionError as e:
            if not self.ready:
                raise InitializationError(
                    f"La sesión se cerró al desactivar el paginador con {command!r}",
                    command=command,
                    last_output=e.last_output,
                ) from e
            logger.warning(f"No se pudo desactivar el paginador con {command!r}: {e}")

    # ================================================================
    # EJECUCIÓN
    # ================================================================

    @property
    def ready(self) -> bool:
        return self.state == "ready"

    async def execute(self, command: str) -> str:
        """
        Envía un comando y espera el prompt.
        Si aparece el paginador ("--More--") envía la tecla de continuación
        y sigue acumulando, sin límite de páginas; cada espera tiene su timeout.

        Returns:
            Salida sin el eco del comando ni la línea final del prompt.

        Raises:
            CommandTimeoutError: el prompt no volvió (trae partial_output). Antes de
                propagarlo la sesión se resincroniza; si no puede, queda cerrada.
            SessionClosedError: sesión no lista o canal cerrado
        """
        if not self.ready:
            raise SessionClosedError("La sesión CLI no está lista", command=command)

        self._send(command + LINE_END, command=command)

        try:
            collected, pages = await self._collect(command)
        except CommandTimeoutError:
            await self._resync(command)
            raise

        if pages:
            logger.debug(f"{command!r}: {pages} páginas")
        return self._clean_output(collected, command)

    async def _collect(self, command: str) -> Tuple[str, int]:
        """Acumula la salida hasta el prompt, avanzando el paginador."""
        collected = ""
        pages = 0
        while True:
            match = await self._expect(
                {"prompt": self.profile.prompt, "pager": self.profile.pager},
                command=command,
                collected=collected,
            )
            piece = match.before if match.name == "pager" else match.text
            if pages:
                piece = _PAGER_ERASE.sub("", piece, count=1)
            collected += piece

            if match.name == "prompt":
                return collected, pages

            pages += 1
            self._send(self.profile.continue_key, command=command)

    async def _resync(self, command: str):
        """
        Tras un timeout la salida atrasada del comando puede seguir llegando.
        Se descarta todo hasta un prompt nuevo y hasta que el canal quede en
        silencio. Si el prompt no vuelve, la sesión se cierra.
        """
        self._buffer = ""
        try:
            self._send(LINE_END, command=command)
            await self._collect(command)
            await self._drain(command)
        except CliSessionError as e:
            logger.warning(f"Sesión CLI sin prompt tras el timeout de {command!r}, se cierra: {e}")
            self.close()
            return
        logger.debug(f"Sesión CLI resincronizada tras el timeout de {command!r}")

    async def _drain(self, command: str):
        """Descarta lo que llegue hasta un intervalo sin datos."""
        quiet = min(RESYNC_QUIET, self.timeout)
        while True:
            try:
                chunk = await asyncio.wait_for(self._stdout.read(READ_SIZE), timeout=quiet)
            except asyncio.TimeoutError:
                self._buffer = ""
                return
            except (asyncssh.Error, OSError) as e:
                raise SessionClosedError("Error leyendo del canal", command=command) from e
            if not chunk:
                raise SessionClosedError("El canal se cerró esperando respuesta del equipo", command=command)

    async def execute_all(self, commands: List[str]) -> List[str]:
        """
        Ejecuta los comandos en orden. Se detiene en el primer error:
        CommandSequenceError.outputs trae las salidas que alcanzaron a completarse.
        """
        outputs: List[str] = []
        for command in commands:
            try:
                outputs.append(await self.execute(command))
            except CliSessionError as e:
                raise CommandSequenceError(
                    f"Falló el comando {command!r} ({type(e).__name__}) "
                    f"después de {len(outputs)} de {len(commands)}",
                    command=command,
                    last_output=e.last_output,
                    outputs=outputs,
                ) from e
        return outputs

    def close(self):
        """Libera el canal. Idempotente; una lectura pendiente recibe EOF."""
        self.state = "closed"
        if not self._channel_open:
            return
        self._channel_open = False
        try:
            self._stdin.close()
        except (asyncssh.Error, OSError) as e:
            logger.debug(f"Error cerrando canal CLI: {e}")

    # ================================================================
    # HELPERS INTERNOS
    # ================================================================

    def _send(self, data: str, command: str = ""):
        """Escribe en el canal. command solo se usa para el mensaje de error."""
        try:
            self._stdin.write(data)
        except (asyncssh.Error, OSError) as e:
            self.state = "closed"
            raise SessionClosedError("No se pudo escribir en el canal", command=command) from e

    async def _expect(
        self,
        patterns: Dict[str, Pattern],
        command: str = "",
        collected: str = "",
    ) -> _Match:
        """
        Lee hasta que alguno de los patrones coincida con la última línea recibida.
        Los patrones se prueban por separado, en el orden del dict.
        Al coincidir consume todo el buffer.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        while True:
            text = _strip_ansi(self._buffer)
            line_start = text.rfind("\n") + 1
            last_line = text[line_start:].replace("\r", "").replace("\x08", "")

            for name, pattern in patterns.items():
                match = pattern.search(last_line)
                if match:
                    head = last_line[:match.start()]
                    if not head.strip():
                        head = ""
                    self._buffer = ""
                    return _Match(name, text, text[:line_start] + head)

            remaining = deadline - loop.time()
            try:
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                chunk = await asyncio.wait_for(self._stdout.read(READ_SIZE), timeout=remaining)
            except asyncio.TimeoutError as e:
                partial = collected + text
                raise CommandTimeoutError(
                    f"Timeout de {self.timeout}s esperando {'/'.join(patterns)}"
                    + (f" tras {command!r}" if command else ""),
                    command=command,
                    last_output=self._fragment(partial),
                    partial_output=partial,
                ) from e
            except (asyncssh.Error, OSError) as e:
                self.state = "closed"
                partial = collected + text
                raise SessionClosedError(
                    "Error leyendo del canal",
                    command=command,
                    last_output=self._fragment(partial),
                    partial_output=partial,
                ) from e

            if not chunk:
                self.state = "closed"
                partial = collected + text
                raise SessionClosedError(
                    "El canal se cerró esperando respuesta del equipo",
                    command=command,
                    last_output=self._fragment(partial),
                    partial_output=partial,
                )
            self._buffer += chunk

    def _clean_output(self, output: str, command: str) -> str:
        """Quita eco del comando (primera línea) y prompt final (última línea)."""
        output = output.replace("\r\n", "\n").replace("\x08", "").replace("\r", "")
        lines = output.split("\n")

        echo = command.strip()
        if lines and echo and echo in lines[0]:
            lines = lines[1:]
        if lines and self.profile.prompt.search(lines[-1].strip()):
            lines = lines[:-1]

        return "\n".join(lines).strip()

    def _fragment(self, text: str) -> str:
        """Último trozo de salida para mensajes de error, sin credenciales."""
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text[-FRAGMENT_SIZE:]
