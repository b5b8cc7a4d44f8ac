# tests/unit/olt/test_cli_session.py
"""
Pruebas de CliSession con canales guionados.

Cada guion es la conversación que haría la OLT: banner inicial y una
respuesta por cada write() de la sesión.
"""
import re

import pytest

from olt_gateway.services.olt.cli_session import CliSession
from olt_gateway.services.olt.olt_base import (
    AuthenticationError,
    CommandSequenceError,
    CommandTimeoutError,
    InitializationError,
    SessionClosedError,
)


async def open_session(shell, vendor="cisco", timeout=1.0, **kwargs):
    kwargs.setdefault("disable_pager", False)
    return await CliSession.open(shell, shell, vendor=vendor, timeout=timeout, **kwargs)


# ================================================================
# NEGOCIACIÓN
# ================================================================
class TestCliSessionNegotiation:
    """Login secundario, enable y detección de prompt."""

    @pytest.mark.asyncio
    async def test_prompt_directo_no_envia_credenciales(self, make_shell):
        """Banner que ya trae el prompt.

        POR QUÉ: si el equipo no pide login, no se deben mandar usuario ni contraseña.
        """
        shell = make_shell(banner="Welcome\r\nhost#")

        session = await open_session(shell, username="admin", password="s3cret")

        assert session.ready
        assert shell.sent == []

    @pytest.mark.asyncio
    async def test_login_secundario_envia_usuario_y_password_en_orden(self, make_shell):
        """Username: → Password: → prompt.

        POR QUÉ: algunos equipos piden un segundo login dentro del canal SSH.
        """
        shell = make_shell(
            banner="\r\nUsername: ",
            replies=["admin\r\nPassword: ", "\r\nhost>"],
        )

        session = await open_session(shell, username="admin", password="s3cret")

        assert session.ready
        assert shell.sent == ["admin\n", "s3cret\n"]

    @pytest.mark.asyncio
    async def test_login_rechazado_no_filtra_password(self, make_shell):
        """El equipo vuelve a pedir login.

        POR QUÉ: el error debe traer la salida del equipo pero nunca la contraseña.
        """
        shell = make_shell(
            banner="Login: ",
            replies=["admin\r\nPassword: ", "s3cret\r\nLogin incorrect\r\nLogin: "],
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await open_session(shell, username="admin", password="s3cret")

        assert "s3cret" not in str(exc_info.value)
        assert "***" in exc_info.value.last_output
        assert shell.closed

    @pytest.mark.asyncio
    async def test_login_sin_usuario_configurado(self, make_shell):
        shell = make_shell(banner="Username: ")

        with pytest.raises(AuthenticationError):
            await open_session(shell)

        assert shell.sent == []

    @pytest.mark.asyncio
    async def test_enable_con_password(self, make_shell):
        """Perfil VSOL: enable pide contraseña.

        POR QUÉ: se usa enable_password y luego se desactiva el paginador.
        """
        shell = make_shell(
            banner="\r\nOLT>",
            replies=["enable\r\nPassword: ", "\r\nOLT#", "terminal length 0\r\nOLT#"],
        )

        session = await open_session(
            shell, vendor="vsol", password="s3cret", enable_password="en4ble", disable_pager=True
        )

        assert session.ready
        assert shell.sent == ["enable\n", "en4ble\n", "terminal length 0\n"]

    @pytest.mark.asyncio
    async def test_enable_sin_password_especifico_usa_el_de_login(self, make_shell):
        shell = make_shell(
            banner="\r\nOLT>",
            replies=["enable\r\nPassword: ", "\r\nOLT#"],
        )

        await open_session(shell, vendor="vsol", password="s3cret")

        assert shell.sent == ["enable\n", "s3cret\n"]

    @pytest.mark.asyncio
    async def test_enable_rechazado(self, make_shell):
        """POR QUÉ: un '% Access denied' tras enable es error de autenticación."""
        shell = make_shell(
            banner="\r\nOLT>",
            replies=["enable\r\nPassword: ", "\r\n% Access denied\r\nOLT>"],
        )

        with pytest.raises(AuthenticationError):
            await open_session(shell, vendor="vsol", password="bad")

        assert shell.closed

    @pytest.mark.asyncio
    async def test_sin_prompt_inicial(self, make_shell):
        """POR QUÉ: sin prompt ni login la sesión no puede arrancar y libera el canal."""
        shell = make_shell(banner="booting...")

        with pytest.raises(InitializationError):
            await open_session(shell, timeout=0.05)

        assert shell.closed

    @pytest.mark.asyncio
    async def test_marca_desconocida_usa_prompt_generico(self, make_shell):
        """POR QUÉ: una marca no registrada aún debe llegar a Ready con 'host#'."""
        shell = make_shell(banner="\r\nhost#", replies=["terminal length 0\r\nhost#"])

        session = await open_session(shell, vendor="acme", disable_pager=True)

        assert session.ready
        assert session.profile.name == "default"
        assert shell.sent == ["terminal length 0\n"]

    @pytest.mark.asyncio
    async def test_prompt_personalizado(self, make_shell):
        shell = make_shell(banner="\r\nMYOLT$ ")

        session = await open_session(shell, custom_prompt=re.compile(r"MYOLT\$\s*$"))

        assert session.ready

    @pytest.mark.asyncio
    async def test_fallo_al_desactivar_paginador_no_es_fatal(self, make_shell):
        """POR QUÉ: sin 'terminal length 0' el paginador igual se maneja en execute()."""
        shell = make_shell(banner="\r\nhost#", replies=[None, "\r\nhost#"])

        session = await open_session(shell, timeout=0.05, disable_pager=True)

        assert session.ready
        assert shell.sent == ["terminal length 0\n", "\n"]

    @pytest.mark.asyncio
    async def test_respuesta_tardia_del_paginador_no_llega_al_primer_comando(self, make_shell):
        """El eco y el prompt de 'terminal length 0' llegan después del timeout.

        POR QUÉ: el primer comando del usuario debe recibir su propia salida.
        """
        shell = make_shell(
            banner="\r\nhost#",
            replies=[
                None,
                ["terminal length 0\r\nhost#", "\r\nhost#"],
                "show version\r\nModel: X\r\nhost#",
            ],
        )
        session = await open_session(shell, timeout=0.05, disable_pager=True)

        assert await session.execute("show version") == "Model: X"

    @pytest.mark.asyncio
    async def test_paginador_sin_respuesta_cierra_la_sesion(self, make_shell):
        """POR QUÉ: si el prompt no vuelve, la sesión no puede quedar como lista."""
        shell = make_shell(banner="\r\nhost#", replies=[None])

        with pytest.raises(InitializationError):
            await open_session(shell, timeout=0.05, disable_pager=True)

        assert shell.closed


# ================================================================
# EJECUCIÓN
# ================================================================
class TestCliSessionExecute:
    """execute() / execute_all()."""

    @pytest.mark.asyncio
    async def test_quita_eco_y_prompt(self, make_shell):
        """POR QUÉ: el llamador solo debe ver la salida del comando."""
        shell = make_shell(banner="\r\nhost#", replies=["show version\r\nModel: X\r\nhost#"])
        session = await open_session(shell)

        output = await session.execute("show version")

        assert output == "Model: X"
        assert shell.sent == ["show version\n"]

    @pytest.mark.asyncio
    async def test_salida_en_varios_trozos(self, make_shell):
        shell = make_shell(
            banner="\r\nhost#",
            replies=[["show ver", "sion\r\nline 1\r\n", "line 2\r\nho", "st#"]],
        )
        session = await open_session(shell)

        output = await session.execute("show version")

        assert output == "line 1\nline 2"

    @pytest.mark.asyncio
    async def test_paginador(self, make_shell):
        """Dos marcas --More-- antes del prompt.

        POR QUÉ: se envía exactamente una tecla por página y se quitan las marcas
        y los retrocesos con que el equipo las borra.
        """
        erase = "\x08" * 8 + " " * 8 + "\x08" * 8
        shell = make_shell(
            banner="\r\nhost#",
            replies=[
                "show run\r\nline1\r\nline2\r\n--More--",
                erase + "line3\r\nline4\r\n --More-- ",
                "\r          \rline5\r\nhost#",
            ],
        )
        session = await open_session(shell)

        output = await session.execute("show run")

        assert output == "line1\nline2\nline3\nline4\nline5"
        assert shell.sent == ["show run\n", " ", " "]

    @pytest.mark.asyncio
    async def test_secuencias_ansi_se_eliminan(self, make_shell):
        shell = make_shell(
            banner="\r\nhost#",
            replies=["show x\r\n\x1b[1mbold\x1b[0m\r\nhost#"],
        )
        session = await open_session(shell)

        assert await session.execute("show x") == "bold"

    @pytest.mark.asyncio
    async def test_timeout_con_salida_parcial(self, make_shell):
        """POR QUÉ: en timeout el llamador recibe lo que sí llegó."""
        shell = make_shell(banner="\r\nhost#", replies=["show x\r\nsome data"])
        session = await open_session(shell, timeout=0.05)

        with pytest.raises(CommandTimeoutError) as exc_info:
            await session.execute("show x")

        assert exc_info.value.command == "show x"
        assert "some data" in exc_info.value.partial_output

    @pytest.mark.asyncio
    async def test_timeout_resincroniza_antes_del_siguiente_comando(self, make_shell):
        """El resto de 'show x' y su prompt llegan tarde, junto al prompt del Enter.

        POR QUÉ: la salida de un comando nunca debe aparecer en el siguiente.
        """
        shell = make_shell(
            banner="\r\nhost#",
            replies=[
                "show x\r\nsome data",
                ["\r\nhost#", "\r\nhost#"],
                "show y\r\nY-OUT\r\nhost#",
            ],
        )
        session = await open_session(shell, timeout=0.05)

        with pytest.raises(CommandTimeoutError):
            await session.execute("show x")

        assert session.ready
        assert await session.execute("show y") == "Y-OUT"
        assert shell.sent == ["show x\n", "\n", "show y\n"]

    @pytest.mark.asyncio
    async def test_timeout_sin_prompt_cierra_la_sesion(self, make_shell):
        """POR QUÉ: sin resincronizar, el siguiente comando leería salida ajena."""
        shell = make_shell(banner="\r\nhost#", replies=["show x\r\nsome data"])
        session = await open_session(shell, timeout=0.05)

        with pytest.raises(CommandTimeoutError):
            await session.execute("show x")

        assert session.state == "closed"
        assert shell.closed
        with pytest.raises(SessionClosedError):
            await session.execute("show y")

    @pytest.mark.asyncio
    async def test_canal_cerrado_durante_la_espera(self, make_shell):
        shell = make_shell(banner="\r\nhost#", replies=[["partial\r\n", ""]])
        session = await open_session(shell)

        with pytest.raises(SessionClosedError):
            await session.execute("show x")

        assert session.state == "closed"
        with pytest.raises(SessionClosedError):
            await session.execute("show y")

    @pytest.mark.asyncio
    async def test_execute_all_devuelve_salidas_en_orden(self, make_shell):
        shell = make_shell(
            banner="\r\nhost#",
            replies=["a\r\nout-a\r\nhost#", "b\r\nout-b\r\nhost#"],
        )
        session = await open_session(shell)

        assert await session.execute_all(["a", "b"]) == ["out-a", "out-b"]

    @pytest.mark.asyncio
    async def test_execute_all_se_detiene_en_el_primer_error(self, make_shell):
        """POR QUÉ: el llamador necesita saber hasta dónde se avanzó."""
        shell = make_shell(
            banner="\r\nhost#",
            replies=["a\r\nout-a\r\nhost#", "b\r\nout-b\r\nhost#", None],
        )
        session = await open_session(shell, timeout=0.05)

        with pytest.raises(CommandSequenceError) as exc_info:
            await session.execute_all(["a", "b", "c", "d"])

        assert exc_info.value.outputs == ["out-a", "out-b"]
        assert exc_info.value.command == "c"
        assert isinstance(exc_info.value.__cause__, CommandTimeoutError)
        # "c" no respondió y el Enter de resincronización tampoco
        assert shell.sent == ["a\n", "b\n", "c\n", "\n"]
        assert session.state == "closed"


# ================================================================
# CIERRE
# ================================================================
class TestCliSessionClose:

    @pytest.mark.asyncio
    async def test_close_idempotente(self, make_shell):
        shell = make_shell(banner="\r\nhost#")
        session = await open_session(shell)

        session.close()
        session.close()

        assert session.state == "closed"
        assert shell.closed
        with pytest.raises(SessionClosedError):
            await session.execute("show version")
