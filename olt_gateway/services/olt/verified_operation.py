"""
OLT Gateway - Operaciones verificadas
Patrón "enviar acción, confirmar efecto" para cambios de estado que tardan
(ej: reiniciar una ONU y comprobar que se cae y vuelve).

Cada fase:
  1. envía la acción (si falla → Failed, no se consulta nada)
  2. por cada paso del calendario: espera, consulta, compara
  3. termina al primer match (Verified) o al agotar pasos (UnverifiedSuccess)

Los errores de consulta se cuentan y se ignoran. Solo un envío fallido
es error duro (VerifiedOperationError); un efecto no confirmado va en el resultado.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple

from olt_gateway.services.olt.olt_base import VerificationInconclusive, VerifiedOperationError

logger = logging.getLogger("olt_verify")


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    UNVERIFIED_SUCCESS = "unverified_success"
    FAILED = "failed"


@dataclass(frozen=True)
class VerifyStep:
    """Un intento de verificación: esperar `wait` segundos y consultar."""
    wait: float


@dataclass(frozen=True)
class VerifySchedule:
    """Calendario de verificación, en orden (corto, luego más largo...)."""
    steps: Tuple[VerifyStep, ...] = ()

    @classmethod
    def from_waits(cls, waits: Iterable[float]) -> "VerifySchedule":
        return cls(tuple(VerifyStep(float(w)) for w in waits))

    def __len__(self) -> int:
        return len(self.steps)


@dataclass
class VerificationPhase:
    """
    Una fase de la operación.
    action=None significa que no hay nada que enviar (solo esperar el efecto).
    """
    name: str
    action: Optional[Callable[[], Awaitable[Any]]]
    poll: Callable[[], Awaitable[Any]]
    predicate: Callable[[Any], bool]
    schedule: VerifySchedule


@dataclass
class PhaseOutcome:
    name: str
    issued: bool = False
    verified: bool = False
    attempts: int = 0
    # Intentos sin confirmar después del primero. El intento que confirma
    # no cuenta: confirmar en el segundo da 0, no confirmar nunca da attempts-1.
    retries: int = 0
    poll_failures: int = 0
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False)

    @property
    def status(self) -> VerificationStatus:
        if not self.issued:
            return VerificationStatus.FAILED
        if self.verified:
            return VerificationStatus.VERIFIED
        return VerificationStatus.UNVERIFIED_SUCCESS


async def run_phase(
    phase: VerificationPhase,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> PhaseOutcome:
    """Ejecuta una fase. Bloquea la tarea entre consultas."""
    sleep = sleep or asyncio.sleep
    outcome = PhaseOutcome(name=phase.name)

    if phase.action is not None:
        try:
            await phase.action()
        except Exception as e:
            logger.warning(f"Fase '{phase.name}': falló el envío: {e}")
            outcome.error = str(e)
            outcome.exception = e
            return outcome
    outcome.issued = True

    for step in phase.schedule.steps:
        await sleep(step.wait)
        outcome.attempts += 1
        try:
            observed = await phase.poll()
        except Exception as e:
            outcome.poll_failures += 1
            logger.debug(f"Fase '{phase.name}': consulta {outcome.attempts} falló: {e}")
        else:
            if phase.predicate(observed):
                outcome.verified = True
                break

        if outcome.attempts > 1:
            outcome.retries += 1

    if outcome.verified:
        logger.info(f"Fase '{phase.name}' verificada en el intento {outcome.attempts}")
    elif len(phase.schedule):
        logger.warning(f"Fase '{phase.name}' enviada pero sin confirmar tras {outcome.attempts} intentos")
    return outcome


async def run_verified_operation(
    phases: List[VerificationPhase],
    result_factory: Callable[[List[PhaseOutcome]], Any] = list,
    cleanup: Optional[Callable[[], Awaitable[Any]]] = None,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> Any:
    """
    Ejecuta las fases en orden. Un envío fallido corta la secuencia.
    cleanup se ejecuta siempre; sus errores solo se registran.

    Returns:
        result_factory(outcomes)

    Raises:
        VerifiedOperationError: falló el envío de alguna fase (e.result trae el avance)
    """
    outcomes: List[PhaseOutcome] = []
    try:
        for phase in phases:
            outcome = await run_phase(phase, sleep=sleep)
            outcomes.append(outcome)
            if not outcome.issued:
                break
    finally:
        if cleanup is not None:
            try:
                await cleanup()
            except Exception as e:
                logger.warning(f"Error en limpieza de operación verificada: {e}")

    result = result_factory(outcomes)
    failed = next((o for o in outcomes if not o.issued), None)
    if failed is not None:
        raise VerifiedOperationError(
            f"Falló el envío de la fase '{failed.name}': {failed.error}",
            result=result,
        ) from failed.exception
    return result


# ================================================================
# RESULTADO DE REINICIO DE ONU
# ================================================================

@dataclass
class RestartResult:
    """Resultado de reiniciar una ONU (desactivar → activar, o reboot)."""
    success: bool = False
    deactivate_success: bool = False
    deactivate_verified: bool = False
    activate_success: bool = False
    activate_verified: bool = False
    retry_count: int = 0
    message: str = ""
    error: Optional[str] = None
    phases: List[PhaseOutcome] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: List[PhaseOutcome]) -> "RestartResult":
        result = cls(phases=list(outcomes))
        result.retry_count = sum(o.retries for o in outcomes)

        if len(outcomes) == 1 and outcomes[0].name == "reboot":
            # Un solo comando de reboot cubre ambos pasos
            reboot = outcomes[0]
            result.deactivate_success = result.activate_success = reboot.issued
            result.deactivate_verified = result.activate_verified = reboot.verified
            result.error = reboot.error
            result.success = reboot.issued
            if not reboot.issued:
                result.message = "No se pudo enviar el comando de reinicio"
            elif reboot.verified:
                result.message = "Comando de reinicio enviado y verificado"
            else:
                result.message = "Comando de reinicio enviado, sin verificación"
            return result

        deactivate = outcomes[0] if outcomes else None
        activate = outcomes[1] if len(outcomes) > 1 else None

        if deactivate is not None:
            result.deactivate_success = deactivate.issued
            result.deactivate_verified = deactivate.verified
        if activate is not None:
            result.activate_success = activate.issued
            result.activate_verified = activate.verified

        if not result.deactivate_success:
            result.error = deactivate.error if deactivate else None
            result.message = "No se pudo enviar el comando de desactivación"
            return result
        if not result.activate_success:
            result.error = activate.error if activate else None
            result.message = "Desactivada pero no se pudo enviar el comando de activación"
            return result

        result.success = True
        if result.deactivate_verified and result.activate_verified:
            result.message = "Reinicio de ONU completado y verificado"
        elif result.activate_verified:
            result.message = "Reinicio completado; no se verificó la desactivación pero la ONU está en línea"
        elif result.deactivate_verified:
            result.message = "ONU reiniciada pero aún no vuelve a estar en línea (puede tardar unos segundos)"
        else:
            result.message = "Comandos de reinicio enviados, verificación pendiente"
        return result

    @property
    def verified(self) -> bool:
        return self.deactivate_verified and self.activate_verified

    @property
    def status(self) -> VerificationStatus:
        if not self.success:
            return VerificationStatus.FAILED
        if self.verified:
            return VerificationStatus.VERIFIED
        return VerificationStatus.UNVERIFIED_SUCCESS

    def raise_if_unverified(self):
        """Para llamadores que sí quieren tratar 'sin confirmar' como error."""
        if self.status is VerificationStatus.UNVERIFIED_SUCCESS:
            raise VerificationInconclusive(self.message, result=self)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "status": self.status.value,
            "deactivate_success": self.deactivate_success,
            "deactivate_verified": self.deactivate_verified,
            "activate_success": self.activate_success,
            "activate_verified": self.activate_verified,
            "retry_count": self.retry_count,
            "message": self.message,
            "error": self.error,
        }
