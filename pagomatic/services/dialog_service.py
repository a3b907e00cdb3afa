# ==============================================================================
# CANAL DE DIÁLOGOS - Confirmaciones, preguntas y claves
# ==============================================================================
# Las operaciones que necesitan intervención humana (confirmar un borrado,
# ingresar una clave de administrador, escribir un motivo) emiten una
# DialogRequest y quedan suspendidas hasta recibir la respuesta.
#
# Un "responder" es cualquier función DialogRequest -> Optional[str]:
#   - None o cadena vacía = el usuario canceló → la operación aborta sin
#     efectos
#   - Cualquier otro texto = respuesta
#
# La capa HTTP usa static_responder() con lo que vino en el request; los
# tests usan scripted_responder() para simular una secuencia de respuestas.
# ==============================================================================

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional


class DialogKind:
    CONFIRM = 'confirm'
    PROMPT = 'prompt'
    PASSWORD = 'password'


@dataclass(frozen=True)
class DialogRequest:
    """Solicitud de interacción con el usuario."""
    kind: str
    title: str
    message: str = ''


Responder = Callable[[DialogRequest], Optional[str]]


def ask(responder: Optional[Responder], request: DialogRequest) -> Optional[str]:
    """
    Envía la solicitud al responder.

    Returns:
        Respuesta, o None si no hay responder o el usuario canceló
    """
    if responder is None:
        return None
    answer = responder(request)
    if answer is None:
        return None
    answer = str(answer)
    return answer if answer != '' else None


def confirm(responder: Optional[Responder], title: str, message: str = '') -> bool:
    """True solo si el usuario aceptó explícitamente."""
    return ask(responder, DialogRequest(DialogKind.CONFIRM, title, message)) is not None


def prompt(responder: Optional[Responder], title: str, message: str = '') -> Optional[str]:
    return ask(responder, DialogRequest(DialogKind.PROMPT, title, message))


def request_password(responder: Optional[Responder], title: str, message: str = '') -> Optional[str]:
    return ask(responder, DialogRequest(DialogKind.PASSWORD, title, message))


# ==============================================================================
# RESPONDERS PREDEFINIDOS
# ==============================================================================

def static_responder(answer: Optional[str]) -> Responder:
    """Responde siempre lo mismo (None = cancelar todo)."""
    def _respond(request: DialogRequest) -> Optional[str]:
        return answer
    return _respond


def scripted_responder(answers: Iterable[Optional[str]]) -> Responder:
    """
    Responde en orden con las respuestas dadas; al agotarse, cancela.
    Guarda las solicitudes recibidas en `responder.requests`.
    """
    pending = list(answers)
    received: List[DialogRequest] = []

    def _respond(request: DialogRequest) -> Optional[str]:
        received.append(request)
        return pending.pop(0) if pending else None

    _respond.requests = received
    return _respond


def auto_confirm(password: Optional[str] = None) -> Responder:
    """
    Acepta confirmaciones y entrega `password` a las solicitudes de clave.
    Usado por la API, donde la confirmación va implícita en el request.
    """
    def _respond(request: DialogRequest) -> Optional[str]:
        if request.kind == DialogKind.PASSWORD:
            return password
        return 'yes'
    return _respond
