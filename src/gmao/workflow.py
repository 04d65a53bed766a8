"""
Máquina de estados do campo Intervention.statut.

Toda mudança de status passa por aqui: os controllers disparam eventos
(PLAN, UNPLAN, START, COMPLETE, CANCEL) e a tabela abaixo decide o novo estado.
"""
import logging

logger = logging.getLogger(__name__)

PENDING = "PENDING"
PLANNED = "PLANNED"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"

STATUSES = (PENDING, PLANNED, IN_PROGRESS, COMPLETED, CANCELLED)
INITIAL_STATUS = PENDING
TERMINAL_STATUSES = frozenset({COMPLETED})

# eventos
PLAN = "PLAN"            # adicionada a uma planificação
UNPLAN = "UNPLAN"        # removida da planificação
START = "START"          # renovação/manutenção criada
COMPLETE = "COMPLETE"    # rapport validado ou trabalho concluído
CANCEL = "CANCEL"

# evento -> (estados de origem aceitos, estado destino); None = qualquer estado
TRANSITIONS = {
    PLAN: (frozenset({PENDING}), PLANNED),
    UNPLAN: (frozenset({PLANNED}), PENDING),
    START: (frozenset({PENDING}), IN_PROGRESS),
    COMPLETE: (None, COMPLETED),
    CANCEL: (frozenset(STATUSES) - TERMINAL_STATUSES, CANCELLED),
}


class TransitionError(Exception):
    def __init__(self, status, event):
        self.status = status
        self.event = event
        super().__init__(f"Cannot apply {event} to an intervention in status {status}")


def can_transition(status, event):
    if status not in STATUSES or event not in TRANSITIONS:
        return False
    sources, _ = TRANSITIONS[event]
    return sources is None or status in sources


def transition(status, event):
    """Retorna o novo status ou levanta TransitionError."""
    if not can_transition(status, event):
        raise TransitionError(status, event)
    return TRANSITIONS[event][1]


def apply(intervention, event):
    """Aplica o evento de forma estrita (erro se a tabela não permitir)."""
    old = intervention.statut
    intervention.statut = transition(old, event)
    logger.info("intervention %s: %s -> %s (%s)", intervention.id, old, intervention.statut, event)
    return intervention.statut


def fire(intervention, event):
    """
    Aplica o evento só quando a tabela permite; caso contrário não faz nada.
    Retorna True se o status mudou.
    """
    if not can_transition(intervention.statut, event):
        logger.debug("intervention %s: %s ignored in status %s",
                     intervention.id, event, intervention.statut)
        return False
    old = intervention.statut
    apply(intervention, event)
    return old != intervention.statut
