"""
Excepciones HTTP personalizadas para la API.

Cada excepción lleva un `code` estable para que los consumidores
puedan mapearla sin interpretar el texto del mensaje.
"""

from fastapi import HTTPException, status


class AgendaException(HTTPException):
    """Base de los errores del motor de agenda."""

    code: str = "error"

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundException(AgendaException):
    """Recurso no encontrado (404)."""

    code = "not_found"

    def __init__(self, resource: str = "Recurso", detail: str | None = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail or f"{resource} no encontrado",
        )


class ConflictException(AgendaException):
    """Conflicto de datos (409), ej: horarios o citas que se solapan."""

    code = "conflict"

    def __init__(self, detail: str = "El horario se superpone con otro existente"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class ReservationExpiredException(ConflictException):
    """La reserva temporal venció antes de confirmarse (409)."""

    code = "reservation_expired"

    def __init__(
        self,
        detail: str = "La reserva ha expirado. Seleccione un nuevo horario.",
    ):
        super().__init__(detail=detail)


class ValidationException(AgendaException):
    """Error de validación de negocio (422)."""

    code = "validation_error"

    def __init__(self, detail: str = "Error de validación"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )


class PolicyException(AgendaException):
    """Operación bien formada que viola una regla de negocio (400)."""

    code = "policy_violation"

    def __init__(self, detail: str = "La operación no está permitida"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )
