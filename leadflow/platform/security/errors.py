from __future__ import annotations


class DomainError(Exception):
    """Base error raised by services. Carries a caller-facing message and an HTTP mapping."""

    code = "domain_error"
    status_code = 400
    default_message = "Erro de domínio"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(DomainError):
    """No authenticated actor."""

    code = "unauthorized"
    status_code = 401
    default_message = "Não autorizado"


class ForbiddenError(DomainError):
    """Authenticated, but the role does not allow the operation."""

    code = "forbidden"
    status_code = 403
    default_message = "Acesso negado"


class NotFoundError(DomainError):
    """Missing, or not visible to the actor. The two cases are indistinguishable."""

    code = "not_found"
    status_code = 404
    default_message = "Recurso não encontrado"


class ConflictError(DomainError):
    code = "conflict"
    status_code = 409
    default_message = "Conflito de estado"


class ValidationError(DomainError):
    code = "validation_error"
    status_code = 422
    default_message = "Dados inválidos"
