from __future__ import annotations

from dataclasses import dataclass

from shopauth.core import errors as api_errors
from shopauth.services._shared.errors import (
    AuthError,
    NotFoundError,
    ServiceError,
    SigningError,
    StoreUnavailable,
)
from shopauth.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (auth, tenant, request ids, etc.).

    :param actor_id: Authenticated user identifier.
    :param shop_id: Tenant (shop) scoping identifier.
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: int | None = None
    shop_id: int | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Centralize error translation.
    * Keep services thin, orchestration-only, no web/ORM leakage.

    Notes
    -----
    - Services must never touch the global session; always use a Unit of Work.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context (auth, tenant, tracing).
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :returns: Read-only UoW instance.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork()

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: ServiceError) -> api_errors.APIError:
        """
        Map service-level errors to API-level (HTTP) errors.

        Auth errors keep their stable code and status. Configuration and
        infrastructure faults are reduced to generic messages; their detail
        only goes to the server log.

        :param exc: Exception raised within the service.
        :type exc: ServiceError
        :returns: Translated exception ready to be rendered.
        :rtype: APIError
        """
        if isinstance(exc, AuthError):
            return api_errors.APIError(exc.message, status_code=exc.status, code=exc.code)

        if isinstance(exc, NotFoundError):
            # → 404 Not Found
            return api_errors.NotFound(str(exc))

        if isinstance(exc, StoreUnavailable):
            # → 503 Service Unavailable
            return api_errors.ServiceUnavailable()

        if isinstance(exc, SigningError):
            # → 500, configuration fault
            return api_errors.APIError(
                "Unexpected error", status_code=500, code="internal_server_error"
            )

        # Any other ServiceError subclass → 400 Bad Request
        return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")
