"""
Failure taxonomy raised by the services.

Each error carries the context the HTTP layer needs to build a message
(slug, comment id, field name) as plain attributes.  ``status_code`` is
read by the exception handler in ``conduit.main``; nothing here knows
about the wire format.
"""


class ConduitError(Exception):
    status_code: int = 500

    def context(self) -> dict:
        """Non-empty attributes describing the failure."""
        return {k: v for k, v in vars(self).items() if v is not None}


class InvalidInput(ConduitError):
    """A required field is missing or empty."""

    status_code = 400

    def __init__(self, field: str) -> None:
        super().__init__(field)
        self.field = field


class InvalidQuery(ConduitError):
    """A pagination or filter parameter could not be parsed."""

    status_code = 400

    def __init__(self, parameter: str, value: str | None = None) -> None:
        super().__init__(parameter, value)
        self.parameter = parameter
        self.value = value


class Unauthorized(ConduitError):
    """The operation needs a caller identity and none was supplied."""

    status_code = 401

    def __init__(self) -> None:
        super().__init__()


class Forbidden(ConduitError):
    """The caller is authenticated but does not own the resource."""

    status_code = 403

    def __init__(self, slug: str, comment_id: int | None = None) -> None:
        super().__init__(slug, comment_id)
        self.slug = slug
        self.comment_id = comment_id


class NotFound(ConduitError):
    status_code = 404

    def __init__(
        self,
        resource: str,
        *,
        slug: str | None = None,
        comment_id: int | None = None,
        username: str | None = None,
    ) -> None:
        super().__init__(resource, slug, comment_id, username)
        self.resource = resource
        self.slug = slug
        self.comment_id = comment_id
        self.username = username


class Conflict(ConduitError):
    """A unique value (username, email) is already taken."""

    status_code = 409

    def __init__(self, field: str) -> None:
        super().__init__(field)
        self.field = field


class ServiceUnavailable(ConduitError):
    """An external collaborator failed or did not answer in time."""

    status_code = 503

    def __init__(self, collaborator: str) -> None:
        super().__init__(collaborator)
        self.collaborator = collaborator
