from dataclasses import dataclass


@dataclass(frozen=True)
class AdminPrincipal:
    """
    The authenticated admin performing a console action.

    Role verification happens upstream; every service call receives
    the principal explicitly.
    """

    user_id: int
    username: str | None = None
