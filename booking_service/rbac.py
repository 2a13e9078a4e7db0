import json

from fastapi import Header, HTTPException, status

from bookings_shared.machine import Actor


def get_actor(
    x_user_sub: str | None = Header(default=None),
    x_user_roles: str | None = Header(default=None),
) -> dict:
    """Identity forwarded by the gateway as X-User-Sub / X-User-Roles."""
    if not x_user_sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )

    try:
        roles = json.loads(x_user_roles) if x_user_roles else []
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed X-User-Roles header",
        )

    return {"sub": x_user_sub.strip(), "roles": roles}


def require_role(payload: dict, allowed_roles: list[str]):
    token_roles = payload.get("roles")

    if not isinstance(token_roles, list) or not token_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Roles missing in token",
        )

    allowed = {r.lower() for r in allowed_roles}
    roles = {str(r).lower() for r in token_roles}

    if roles.isdisjoint(allowed):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access forbidden for this role",
        )


def _same(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


def resolve_actor(payload: dict, booking) -> Actor:
    """Which side of ``booking`` the caller is acting for."""
    require_role(payload, [Actor.WORKER.value, Actor.CUSTOMER.value])
    roles = {str(r).lower() for r in payload["roles"]}
    sub = payload["sub"]

    if Actor.WORKER.value in roles and _same(sub, booking.worker_email):
        return Actor.WORKER
    if Actor.CUSTOMER.value in roles and _same(sub, booking.customer_email):
        return Actor.CUSTOMER
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="This booking is not assigned to you",
    )


def require_party(payload: dict, booking):
    if not (_same(payload["sub"], booking.worker_email) or _same(payload["sub"], booking.customer_email)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This booking is not assigned to you",
        )
