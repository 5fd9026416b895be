from fastapi import Depends, HTTPException, status

from ..services.proctor_session import ProctorSession, SessionRegistry, registry


def get_registry() -> SessionRegistry:
    return registry


def get_session(
    session_id: str,
    sessions: SessionRegistry = Depends(get_registry)
) -> ProctorSession:
    session = sessions.get(session_id)

    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Proctoring session not found",
        )

    return session
