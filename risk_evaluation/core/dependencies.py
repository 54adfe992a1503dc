"""
FastAPI dependency injection utilities.

Provides the request-scoped database session and the application-wide
evaluation orchestrator, both built by the application lifespan.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.services.evaluation_service import EvaluationOrchestrator


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session, committed when the request succeeds."""
    factory = request.app.state.session_factory
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_orchestrator(request: Request) -> EvaluationOrchestrator:
    """Get the evaluation orchestrator built at startup."""
    return request.app.state.orchestrator


DbSession = Annotated[AsyncSession, Depends(get_session)]
Orchestrator = Annotated[EvaluationOrchestrator, Depends(get_orchestrator)]
