import pytest

from config.settings import AppSettings
from tokentrust.context import EngineContext
from tokentrust.services.scoring.orchestrator import AnalysisOrchestrator


@pytest.mark.asyncio
async def test_engine_context_wires_orchestrator(engine):
    settings = AppSettings(refresh={"popular_mints": []})

    async with EngineContext(settings, engine=engine) as ctx:
        assert isinstance(ctx.orchestrator, AnalysisOrchestrator)
        assert ctx.refresh_job is not None
        assert await ctx.orchestrator.get_score_history("Unknown") == []
