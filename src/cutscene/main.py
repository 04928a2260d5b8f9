# main.py
import uvicorn
from cutscene.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from cutscene.adapters.artifact_store_tempdir import TempDirArtifactStore
from cutscene.adapters.job_registry_inmemory import InMemoryJobRegistry
from cutscene.adapters.providers.openai_videos import OpenAIVideosAdapter
from cutscene.adapters.providers.replicate import ReplicateAdapter
from cutscene.adapters.retry_tenacity import TenacityRetryAdapter
from cutscene.adapters.system_clock import SystemClock
from cutscene.adapters.web.fastapi import create_app
from cutscene.core.config import TrackerConfig
from cutscene.core.logging_config import configure_logging
from cutscene.core.managers.job_tracker import JobTracker
from cutscene.core.settings import app_settings, logger


# main lives at the outermost layer (not in core)
# Instantiates all the concrete adapters
# Wires dependencies together
# Starts the application

def build_tracker(client, settings=app_settings) -> JobTracker:
    clock = SystemClock()
    config = TrackerConfig.from_app_settings(settings)
    openai_key = settings.OPENAI_API_KEY.get_secret_value() if settings.OPENAI_API_KEY else None
    replicate_token = (
        settings.REPLICATE_API_TOKEN.get_secret_value() if settings.REPLICATE_API_TOKEN else None
    )
    providers = [
        OpenAIVideosAdapter(client, api_key=openai_key, base_url=str(settings.OPENAI_BASE_URL)),
        ReplicateAdapter(client, api_token=replicate_token, base_url=str(settings.REPLICATE_BASE_URL)),
    ]
    return JobTracker(
        providers=providers,
        registry=InMemoryJobRegistry(clock),
        artifact_store=TempDirArtifactStore(clock, str(settings.CUTSCENE_ARTIFACT_DIR)),
        clock=clock,
        config=config,
        retry_port=TenacityRetryAdapter(
            attempts=config.download_max_retries,
            wait_initial=config.download_retry_base_wait,
            wait_max=config.download_retry_max_wait,
        ),
    )


def main():
    # Central logging configuration BEFORE building adapters so uvicorn adopts level/format
    configure_logging(app_settings.CUTSCENE_LOG_LEVEL)
    app_settings.print_settings(logger)

    app = create_app(tracker_factory=build_tracker, http_client=AioHttpClientAdapter())

    # Let uvicorn inherit existing logging (separate sinks & correlation ids)
    uvicorn.run(
        app,
        host=app_settings.CUTSCENE_API_HOST,
        port=app_settings.CUTSCENE_API_PORT,
        log_config=None,
        log_level=str(app_settings.CUTSCENE_LOG_LEVEL).lower(),
    )


if __name__ == "__main__":
    main()
