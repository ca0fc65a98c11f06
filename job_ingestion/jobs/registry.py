"""Source kind -> connector factory mapping."""

from typing import Callable, Optional, Protocol

from job_ingestion.config import AppConfig, CustomSourceConfig
from job_ingestion.jobs.adzuna import AdzunaConnector
from job_ingestion.jobs.custom_scraper import CustomScraperConnector
from job_ingestion.jobs.getonboard import GetOnBoardConnector
from job_ingestion.jobs.mapping import ConnectorContext
from job_ingestion.jobs.models import FetchResult, SourceKind
from job_ingestion.jobs.remoteok import RemoteOKConnector
from job_ingestion.jobs.remotive import RemotiveConnector


class SourceConnector(Protocol):
    def fetch_recent_jobs(self) -> FetchResult: ...

    def fetch_job_by_source_id(self, source_id: str) -> FetchResult: ...


ConnectorFactory = Callable[[AppConfig, ConnectorContext, Optional[CustomSourceConfig]], SourceConnector]


def _custom(config: AppConfig, ctx: ConnectorContext, custom: Optional[CustomSourceConfig]) -> SourceConnector:
    if custom is None:
        raise ValueError("A custom source connector needs its CustomSourceConfig")
    return CustomScraperConnector(custom, ctx, page_delay=config.ingestion.page_delay_seconds)


CONNECTORS: dict[SourceKind, ConnectorFactory] = {
    SourceKind.REMOTEOK: lambda config, ctx, custom=None: RemoteOKConnector(config, ctx),
    SourceKind.REMOTIVE: lambda config, ctx, custom=None: RemotiveConnector(config, ctx),
    SourceKind.ADZUNA: lambda config, ctx, custom=None: AdzunaConnector(config, ctx),
    SourceKind.GETONBOARD: lambda config, ctx, custom=None: GetOnBoardConnector(config, ctx),
    SourceKind.CUSTOM: _custom,
}

BUILT_IN_SOURCES = [SourceKind.REMOTEOK, SourceKind.REMOTIVE, SourceKind.ADZUNA, SourceKind.GETONBOARD]


def create_connector(
    kind: SourceKind,
    config: AppConfig,
    ctx: ConnectorContext,
    custom: Optional[CustomSourceConfig] = None,
) -> SourceConnector:
    try:
        factory = CONNECTORS[SourceKind(kind)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown source: {kind}")
    return factory(config, ctx, custom)
