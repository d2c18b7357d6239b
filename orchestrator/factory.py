from typing import Any, Optional

from loguru import logger

from agents.reasoning_agent import ReasoningAgentConfig, ReasoningWorker
from agents.research_agent import ResearchAgentConfig, ResearchWorker
from agents.supervisor_agent import Supervisor, SupervisorConfig
from config import Config
from core.errors import ConfigurationError
from core.llm import LLMProvider, create_llm_client
from core.search import MockSearchBackend, SearchBackend, SearchService, TavilySearchBackend
from storage import ThreadStore, create_thread_store
from .executor import Orchestrator, OrchestratorConfig

ACADEMIC_DOMAINS = [
    "scholar.google.com",
    "arxiv.org",
    "semanticscholar.org",
    "pubmed.ncbi.nlm.nih.gov",
    "nature.com",
    "sciencedirect.com",
]


def _default_llm_client(config: Config) -> Any:
    try:
        provider = LLMProvider(config.llm_provider)
    except ValueError:
        logger.warning("Unknown LLM_PROVIDER '{}'", config.llm_provider)
        return None

    try:
        return create_llm_client(provider, api_key=config.get_api_key(), model=config.llm_model)
    except ConfigurationError as e:
        # Leave the client unset; every turn then fails fast with this error
        logger.warning("No language model configured: {}", e)
        return None


def _default_backends(config: Config):
    if config.tavily_api_key:
        web = TavilySearchBackend(api_key=config.tavily_api_key, name="web_search")
        academic = TavilySearchBackend(
            api_key=config.tavily_api_key,
            name="academic_search",
            include_domains=ACADEMIC_DOMAINS,
        )
        return web, academic

    logger.info("TAVILY_API_KEY not set. Search tools will use mock data.")
    return MockSearchBackend("web_search"), MockSearchBackend("academic_search")


def build_orchestrator(
    config: Config,
    llm_client: Any = None,
    web_backend: Optional[SearchBackend] = None,
    academic_backend: Optional[SearchBackend] = None,
    store: Optional[ThreadStore] = None,
) -> Orchestrator:
    """Create and wire the supervisor, workers, search services and store."""
    if llm_client is None:
        llm_client = _default_llm_client(config)
    if web_backend is None and academic_backend is None:
        web_backend, academic_backend = _default_backends(config)
    model = config.llm_model

    def search_service(backend: SearchBackend) -> SearchService:
        return SearchService(
            backend,
            min_interval=config.search_min_interval,
            cache_size=config.search_cache_size,
            max_results=config.max_search_results,
        )

    supervisor = Supervisor(
        config=SupervisorConfig(
            name="Supervisor",
            description="Decides whether to delegate or finalize",
            model=model,
            history_window=config.supervisor_window,
        ),
        llm_client=llm_client,
    )

    research_worker = ResearchWorker(
        config=ResearchAgentConfig(
            name="Research Worker",
            description="Searches external knowledge sources with human confirmation",
            model=model,
            max_tool_rounds=config.max_tool_rounds,
        ),
        llm_client=llm_client,
        web_search=search_service(web_backend or MockSearchBackend("web_search")),
        academic_search=search_service(academic_backend) if academic_backend else None,
    )

    reasoning_worker = ReasoningWorker(
        config=ReasoningAgentConfig(
            name="Reasoning Worker",
            description="Synthesizes and critiques gathered information",
            model=model,
        ),
        llm_client=llm_client,
    )

    return Orchestrator(
        supervisor=supervisor,
        research_worker=research_worker,
        reasoning_worker=reasoning_worker,
        store=store or create_thread_store(config),
        config=OrchestratorConfig(
            max_round_trips=config.max_round_trips,
            unrecognized_retries=config.unrecognized_retries,
            lock_policy=config.thread_lock_policy,
        ),
    )
