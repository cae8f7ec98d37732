"""
Pathfinder Server

FastAPI server exposing the request pipeline over HTTP and Slack.

Endpoints:
- GET /health: Health check
- POST /query: Run the pipeline and return the RunResult
- POST /slack/events: Slack Events API endpoint (answers in thread)

Startup:
1. Load .env and configure logging
2. Resolve configuration and credentials for the agent
3. Build LLM clients, data provider, delivery and session logger
4. Wire everything into one Orchestrator
"""

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .common.config import AgentConfiguration, Credentials, get_credentials, load_config
from .common.llm_client import create_llm_client
from .common.schemas import IntentCatalog, TemplateSet, default_intent_catalog, default_template_set
from .common.sheets_client import SheetsClient
from .delivery import SlackClient, SlackDelivery, SlackEvent, SlackEventHandler, WebhookDispatcher, create_session_logger
from .pipeline import ContentRetriever, IntentParser, Orchestrator, ResponseGenerator, RunOptions
from .providers import BaseProvider, SampleProvider, SpreadsheetProvider

logger = logging.getLogger("pathfinder.server")

DEFAULT_PORT = 8080


# Global state
config: Optional[AgentConfiguration] = None
catalog: Optional[IntentCatalog] = None
templates: Optional[TemplateSet] = None
provider: Optional[BaseProvider] = None
orchestrator: Optional[Orchestrator] = None
slack_handler: Optional[SlackEventHandler] = None


def build_provider(credentials: Credentials) -> BaseProvider:
    """Catalog sheet when a spreadsheet is configured, built-in samples otherwise."""
    if credentials.storage_id:
        client = SheetsClient(credentials.storage_id, access_token=credentials.storage_token)
        return SpreadsheetProvider(client, range_name=os.getenv("PATHFINDER_CATALOG_RANGE", "Catalog"))
    return SampleProvider()


def build_orchestrator(cfg: AgentConfiguration, credentials: Credentials, agent_name: Optional[str] = None) -> Orchestrator:
    """Wire the pipeline stages and their collaborators for one agent."""
    classifier_llm = create_llm_client(cfg.classifier, credentials.classifier_api_key or None)
    if not classifier_llm.is_available:
        logger.warning("Classifier backend unavailable (%s); every request will fall back", cfg.classifier.provider)

    generator_llm = None
    if cfg.generation.enabled:
        if cfg.generation.provider == cfg.classifier.provider:
            key = credentials.classifier_api_key
        else:
            key = get_credentials(agent_name, provider=cfg.generation.provider).classifier_api_key
        generator_llm = create_llm_client(cfg.generation, key or None)

    slack_delivery = None
    if credentials.delivery_bot_token:
        slack_delivery = SlackDelivery(SlackClient(credentials.delivery_bot_token))

    webhooks = None
    if cfg.webhooks.enabled and cfg.webhooks.urls:
        webhooks = WebhookDispatcher(cfg.webhooks.urls, timeout=cfg.webhooks.timeout)

    return Orchestrator(
        intent_parser=IntentParser(classifier_llm),
        content_retriever=ContentRetriever(),
        response_generator=ResponseGenerator(generator_llm),
        slack_delivery=slack_delivery,
        webhooks=webhooks,
        session_logger=create_session_logger(cfg, credentials),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, catalog, templates, provider, orchestrator, slack_handler

    load_dotenv()
    logging.basicConfig(
        level=os.getenv("PATHFINDER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    agent_name = os.getenv("PATHFINDER_AGENT") or None
    config = load_config(agent_name)
    credentials = get_credentials(agent_name, provider=config.classifier.provider)
    logger.info("Loaded config for %s (classifier: %s)", config.name, config.classifier.provider)

    catalog = default_intent_catalog()
    templates = default_template_set(config.default_language)
    provider = build_provider(credentials)
    orchestrator = build_orchestrator(config, credentials, agent_name)
    slack_handler = SlackEventHandler(signing_secret=config.slack.signing_secret)

    logger.info("Ready: %d intents, provider=%s", len(catalog), provider.source_name)

    yield

    logger.info("Shutting down")


app = FastAPI(
    title="Pathfinder Agent",
    description="Conversational training discovery",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request Models
# =============================================================================

class QueryRequest(BaseModel):
    """Pipeline request"""
    text: str
    user: Optional[str] = None
    channel: Optional[str] = None
    thread_ref: Optional[str] = None
    context: Optional[str] = None
    deliver: Optional[bool] = False
    log: Optional[bool] = None


# =============================================================================
# Background Tasks
# =============================================================================

def process_slack_event(event: SlackEvent):
    """Run the pipeline for a Slack request and answer in its thread."""
    if orchestrator is None:
        logger.warning("Not initialized, skipping Slack event")
        return

    result = orchestrator.run(
        event.text,
        config,
        catalog,
        provider,
        templates,
        RunOptions(
            deliver=True,
            channel=event.channel,
            thread_ref=event.thread_ref,
            user=event.user,
        ),
    )
    logger.info("Slack request %s handled (success=%s)", result.session_id, result.success)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "pathfinder",
        "initialized": orchestrator is not None,
        "agent": config.name if config else None,
        "intents": len(catalog) if catalog else 0,
        "provider": provider.source_name if provider else None,
    }


@app.post("/query")
def query(request: QueryRequest):
    """Run the pipeline synchronously and return the RunResult."""
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")

    result = orchestrator.run(
        request.text,
        config,
        catalog,
        provider,
        templates,
        RunOptions(
            deliver=request.deliver,
            log=request.log,
            channel=request.channel,
            thread_ref=request.thread_ref,
            user=request.user,
            context=request.context,
        ),
    )
    return result.to_dict()


@app.post("/slack/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    x_slack_signature: Optional[str] = Header(None),
    x_slack_request_timestamp: Optional[str] = Header(None),
):
    """
    Handle Slack webhook events.

    Slack expects an answer within 3 seconds, so the pipeline runs after the
    acknowledgement.
    """
    if not slack_handler:
        raise HTTPException(status_code=503, detail="Handler not initialized")

    body = await request.body()

    if not slack_handler.verify_signature(body, x_slack_signature or "", x_slack_request_timestamp or ""):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if slack_handler.is_url_verification(data):
        return JSONResponse({"challenge": slack_handler.get_challenge(data)})

    # Slack retries slow deliveries; the first attempt is already being handled
    if request.headers.get("x-slack-retry-num"):
        return JSONResponse({"ok": True})

    event = slack_handler.parse_event(data)
    if event is not None:
        background_tasks.add_task(process_slack_event, event)

    return JSONResponse({"ok": True})


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Pathfinder server"""
    import uvicorn

    load_dotenv()
    port = int(os.getenv("PATHFINDER_PORT", DEFAULT_PORT))

    logger.info("Starting server on port %d", port)
    uvicorn.run(
        "pathfinder.server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
