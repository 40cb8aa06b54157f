import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from webgen_eval.config import HarnessConfig
from webgen_eval.routes.runs import runs_router
from webgen_eval.routes.scenarios import scenarios_router
from webgen_eval.services.runs import get_registry

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

_LEVEL = logging.DEBUG if os.getenv("WEBGEN_VERBOSE") else logging.INFO

# Configure logging to output to stdout
logging.basicConfig(
    level=_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logging.getLogger("webgen_eval").setLevel(_LEVEL)

SENTRY_DSN = os.getenv("SENTRY_DSN") or ""
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=os.getenv("SENTRY_ENVIRONMENT", "production"),
        release=os.getenv("SENTRY_RELEASE") or None,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
        integrations=[FastApiIntegration()],
        send_default_pii=False,
    )

logger = logging.getLogger("webgen_eval.main")


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Fails startup on a malformed WEBGEN_EXTRA_SCENARIOS file.
    registry = get_registry()
    config = HarnessConfig.from_env()
    logger.info(
        "webgen-eval ready: %d scenarios, assistant %s/%s, judge %s, functional probe %s",
        len(registry),
        config.provider,
        config.model,
        "on" if config.judge_enabled else "off",
        "on" if config.functional_enabled else "off",
    )
    yield


app = FastAPI(title="webgen-eval", lifespan=lifespan)


@app.get("/")
def health():
    return {"status": "ok", "scenarios": len(get_registry())}


app.include_router(scenarios_router)
app.include_router(runs_router)
