# OhMyBot: Bot Framework SDK (Python) + Azure Translator (+ optional Azure CLU)
# Local run: python app.py  → test with Bot Framework Emulator at http://localhost:3978/api/messages

import logging
import sys

from aiohttp import web
from botbuilder.core import (
    BotFrameworkAdapter,
    BotFrameworkAdapterSettings,
    MemoryStorage,
    TurnContext,
    UserState,
)
from botbuilder.schema import Activity

from ohmybot import config
from ohmybot.bot import OhMyBot
from ohmybot.clarify import ClarificationDialogs, FollowUpScheduler
from ohmybot.dispatcher import FeedbackDispatcher
from ohmybot.recognizers import CluRecognizer, PatternRecognizer
from ohmybot.replies import APOLOGY
from ohmybot.store import InMemoryFeedbackStore
from ohmybot.traffic import TrafficLog
from ohmybot.translation import Anonymizer, AzureTranslator

log = logging.getLogger("bot")

BOT_KEY = web.AppKey("bot", OhMyBot)


# ---------- console logging ----------
def configure_logging(level=None):
    logging.basicConfig(
        level=level or config.LOG_LEVEL,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


# ---------- Startup audit (prove which values are used) ----------
def _mask(s, n=6):
    return s[:n] + "…" if s else "<empty>"


def log_startup():
    log.info(
        "[startup] appId=%s  secret_len=%s  translator=%s/%s  pivot=%s  clu=%s  lookback=%s",
        _mask(config.APP_ID), len(config.APP_PW or ""), _mask(config.TRANSLATOR_KEY),
        config.TRANSLATOR_REGION or "<global>", config.PIVOT_LOCALE,
        "on" if config.clu_configured() else "off", config.LOOKBACK_SECONDS,
    )


def build_recognizer():
    if config.clu_configured():
        return CluRecognizer.from_key(
            config.CLU_ENDPOINT,
            config.CLU_API_KEY,
            config.CLU_PROJECT_NAME,
            config.CLU_DEPLOYMENT_NAME,
            threshold=config.CLU_CONF_THRESHOLD,
            language=config.SOURCE_LOCALE,
        )
    return PatternRecognizer()


# ---------- Adapter, bot & routes ----------
def create_app(adapter=None, bot=None, traffic=None, translator=None, store=None):
    traffic = traffic if traffic is not None else TrafficLog(config.TRAFFIC_LOG)

    if adapter is None:
        settings = BotFrameworkAdapterSettings(config.APP_ID, config.APP_PW)
        adapter = BotFrameworkAdapter(settings)

    async def on_error(context: TurnContext, error: Exception):
        log.exception("unhandled turn error", exc_info=error)
        traffic.write({"event": "turn_error", "error": f"{type(error).__name__}: {error}"})
        await context.send_activity(f"{APOLOGY}.")

    adapter.on_turn_error = on_error

    if bot is None:
        store = store if store is not None else InMemoryFeedbackStore()
        translator = translator or AzureTranslator(
            config.TRANSLATOR_KEY, config.TRANSLATOR_REGION, config.TRANSLATOR_ENDPOINT
        )
        dispatcher = FeedbackDispatcher(
            store,
            Anonymizer(translator, config.SOURCE_LOCALE, config.PIVOT_LOCALE),
            dialogs=ClarificationDialogs(store, ttl=config.CLARIFY_TTL_SECONDS),
            recognizer=build_recognizer(),
            lookback=config.LOOKBACK_SECONDS,
        )
        bot = OhMyBot(
            dispatcher,
            UserState(MemoryStorage()),
            adapter=adapter,
            app_id=config.APP_ID,
            scheduler=FollowUpScheduler(config.CLARIFY_DELAY_SECONDS),
            traffic=traffic,
        )

    async def messages(req: web.Request) -> web.Response:
        if "application/json" not in (req.headers.get("Content-Type") or ""):
            traffic.write({
                "event": "bad_content_type",
                "path": "/api/messages",
                "content_type": req.headers.get("Content-Type"),
            })
            return web.Response(status=415, text="Content-Type must be application/json")

        body = await req.json()
        activity = Activity().deserialize(body)
        auth_header = req.headers.get("Authorization", "")

        response = await adapter.process_activity(activity, auth_header, bot.on_turn)
        if response:
            return web.json_response(data=response.body, status=response.status)
        return web.Response(status=201, text="OK")

    async def health(req: web.Request) -> web.Response:
        return web.Response(text="OhMyBot is running.")

    async def drain_follow_ups(app):
        await bot.scheduler.drain()

    app = web.Application(middlewares=[traffic.middleware()])
    app[BOT_KEY] = bot
    app.router.add_post("/api/messages", messages)
    app.router.add_get("/", health)
    app.on_cleanup.append(drain_follow_ups)
    return app


def main():
    configure_logging()
    traffic = TrafficLog(config.TRAFFIC_LOG)
    traffic.start()
    log_startup()
    log.info("Listening on 0.0.0.0:%s  (traffic log: %s)", config.PORT, config.TRAFFIC_LOG)
    web.run_app(create_app(traffic=traffic), host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    main()
